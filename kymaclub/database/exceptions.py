"""
Exception hierarchy for DynamoDB operations.

Repositories translate botocore errors into these so callers never need to
inspect raw ClientError payloads.
"""

from kymaclub.domain.exceptions import PlatformError


class DynamoDBException(PlatformError):
    """Base exception for all DynamoDB-related errors."""

    pass


class ThrottlingError(DynamoDBException):
    """
    Raised when DynamoDB keeps throttling after retry exhaustion.
    """

    pass


class ConditionalCheckError(DynamoDBException):
    """
    Raised when a conditional write or transaction is rejected because the
    stored item changed since it was read.
    """

    status_code = 409


class NetworkError(DynamoDBException):
    """
    Raised on connection-level failures (timeouts, DNS, endpoint errors).
    """

    pass


class PermissionError(DynamoDBException):
    """
    Raised when IAM permissions are insufficient for the operation.
    """

    pass
