"""Database module - DynamoDB repository pattern implementation."""

from .dynamodb_client import (
    BookingRepository,
    BusinessRepository,
    ConsumerRepository,
    HandoffRepository,
)
from .search_index import SearchIndex
from .exceptions import (
    DynamoDBException,
    ThrottlingError,
    ConditionalCheckError,
    NetworkError,
    PermissionError,
)

__all__ = [
    "BookingRepository",
    "BusinessRepository",
    "ConsumerRepository",
    "HandoffRepository",
    "SearchIndex",
    "DynamoDBException",
    "ThrottlingError",
    "ConditionalCheckError",
    "NetworkError",
    "PermissionError",
]
