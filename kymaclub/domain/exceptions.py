"""
Domain-level exceptions.

Every failure that reaches a caller carries one human-readable message; the
handler layer turns it into the response body without further formatting.
"""

from typing import Optional


class PlatformError(Exception):
    """Base exception for all platform rules and persistence errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PlatformError):
    """
    Raised when caller input fails a business rule.

    Attributes:
        field: Name of the offending argument (e.g. "newFeeRate")
        code: Stable machine code (e.g. "INVALID_FEE_RATE")
    """

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, code: str = "INVALID"):
        super().__init__(message)
        self.field = field
        self.code = code


class NotFoundError(PlatformError):
    """Raised when a referenced entity does not exist."""

    status_code = 404


class CreditsError(ValidationError):
    """Raised for invalid credit/cent/euro amounts."""

    def __init__(self, message: str):
        super().__init__(message, field=None, code="INVALID_AMOUNT")
