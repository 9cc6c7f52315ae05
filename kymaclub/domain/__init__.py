"""Domain models and pure business rules."""

from .booking import Booking, BookingStatus
from .business import Business, Consumer
from .handoff import BookingHandoff
from .membership import MembershipTier, get_membership_tier
from .exceptions import PlatformError, ValidationError, NotFoundError, CreditsError

__all__ = [
    "Booking",
    "BookingStatus",
    "Business",
    "Consumer",
    "BookingHandoff",
    "MembershipTier",
    "get_membership_tier",
    "PlatformError",
    "ValidationError",
    "NotFoundError",
    "CreditsError",
]
