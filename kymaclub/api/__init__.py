"""Query and mutation operations exposed to the admin and consumer apps."""

from .bookings import get_all_bookings, get_bookings_metric
from .businesses import update_business_fee_rate
from .membership import get_user_membership
from .search import search_global

__all__ = [
    "get_all_bookings",
    "get_bookings_metric",
    "update_business_fee_rate",
    "get_user_membership",
    "search_global",
]
