"""
Consumer membership lookup.
"""

from typing import Any, Dict

from kymaclub.domain.membership import get_membership_tier
from kymaclub.utils.logger import log_operation


@log_operation("get_user_membership")
def get_user_membership(repository: Any, user_id: str) -> Dict[str, Any]:
    """
    Tier for a consumer, computed from their lifetime booking count.

    Every non-deleted booking counts, whatever its status.
    """
    count = repository.count_user_bookings(user_id)
    tier = get_membership_tier(count)
    return {"userId": user_id, "bookingCount": count, **tier.to_dict()}
