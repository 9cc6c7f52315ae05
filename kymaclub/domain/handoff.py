"""
Booking handoff model.

Carries a pending booking (e.g. one waiting for questionnaire answers) from
one screen/request to the next under an explicit, short-lived key instead of
process-wide state.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .exceptions import ValidationError

MIN_TTL_SECONDS = 60
MAX_TTL_SECONDS = 86400


def validate_ttl_seconds(ttl_seconds: Any) -> int:
    """Return ttl_seconds if it is a whole number of seconds in range."""
    if (
        not isinstance(ttl_seconds, int)
        or isinstance(ttl_seconds, bool)
        or not MIN_TTL_SECONDS <= ttl_seconds <= MAX_TTL_SECONDS
    ):
        raise ValidationError(
            f"ttlSeconds must be an integer between {MIN_TTL_SECONDS} and {MAX_TTL_SECONDS}",
            field="ttlSeconds",
            code="INVALID_TTL",
        )
    return ttl_seconds


@dataclass
class BookingHandoff:
    """
    Attributes:
        handoff_key: Random key handed to the client
        user_id: Owner; only this user may read the handoff back
        class_instance_id: Class being booked
        payload: Opaque data (questionnaire answers, selected options, ...)
        expires_at: Epoch seconds; also the table's TTL attribute
    """

    handoff_key: str
    user_id: str
    class_instance_id: str
    expires_at: int
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookingHandoff":
        return cls(
            handoff_key=data["handoff_key"],
            user_id=data["user_id"],
            class_instance_id=data["class_instance_id"],
            expires_at=int(data["expires_at"]),
            payload=dict(data.get("payload") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handoff_key": self.handoff_key,
            "user_id": self.user_id,
            "class_instance_id": self.class_instance_id,
            "expires_at": self.expires_at,
            "payload": self.payload,
        }

    def is_expired(self, now: Optional[float] = None) -> bool:
        current = time.time() if now is None else now
        return current >= self.expires_at

    def to_response(self) -> Dict[str, Any]:
        return {
            "handoffKey": self.handoff_key,
            "userId": self.user_id,
            "classInstanceId": self.class_instance_id,
            "expiresAt": self.expires_at,
            "payload": self.payload,
        }
