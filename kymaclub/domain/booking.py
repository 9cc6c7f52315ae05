"""
Booking domain model.

A booking is created when a consumer reserves a spot in a class instance and
is never hard-deleted: cancellations and no-shows are status transitions, and
removal is a soft-delete flag.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any, Optional


class BookingStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED_BY_CONSUMER = "cancelled_by_consumer"
    CANCELLED_BY_BUSINESS = "cancelled_by_business"
    CANCELLED_BY_BUSINESS_REBOOKABLE = "cancelled_by_business_rebookable"
    NO_SHOW = "no_show"


@dataclass
class Booking:
    """
    Booking record as stored in the bookings table.

    Attributes:
        booking_id: Partition key
        user_id: Consumer who made the booking
        business_id: Business offering the class
        class_instance_id: Scheduled class occurrence
        status: One of BookingStatus values
        booked_at: Reservation time, epoch milliseconds (status index sort key)
        created_at: Record creation time, epoch milliseconds
        deleted: Soft-delete tombstone
        extra_fields: Any additional attributes (price snapshot, discount, ...)
    """

    booking_id: str
    user_id: str
    business_id: str
    class_instance_id: str
    status: str
    booked_at: int
    created_at: int
    deleted: bool = False
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    _CORE_FIELDS = (
        "booking_id",
        "user_id",
        "business_id",
        "class_instance_id",
        "status",
        "booked_at",
        "created_at",
        "deleted",
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Booking":
        """
        Build a Booking from a DynamoDB item.

        Numeric attributes come back as Decimal and are normalised to int.
        Unknown attributes are kept in extra_fields.
        """
        core = {k: v for k, v in data.items() if k in cls._CORE_FIELDS}
        extra = {k: v for k, v in data.items() if k not in cls._CORE_FIELDS}

        core["booked_at"] = int(core.get("booked_at", 0))
        core["created_at"] = int(core.get("created_at", core["booked_at"]))
        core["deleted"] = bool(core.get("deleted", False))

        return cls(**core, extra_fields=extra)

    def to_dict(self, include_extra: bool = True) -> Dict[str, Any]:
        """Flatten the booking into a DynamoDB item."""
        data = asdict(self)
        extra = data.pop("extra_fields", {})
        if include_extra:
            data.update(extra)
        return data

    def to_response(self) -> Dict[str, Any]:
        """camelCase shape returned to UI callers."""
        response: Dict[str, Any] = {
            "_id": self.booking_id,
            "userId": self.user_id,
            "businessId": self.business_id,
            "classInstanceId": self.class_instance_id,
            "status": self.status,
            "bookedAt": self.booked_at,
            "createdAt": self.created_at,
        }
        response.update(self.extra_fields)
        return response

    @property
    def index_key(self) -> Dict[str, Any]:
        """Key attributes of this item on the status/booked_at index."""
        return {
            "booking_id": self.booking_id,
            "status": self.status,
            "booked_at": self.booked_at,
        }

    def get_field(self, field_name: str, default: Optional[Any] = None) -> Any:
        if field_name in self._CORE_FIELDS:
            return getattr(self, field_name)
        return self.extra_fields.get(field_name, default)
