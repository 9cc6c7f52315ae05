"""
Business and consumer domain models.

Both are searchable by name, email and phone. The repositories persist a
lower-cased copy of each searchable attribute (``<field>_search``) because
DynamoDB string matching is case-sensitive.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Any, Optional

DEFAULT_FEE_RATE = 0.2

SEARCHABLE_FIELDS = ("name", "email", "phone")


def search_attributes(item: Dict[str, Any]) -> Dict[str, str]:
    """Return the lower-cased ``<field>_search`` attributes for an item."""
    result = {}
    for name in SEARCHABLE_FIELDS:
        value = item.get(name)
        if value:
            result[f"{name}_search"] = str(value).lower()
    return result


def _strip_search_attributes(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if not k.endswith("_search")}


@dataclass
class Business:
    """
    Venue operator account.

    Attributes:
        business_id: Partition key
        name: Display name
        email: Contact email
        phone: Contact phone
        fee_structure: Fee settings; ``base_fee_rate`` is the platform fee
        extra_fields: Remaining stored attributes
    """

    business_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    fee_structure: Dict[str, Any] = field(default_factory=dict)
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Business":
        data = _strip_search_attributes(data)
        known = {"business_id", "name", "email", "phone", "fee_structure"}
        return cls(
            business_id=data["business_id"],
            name=data.get("name", ""),
            email=data.get("email"),
            phone=data.get("phone"),
            fee_structure=dict(data.get("fee_structure") or {}),
            extra_fields={k: v for k, v in data.items() if k not in known},
        )

    @property
    def base_fee_rate(self) -> float:
        """Platform fee rate, defaulting to 20% when never set."""
        value = self.fee_structure.get("base_fee_rate")
        if value is None:
            return DEFAULT_FEE_RATE
        return float(value)

    def to_dict(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {"business_id": self.business_id, "name": self.name}
        if self.email:
            item["email"] = self.email
        if self.phone:
            item["phone"] = self.phone
        if self.fee_structure:
            item["fee_structure"] = {
                k: Decimal(str(v)) if isinstance(v, float) else v
                for k, v in self.fee_structure.items()
            }
        item.update(self.extra_fields)
        item.update(search_attributes(item))
        return item

    def to_response(self) -> Dict[str, Any]:
        return {
            "_id": self.business_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "feeRate": self.base_fee_rate,
        }


@dataclass
class Consumer:
    """Consumer (end user) account."""

    user_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Consumer":
        data = _strip_search_attributes(data)
        known = {"user_id", "name", "email", "phone"}
        return cls(
            user_id=data["user_id"],
            name=data.get("name", ""),
            email=data.get("email"),
            phone=data.get("phone"),
            extra_fields={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {"user_id": self.user_id, "name": self.name}
        if self.email:
            item["email"] = self.email
        if self.phone:
            item["phone"] = self.phone
        item.update(self.extra_fields)
        item.update(search_attributes(item))
        return item

    def to_response(self) -> Dict[str, Any]:
        return {
            "_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
        }
