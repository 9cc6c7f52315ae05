"""
Class discount descriptors and rule evaluation.

Two layers live here:

1. Descriptor builders (``create_time_based_discount`` and the
   ``discount_patterns`` helpers). They only assemble the dict consumed by the
   class template editor and perform no validation.
2. Rule evaluation (``does_rule_apply``, ``calculate_best_discount``), used at
   booking time to price a class instance. Rules live on the class template
   and may be overridden per instance; instance rules win.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from kymaclub.domain.credits import cents_to_credits, round_half_up

DEFAULT_PRICE_CENTS = 1000
MS_PER_HOUR = 1000 * 60 * 60

HOURS_BEFORE_MIN = "hours_before_min"
HOURS_BEFORE_MAX = "hours_before_max"
ALWAYS = "always"


def create_time_based_discount(
    name: str,
    hours_before_start: float,
    discount_type: str,
    discount_value: float,
) -> Dict[str, Any]:
    """
    Build a time-window discount descriptor.

    Args:
        name: Display name
        hours_before_start: Trigger window in hours before class start
        discount_type: "percentage" (value is a 0-1 fraction) or "fixed_amount"
        discount_value: Fraction or amount, stored as given

    Returns:
        {"name", "type": "time", "discountType", "discountValue",
         "timeFields": {"hoursBeforeStart"}}
    """
    return {
        "name": name,
        "type": "time",
        "discountType": discount_type,
        "discountValue": discount_value,
        "timeFields": {"hoursBeforeStart": hours_before_start},
    }


class _DiscountPatterns:
    """Ready-made descriptors for the common promotions."""

    @staticmethod
    def early_bird(percentage: float, hours_before_start: float = 48) -> Dict[str, Any]:
        return create_time_based_discount(
            f"Early Bird {round_half_up(percentage * 100)}% Off",
            hours_before_start,
            "percentage",
            percentage,
        )

    @staticmethod
    def last_minute(percentage: float, hours_before_start: float = 2) -> Dict[str, Any]:
        return create_time_based_discount(
            f"Last Minute {round_half_up(percentage * 100)}% Off",
            hours_before_start,
            "percentage",
            percentage,
        )

    @staticmethod
    def fixed_amount(amount: float, hours_before_start: float = 24) -> Dict[str, Any]:
        return create_time_based_discount(
            f"{_format_number(hours_before_start)}h Advance Booking - ${_format_number(amount)} Off",
            hours_before_start,
            "fixed_amount",
            amount,
        )


def _format_number(value: float) -> str:
    # 24.0 -> "24", 36.5 -> "36.5"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


discount_patterns = _DiscountPatterns()


@dataclass
class DiscountRule:
    """
    Discount rule attached to a class template or instance.

    Attributes:
        id: Rule identifier
        name: Display name, copied into the applied discount
        condition_type: hours_before_min | hours_before_max | always
        hours: Threshold for the time-based conditions
        value: Discount amount in cents
        is_active: Inactive rules are skipped
    """

    id: str
    name: str
    condition_type: str
    value: int
    hours: Optional[float] = None
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiscountRule":
        condition = data.get("condition") or {}
        discount = data.get("discount") or {}
        hours = condition.get("hours")
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            condition_type=condition.get("type", ""),
            hours=float(hours) if hours is not None else None,
            value=int(discount.get("value", 0)),
            is_active=bool(data.get("isActive", True)),
        )


def does_rule_apply(rule: DiscountRule, hours_until_class: float) -> bool:
    """
    Check a rule's condition against the time left before the class.

    hours_before_min: booked at least ``hours`` ahead (early bird).
    hours_before_max: booked within ``hours`` of the start, not after it.
    always: unconditional.
    """
    if rule.condition_type == HOURS_BEFORE_MIN:
        return rule.hours is not None and hours_until_class >= rule.hours
    if rule.condition_type == HOURS_BEFORE_MAX:
        return rule.hours is not None and 0 <= hours_until_class <= rule.hours
    if rule.condition_type == ALWAYS:
        return True
    return False


def _find_best_rule(rules: Sequence[DiscountRule], hours_until_class: float) -> Optional[DiscountRule]:
    best: Optional[DiscountRule] = None
    for rule in rules:
        if not rule.is_active or not does_rule_apply(rule, hours_until_class):
            continue
        if rule.value > 0 and (best is None or rule.value > best.value):
            best = rule
    return best


def _parse_rules(raw: Optional[List[Dict[str, Any]]]) -> List[DiscountRule]:
    return [DiscountRule.from_dict(item) for item in raw or []]


def calculate_best_discount(
    class_instance: Dict[str, Any],
    template: Dict[str, Any],
    booking_time: int,
) -> Dict[str, Any]:
    """
    Price a booking by applying the best discount rule.

    Args:
        class_instance: Instance document with ``startTime`` (epoch ms),
            optional ``price`` (cents) and ``discountRules``
        template: Template document with optional ``price`` and ``discountRules``
        booking_time: Booking moment, epoch ms

    Returns:
        {"originalPrice", "finalPrice", "appliedDiscount"} with prices in
        cents. ``appliedDiscount`` is None when no rule applies, otherwise
        {"source", "discountType", "creditsSaved", "ruleName"}.
    """
    original_price = class_instance.get("price")
    if original_price is None:
        original_price = template.get("price")
    if original_price is None:
        original_price = DEFAULT_PRICE_CENTS
    original_price = int(original_price)

    hours_until_class = (int(class_instance["startTime"]) - booking_time) / MS_PER_HOUR

    for source, raw_rules in (
        ("instance_rule", class_instance.get("discountRules")),
        ("template_rule", template.get("discountRules")),
    ):
        best = _find_best_rule(_parse_rules(raw_rules), hours_until_class)
        if best is None:
            continue

        final_price = max(0, original_price - best.value)
        return {
            "originalPrice": original_price,
            "finalPrice": final_price,
            "appliedDiscount": {
                "source": source,
                "discountType": "fixed_amount",
                "creditsSaved": cents_to_credits(original_price - final_price),
                "ruleName": best.name,
            },
        }

    return {
        "originalPrice": original_price,
        "finalPrice": original_price,
        "appliedDiscount": None,
    }
