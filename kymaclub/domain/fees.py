"""
Platform fee-rate rules.

A business's fee rate is restricted to a fixed set of values and every change
needs a short written justification for the audit trail.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Tuple

from kymaclub.domain.exceptions import ValidationError

ALLOWED_FEE_RATES: Tuple[Decimal, ...] = tuple(
    Decimal(value) for value in ("0", "0.05", "0.1", "0.15", "0.2", "0.25", "0.3")
)
MIN_REASON_LENGTH = 3


def to_rate_decimal(rate: Any) -> Decimal:
    """
    Normalise a float/str/Decimal rate for exact comparison.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not its binary
    expansion.
    """
    if isinstance(rate, bool):
        raise ValidationError("Fee rate must be a number", field="newFeeRate", code="INVALID_FEE_RATE")
    try:
        return Decimal(str(rate)).normalize()
    except (InvalidOperation, ValueError):
        raise ValidationError(
            "Fee rate must be a number", field="newFeeRate", code="INVALID_FEE_RATE"
        )


def validate_fee_rate(rate: Any) -> Decimal:
    """
    Return the rate as Decimal, or raise ValidationError if it is not allowed.
    """
    value = to_rate_decimal(rate)
    if value not in ALLOWED_FEE_RATES:
        allowed = ", ".join(f"{int(r * 100)}%" for r in ALLOWED_FEE_RATES)
        raise ValidationError(
            f"Invalid fee rate. Allowed values: {allowed}",
            field="newFeeRate",
            code="INVALID_FEE_RATE",
        )
    return value


def validate_reason(reason: Any) -> str:
    """Return the trimmed reason, or raise ValidationError if too short."""
    if not isinstance(reason, str) or len(reason.strip()) < MIN_REASON_LENGTH:
        raise ValidationError(
            f"Reason must be at least {MIN_REASON_LENGTH} characters",
            field="reason",
            code="INVALID_REASON",
        )
    return reason.strip()


def rate_to_percent(rate: Any) -> int:
    return int((to_rate_decimal(rate) * 100).to_integral_value())


def fee_change_message(previous_rate: Any, new_rate: Any) -> str:
    return (
        f"Fee rate updated from {rate_to_percent(previous_rate)}% "
        f"to {rate_to_percent(new_rate)}%"
    )
