"""
Credit/currency conversions.

Credits are the platform's booking currency. Money is always handled in
integer cents to avoid floating-point drift; credits may be fractional.
"""

import math
from typing import Union

from kymaclub.domain.exceptions import CreditsError

Number = Union[int, float]

CREDITS_TO_CENTS_RATIO = 50  # 1 credit = 0.50 EUR
CENTS_PER_EURO = 100
MIN_CREDITS = 0
MAX_CREDITS = 1_000_000


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def _validate_amount(value: Number, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CreditsError(f"{field_name} must be a number")
    if not math.isfinite(value):
        raise CreditsError(f"{field_name} must be a finite number")
    if value < 0:
        raise CreditsError(f"{field_name} cannot be negative")
    if field_name == "Credits" and value > MAX_CREDITS:
        raise CreditsError(f"{field_name} exceeds maximum allowed value")


def _validate_cents(value: Number, field_name: str = "Cents") -> None:
    _validate_amount(value, field_name)
    if isinstance(value, float) and not value.is_integer():
        raise CreditsError(f"{field_name} must be an integer (cents)")


def credits_to_cents(credits: Number) -> int:
    _validate_amount(credits, "Credits")
    return round_half_up(credits * CREDITS_TO_CENTS_RATIO)


def cents_to_credits(cents: Number) -> float:
    _validate_cents(cents)
    return cents / CREDITS_TO_CENTS_RATIO


def cents_to_euros(cents: Number) -> float:
    _validate_cents(cents)
    return cents / CENTS_PER_EURO


def euros_to_cents(euros: Number) -> int:
    _validate_amount(euros, "Euros")
    return round_half_up(euros * CENTS_PER_EURO)


def has_sufficient_credits(user_credits: Number, required_credits: Number) -> bool:
    _validate_amount(user_credits, "User credits")
    _validate_amount(required_credits, "Required credits")
    return user_credits >= required_credits


def has_sufficient_credits_for_price(user_credits: Number, price_in_cents: Number) -> bool:
    """Check a credit balance against a price expressed in cents."""
    _validate_amount(user_credits, "User credits")
    return user_credits >= cents_to_credits(price_in_cents)
