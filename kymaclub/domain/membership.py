"""
Membership tiers derived from a consumer's lifetime booking count.

Tiers are never stored; they are recomputed from the count on every read.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class MembershipTier:
    """
    Attributes:
        name: Display label
        min_bookings: Smallest count in this band (inclusive)
        colors: (primary, secondary) gradient colors for the membership card
    """

    name: str
    min_bookings: int
    colors: Tuple[str, str]

    def to_dict(self) -> dict:
        return {
            "tier": self.name,
            "minBookings": self.min_bookings,
            "colors": {"primary": self.colors[0], "secondary": self.colors[1]},
        }


NEWBIE = MembershipTier("Newbie", 0, ("#64748b", "#cbd5e1"))
RISING_STAR = MembershipTier("Rising Star", 11, ("#10b981", "#6ee7b7"))
PRO = MembershipTier("Pro", 101, ("#3b82f6", "#93c5fd"))
VIP = MembershipTier("VIP", 1000, ("#f59e0b", "#fcd34d"))

# Ordered by min_bookings; bands are contiguous from 0 upwards.
TIERS: Tuple[MembershipTier, ...] = (NEWBIE, RISING_STAR, PRO, VIP)


def get_membership_tier(booking_count: int) -> MembershipTier:
    """
    Map a lifetime booking count to its tier.

    Counts below zero are treated as zero.

    Example:
        >>> get_membership_tier(10).name
        'Newbie'
        >>> get_membership_tier(11).name
        'Rising Star'
    """
    tier = NEWBIE
    for candidate in TIERS:
        if booking_count >= candidate.min_bookings:
            tier = candidate
    return tier
