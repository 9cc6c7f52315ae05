"""
Timezone helpers.

Business-facing month boundaries (metrics, trends) are computed in the
platform's home timezone, Europe/Athens, regardless of where the code runs.
"""

from datetime import datetime, timezone
from typing import Optional, Tuple

import pytz

ATHENS = pytz.timezone("Europe/Athens")


def now_local() -> datetime:
    """Return the current time as an aware Europe/Athens datetime."""
    return datetime.now(timezone.utc).astimezone(ATHENS)


def to_epoch_ms(value: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return int(value.timestamp() * 1000)


def shift_months(value: datetime, months: int) -> datetime:
    """
    Move an aware local datetime by whole months, clamping to the first day.

    Only the year/month matter to callers, so the day is pinned to 1 to avoid
    month-length overflow (e.g. 31 March minus one month).
    """
    month_index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(month_index, 12)
    naive = datetime(year, month + 1, 1, 12, 0, 0)
    return ATHENS.localize(naive)


def month_bounds_ms(value: Optional[datetime] = None) -> Tuple[int, int]:
    """
    Return (start, end) epoch milliseconds of the local month containing value.

    The end bound is inclusive: the last millisecond before the next month.
    """
    local = (value or now_local()).astimezone(ATHENS)
    start = ATHENS.localize(datetime(local.year, local.month, 1))
    next_month = shift_months(start, 1)
    next_start = ATHENS.localize(datetime(next_month.year, next_month.month, 1))
    return to_epoch_ms(start), to_epoch_ms(next_start) - 1


def month_label(value: datetime) -> str:
    """Short English month label, e.g. "Jan"."""
    return value.strftime("%b")
