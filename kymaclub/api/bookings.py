"""
Admin booking queries: paginated booking list and dashboard metrics.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from kymaclub.api.pagination import paginate_streams
from kymaclub.domain.booking import BookingStatus
from kymaclub.domain.credits import round_half_up
from kymaclub.domain.exceptions import ValidationError
from kymaclub.utils.logger import get_logger, log_operation
from kymaclub.utils.timezone import month_bounds_ms, month_label, now_local, shift_months

logger = get_logger(__name__)

LATEST = "latest"
DEFAULT_LATEST_STATUSES = (BookingStatus.PENDING.value, BookingStatus.COMPLETED.value)
STATUS_FILTERS = (
    LATEST,
    BookingStatus.CANCELLED_BY_CONSUMER.value,
    BookingStatus.CANCELLED_BY_BUSINESS.value,
    BookingStatus.NO_SHOW.value,
)


@log_operation("get_all_bookings")
def get_all_bookings(
    repository: Any,
    pagination_opts: Dict[str, Any],
    status: Optional[str] = None,
    latest_statuses: Sequence[str] = DEFAULT_LATEST_STATUSES,
) -> Dict[str, Any]:
    """
    List bookings across all businesses, newest first.

    Args:
        repository: BookingRepository (``query_status_page``)
        pagination_opts: {"numItems": int, "cursor": str | None}
        status: "latest" (default), "cancelled_by_consumer",
            "cancelled_by_business" or "no_show"
        latest_statuses: Statuses merged for the "latest" view

    Returns:
        {"page": [booking dicts], "isDone": bool, "continueCursor": str}
    """
    status = status or LATEST
    if status not in STATUS_FILTERS:
        raise ValidationError(
            f"Unsupported status filter: {status}", field="status", code="INVALID_STATUS"
        )

    if not isinstance(pagination_opts, dict):
        raise ValidationError(
            "paginationOpts is required", field="paginationOpts", code="INVALID_PAGINATION"
        )

    statuses = list(latest_statuses) if status == LATEST else [status]
    result = paginate_streams(
        repository.query_status_page,
        statuses,
        pagination_opts.get("numItems"),
        pagination_opts.get("cursor"),
    )

    logger.info(
        f"Returned {len(result['page'])} bookings",
        operation="get_all_bookings",
        context={"status": status, "is_done": result["isDone"]},
    )
    return {
        "page": [booking.to_response() for booking in result["page"]],
        "isDone": result["isDone"],
        "continueCursor": result["continueCursor"],
    }


def calculate_diff(current: int, previous: int) -> int:
    """Whole-percent change; 100 when growing from zero."""
    if previous == 0:
        return 100 if current > 0 else 0
    return round_half_up(((current - previous) / previous) * 100)


def calculate_percentage_diff(current: float, previous: float) -> float:
    """Percentage-point difference rounded to two decimals."""
    return round_half_up((current - previous) * 100) / 100


def _no_show_percentage(counts: Dict[str, int]) -> float:
    total = sum(counts.values())
    if total == 0:
        return 0.0
    return counts[BookingStatus.NO_SHOW.value] / total * 100


@log_operation("get_bookings_metric")
def get_bookings_metric(
    repository: Any,
    now: Optional[datetime] = None,
    trend_months: int = 12,
    max_workers: int = 5,
) -> Dict[str, Any]:
    """
    Dashboard metrics for the admin overview.

    Counts are taken per status and per local (Europe/Athens) month and
    fanned out over a thread pool.

    Returns:
        {
          "completedBookings": {"value", "diff", "label"},
          "noShowPercentage": {"value", "diff", "label"},
          "trend": [{"month", "completed", "cancelled", "noShows"}, ...]
        }
    """
    current = now or now_local()
    tracked = (
        BookingStatus.COMPLETED.value,
        BookingStatus.NO_SHOW.value,
        BookingStatus.CANCELLED_BY_CONSUMER.value,
        BookingStatus.CANCELLED_BY_BUSINESS.value,
    )

    months = [shift_months(current, -offset) for offset in range(trend_months - 1, -1, -1)]
    if trend_months < 2:
        months = [shift_months(current, -1)] + months
    bounds = [month_bounds_ms(month) for month in months]

    tasks: List[Tuple[int, str]] = [
        (month_index, status) for month_index in range(len(months)) for status in tracked
    ]

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            task: executor.submit(
                repository.count_status_in_range, task[1], *bounds[task[0]]
            )
            for task in tasks
        }
        counts = {task: future.result() for task, future in futures.items()}

    def month_counts(month_index: int) -> Dict[str, int]:
        return {status: counts[(month_index, status)] for status in tracked}

    this_month = month_counts(len(months) - 1)
    last_month = month_counts(len(months) - 2)

    no_show_this = _no_show_percentage(this_month)
    no_show_last = _no_show_percentage(last_month)

    trend = []
    for month_index in range(len(months) - trend_months, len(months)):
        month = month_counts(month_index)
        trend.append(
            {
                "month": month_label(months[month_index]),
                "completed": month[BookingStatus.COMPLETED.value],
                "cancelled": month[BookingStatus.CANCELLED_BY_CONSUMER.value]
                + month[BookingStatus.CANCELLED_BY_BUSINESS.value],
                "noShows": month[BookingStatus.NO_SHOW.value],
            }
        )

    completed_this = this_month[BookingStatus.COMPLETED.value]
    completed_last = last_month[BookingStatus.COMPLETED.value]

    return {
        "completedBookings": {
            "value": completed_this,
            "diff": calculate_diff(completed_this, completed_last),
            "label": "Completed Bookings",
        },
        "noShowPercentage": {
            "value": round_half_up(no_show_this * 100) / 100,
            "diff": calculate_percentage_diff(no_show_this, no_show_last),
            "label": "No-Show Percentage",
        },
        "trend": trend,
    }
