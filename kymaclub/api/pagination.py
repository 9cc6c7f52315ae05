"""
Cursor pagination over one or more booking status partitions.

Each status is an independent stream read newest-first from the status
index. A page is the k-way merge of the streams by ``booked_at``; the cursor
records, per stream, the index key of the last booking handed out. Resuming
from stored keys instead of an offset means bookings inserted between page
requests never shift or repeat items on later pages.
"""

import base64
import binascii
import heapq
import json
from itertools import islice
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from kymaclub.domain.booking import Booking
from kymaclub.domain.exceptions import ValidationError

CURSOR_VERSION = 1
INDEX_KEY_FIELDS = {"booking_id", "status", "booked_at"}

# fetch(status, start_key, limit) -> (bookings newest first, has_more)
StreamFetcher = Callable[[str, Optional[Dict[str, Any]], int], Tuple[List[Booking], bool]]


def encode_cursor(streams: Dict[str, Dict[str, Any]]) -> str:
    raw = json.dumps({"v": CURSOR_VERSION, "streams": streams}, separators=(",", ":"), sort_keys=True)
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def _invalid_cursor() -> ValidationError:
    return ValidationError("Invalid pagination cursor", field="paginationOpts.cursor", code="INVALID_CURSOR")


def _is_index_key(key: Any, status: str) -> bool:
    # Must match Booking.index_key exactly; it becomes ExclusiveStartKey.
    if not isinstance(key, dict) or set(key) != INDEX_KEY_FIELDS:
        return False
    booked_at = key["booked_at"]
    return (
        isinstance(key["booking_id"], str)
        and key["booking_id"] != ""
        and key["status"] == status
        and isinstance(booked_at, int)
        and not isinstance(booked_at, bool)
    )


def decode_cursor(cursor: Optional[str], statuses: Sequence[str]) -> Dict[str, Dict[str, Any]]:
    """
    Decode a cursor into per-status stream state.

    A missing cursor starts every stream from the top.

    Raises:
        ValidationError: If the cursor is malformed or was issued for a
            different set of statuses
    """
    if cursor is None or cursor == "":
        return {status: {"after": None, "done": False} for status in statuses}
    if not isinstance(cursor, str):
        raise _invalid_cursor()

    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
    except (binascii.Error, ValueError, UnicodeError):
        raise _invalid_cursor()

    if not isinstance(data, dict) or data.get("v") != CURSOR_VERSION:
        raise _invalid_cursor()

    streams = data.get("streams")
    if not isinstance(streams, dict) or set(streams) != set(statuses):
        raise _invalid_cursor()

    for status, state in streams.items():
        if not isinstance(state, dict) or set(state) != {"after", "done"}:
            raise _invalid_cursor()
        if not isinstance(state["done"], bool):
            raise _invalid_cursor()
        if state["after"] is not None and not _is_index_key(state["after"], status):
            raise _invalid_cursor()

    return streams


def paginate_streams(
    fetch: StreamFetcher,
    statuses: Sequence[str],
    num_items: int,
    cursor: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Return one page of bookings merged across status streams.

    Args:
        fetch: Reads one stream (see StreamFetcher)
        statuses: Stream names, in tie-break priority order
        num_items: Page size
        cursor: ``continueCursor`` from the previous page, or None

    Returns:
        {"page": [Booking, ...], "isDone": bool, "continueCursor": str}.
        The cursor is always a string. Once ``isDone`` is True it marks every
        stream finished, so passing it back yields an empty, done page.
    """
    if isinstance(num_items, bool) or not isinstance(num_items, int) or num_items <= 0:
        raise ValidationError(
            "numItems must be a positive integer",
            field="paginationOpts.numItems",
            code="INVALID_PAGE_SIZE",
        )

    state = decode_cursor(cursor, statuses)

    fetched: Dict[str, Tuple[List[Booking], bool]] = {}
    for status in statuses:
        if state[status]["done"]:
            fetched[status] = ([], False)
        else:
            fetched[status] = fetch(status, state[status]["after"], num_items)

    merged = heapq.merge(
        *[[(status, booking) for booking in fetched[status][0]] for status in statuses],
        key=lambda pair: pair[1].booked_at,
        reverse=True,
    )
    taken = list(islice(merged, num_items))

    consumed: Dict[str, int] = {status: 0 for status in statuses}
    last_taken: Dict[str, Booking] = {}
    for status, booking in taken:
        consumed[status] += 1
        last_taken[status] = booking

    next_state: Dict[str, Dict[str, Any]] = {}
    for status in statuses:
        items, has_more = fetched[status]
        previous = state[status]
        exhausted = consumed[status] == len(items) and not has_more
        next_state[status] = {
            "after": last_taken[status].index_key if status in last_taken else previous["after"],
            "done": previous["done"] or exhausted,
        }

    is_done = all(s["done"] for s in next_state.values())
    return {
        "page": [booking for _, booking in taken],
        "isDone": is_done,
        "continueCursor": encode_cursor(next_state),
    }
