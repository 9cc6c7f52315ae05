"""
Unit tests for multi-status cursor pagination
(kymaclub/api/pagination.py, kymaclub/api/bookings.get_all_bookings)
"""

import base64
import json

import pytest

from kymaclub.api.bookings import get_all_bookings
from kymaclub.api.pagination import decode_cursor, encode_cursor, paginate_streams
from kymaclub.domain.booking import Booking
from kymaclub.domain.exceptions import ValidationError


def make_booking(booking_id, status, booked_at, deleted=False):
    return Booking(
        booking_id=booking_id,
        user_id="user-1",
        business_id="biz-1",
        class_instance_id="ci-1",
        status=status,
        booked_at=booked_at,
        created_at=booked_at,
        deleted=deleted,
    )


class InMemoryStreams:
    """
    Status streams held in memory, read newest first like the status index.

    ``has_more`` is reported exactly, except when ``lazy_end`` is set, in
    which case a full page always claims more may follow (as DynamoDB does
    when LastEvaluatedKey is present).
    """

    def __init__(self, bookings, lazy_end=False):
        self.bookings = list(bookings)
        self.lazy_end = lazy_end
        self.calls = []

    def add(self, booking):
        self.bookings.append(booking)

    def fetch(self, status, start_key, limit):
        self.calls.append((status, start_key, limit))
        rows = sorted(
            (b for b in self.bookings if b.status == status and not b.deleted),
            key=lambda b: (b.booked_at, b.booking_id),
            reverse=True,
        )
        if start_key is not None:
            marker = (start_key["booked_at"], start_key["booking_id"])
            rows = [b for b in rows if (b.booked_at, b.booking_id) < marker]
        page = rows[:limit]
        has_more = len(rows) > limit or (self.lazy_end and len(page) == limit)
        return page, has_more


def drain(streams, statuses, num_items):
    pages = []
    cursor = None
    for _ in range(100):
        result = paginate_streams(streams.fetch, statuses, num_items, cursor)
        pages.append(result)
        if result["isDone"]:
            return pages
        cursor = result["continueCursor"]
    raise AssertionError("pagination did not terminate")


DATASET = [
    make_booking("p1", "pending", 100),
    make_booking("c1", "completed", 95),
    make_booking("p2", "pending", 90),
    make_booking("p3", "pending", 80),
    make_booking("c2", "completed", 75),
    make_booking("c3", "completed", 60),
    make_booking("n1", "no_show", 99),
    make_booking("pd", "pending", 85, deleted=True),
]


class TestCursorCodec:
    def test_round_trip(self):
        streams = {"pending": {"after": {"booking_id": "p1", "status": "pending", "booked_at": 1}, "done": False}}
        assert decode_cursor(encode_cursor(streams), ["pending"]) == streams

    def test_missing_cursor_starts_fresh(self):
        assert decode_cursor(None, ["a", "b"]) == {
            "a": {"after": None, "done": False},
            "b": {"after": None, "done": False},
        }

    @pytest.mark.parametrize(
        "cursor",
        [
            "not-base64!!",
            base64.urlsafe_b64encode(b"not json").decode(),
            base64.urlsafe_b64encode(json.dumps({"v": 99, "streams": {}}).encode()).decode(),
            base64.urlsafe_b64encode(json.dumps([1, 2]).encode()).decode(),
        ],
    )
    def test_malformed_cursor(self, cursor):
        with pytest.raises(ValidationError) as exc_info:
            decode_cursor(cursor, ["pending"])
        assert exc_info.value.code == "INVALID_CURSOR"

    @pytest.mark.parametrize("cursor", [12345, ["a"], {"streams": {}}])
    def test_non_string_cursor(self, cursor):
        with pytest.raises(ValidationError) as exc_info:
            decode_cursor(cursor, ["pending"])
        assert exc_info.value.code == "INVALID_CURSOR"

    @pytest.mark.parametrize(
        "after",
        [
            {"bogus": 1},
            {"booking_id": "p1", "status": "pending"},
            {"booking_id": "p1", "status": "pending", "booked_at": 1, "extra": "x"},
            {"booking_id": "p1", "status": "completed", "booked_at": 1},
            {"booking_id": "p1", "status": "pending", "booked_at": "1"},
            {"booking_id": "p1", "status": "pending", "booked_at": True},
            {"booking_id": 7, "status": "pending", "booked_at": 1},
            "p1",
        ],
    )
    def test_forged_resume_key_rejected(self, after):
        """Only a well-formed index key for the same stream is accepted."""
        cursor = encode_cursor({"pending": {"after": after, "done": False}})
        with pytest.raises(ValidationError) as exc_info:
            decode_cursor(cursor, ["pending"])
        assert exc_info.value.code == "INVALID_CURSOR"

    def test_unknown_stream_state_keys_rejected(self):
        cursor = encode_cursor({"pending": {"after": None, "done": False, "offset": 3}})
        with pytest.raises(ValidationError):
            decode_cursor(cursor, ["pending"])

    def test_cursor_for_other_statuses_rejected(self):
        cursor = encode_cursor({"no_show": {"after": None, "done": False}})
        with pytest.raises(ValidationError):
            decode_cursor(cursor, ["pending", "completed"])


class TestPaginateStreams:
    """Tests for paginate_streams()."""

    @pytest.mark.parametrize("num_items", [0, -1, None, "5", True])
    def test_invalid_page_size(self, num_items):
        with pytest.raises(ValidationError) as exc_info:
            paginate_streams(InMemoryStreams([]).fetch, ["pending"], num_items)
        assert exc_info.value.code == "INVALID_PAGE_SIZE"

    def test_merges_newest_first(self):
        streams = InMemoryStreams(DATASET)

        result = paginate_streams(streams.fetch, ["pending", "completed"], 4)

        assert [b.booking_id for b in result["page"]] == ["p1", "c1", "p2", "p3"]
        assert result["isDone"] is False
        assert result["continueCursor"]

    @pytest.mark.parametrize("num_items", [1, 2, 3, 4, 5, 6, 10])
    @pytest.mark.parametrize("lazy_end", [False, True])
    def test_pages_reconstruct_full_list(self, num_items, lazy_end):
        """Concatenated pages equal the full ordered list, with no repeats."""
        streams = InMemoryStreams(DATASET, lazy_end=lazy_end)

        pages = drain(streams, ["pending", "completed"], num_items)

        ids = [b.booking_id for page in pages for b in page["page"]]
        assert ids == ["p1", "c1", "p2", "p3", "c2", "c3"]
        assert all(len(page["page"]) <= num_items for page in pages)
        assert isinstance(pages[-1]["continueCursor"], str)

    def test_empty_streams(self):
        result = paginate_streams(InMemoryStreams([]).fetch, ["pending", "completed"], 5)
        assert result["page"] == []
        assert result["isDone"] is True
        assert isinstance(result["continueCursor"], str)

    def test_final_cursor_yields_empty_done_page(self):
        """The cursor of the last page can be passed back safely."""
        streams = InMemoryStreams(DATASET)
        last = drain(streams, ["pending", "completed"], 4)[-1]
        streams.calls.clear()

        again = paginate_streams(streams.fetch, ["pending", "completed"], 4, last["continueCursor"])

        assert again["page"] == []
        assert again["isDone"] is True
        assert streams.calls == []

    def test_exhausted_stream_not_requeried(self):
        """A stream marked done in the cursor is skipped on later pages."""
        streams = InMemoryStreams(
            [make_booking("p1", "pending", 60), make_booking("c1", "completed", 50),
             make_booking("c2", "completed", 40), make_booking("c3", "completed", 30)]
        )

        first = paginate_streams(streams.fetch, ["pending", "completed"], 2)
        assert [b.booking_id for b in first["page"]] == ["p1", "c1"]

        streams.calls.clear()
        second = paginate_streams(streams.fetch, ["pending", "completed"], 2, first["continueCursor"])

        assert [call[0] for call in streams.calls] == ["completed"]
        assert [b.booking_id for b in second["page"]] == ["c2", "c3"]
        assert second["isDone"] is True

    def test_insert_between_pages_does_not_shift(self):
        """New bookings inserted after page one never duplicate or skip items."""
        streams = InMemoryStreams(DATASET)
        statuses = ["pending", "completed"]

        first = paginate_streams(streams.fetch, statuses, 2)
        streams.add(make_booking("new", "pending", 200))
        rest = []
        result = first
        while not result["isDone"]:
            result = paginate_streams(streams.fetch, statuses, 2, result["continueCursor"])
            rest.extend(b.booking_id for b in result["page"])

        ids = [b.booking_id for b in first["page"]] + rest
        assert ids == ["p1", "c1", "p2", "p3", "c2", "c3"]


class TestGetAllBookings:
    """Tests for get_all_bookings()."""

    class Repo:
        def __init__(self, bookings):
            self.streams = InMemoryStreams(bookings)

        def query_status_page(self, status, start_key, limit):
            return self.streams.fetch(status, start_key, limit)

    def test_latest_merges_pending_and_completed(self):
        result = get_all_bookings(self.Repo(DATASET), {"numItems": 3, "cursor": None})

        assert [b["_id"] for b in result["page"]] == ["p1", "c1", "p2"]
        assert result["page"][0]["status"] == "pending"
        assert result["page"][0]["bookedAt"] == 100

    def test_single_status_filter(self):
        result = get_all_bookings(self.Repo(DATASET), {"numItems": 10}, status="no_show")

        assert [b["_id"] for b in result["page"]] == ["n1"]
        assert result["isDone"] is True

    def test_unknown_status(self):
        with pytest.raises(ValidationError) as exc_info:
            get_all_bookings(self.Repo(DATASET), {"numItems": 10}, status="pending")
        assert exc_info.value.code == "INVALID_STATUS"

    def test_pagination_opts_required(self):
        with pytest.raises(ValidationError):
            get_all_bookings(self.Repo(DATASET), None)

    def test_configured_latest_statuses(self):
        result = get_all_bookings(
            self.Repo(DATASET), {"numItems": 10}, latest_statuses=["completed"]
        )
        assert [b["_id"] for b in result["page"]] == ["c1", "c2", "c3"]
