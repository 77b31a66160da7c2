"""Tests for the import orchestrator and HTTP response mapping."""

import asyncio
import dataclasses
import re
from typing import Optional

import pytest

from event_import.errors import (
    BrokerTimeoutError,
    DuplicateSourceError,
    ImportDeadlineError,
    ImportFailedError,
    InvalidDateOverrideError,
    NoDataFoundError,
    PersistenceError,
    UnsafeUrlError,
    UnsupportedPlatformError,
)
from event_import.models import (
    CanonicalEventRecord,
    ImportOutcome,
    ImportRequest,
    Platform,
    RawImportedEvent,
)
from event_import.pipeline import build_response, error_response, import_from_url
from event_import.store import JsonEventStore

from helpers import (
    FLIP_MULTI_SHOWTIME_HTML,
    FLIP_SCHEDULE_HTML,
    LUMA_HTML,
    facebook_item,
    html_response,
    json_response,
)

EVENT_URL = "https://www.facebook.com/events/123456789/"
SEARCH_URL = "https://www.facebook.com/events/search/?q=dalat"
FLIP_URL = "https://flip.vn/events/korea-spotlight-showcase-1568153199"


def request_for(url: str, user: str = "user-1") -> ImportRequest:
    return ImportRequest(url=url, requesting_user_id=user)


class FailingStore(JsonEventStore):
    """Store whose inserts always fail."""

    async def insert(self, event: RawImportedEvent, created_by: Optional[str]) -> CanonicalEventRecord:
        raise PersistenceError("Database unavailable")


class RacingStore(JsonEventStore):
    """Store where another writer wins between the pre-check and the insert."""

    def __init__(self):
        super().__init__()
        self.lookups: list[str] = []

    async def exists(self, source_url: str) -> bool:
        return False

    async def insert(self, event: RawImportedEvent, created_by: Optional[str]) -> CanonicalEventRecord:
        await super().insert(event, "other-writer")
        raise DuplicateSourceError(event.source_url)

    async def find_by_source_url(self, source_url: str) -> Optional[CanonicalEventRecord]:
        self.lookups.append(source_url)
        return await super().find_by_source_url(source_url)


class UnreadableRaceStore(RacingStore):
    """Racing store whose follow-up lookup also fails."""

    async def find_by_source_url(self, source_url: str) -> Optional[CanonicalEventRecord]:
        self.lookups.append(source_url)
        raise PersistenceError("connection lost")


class SlowStore(JsonEventStore):
    async def insert(self, event: RawImportedEvent, created_by: Optional[str]) -> CanonicalEventRecord:
        await asyncio.sleep(5)
        return await super().insert(event, created_by)


class TestImportFromUrl:
    """End-to-end runs against mocked upstreams and an in-memory store."""

    @pytest.mark.asyncio
    async def test_facebook_search_batch(self, settings, store, recorder):
        items = [
            facebook_item("https://www.facebook.com/events/1/", "One"),
            facebook_item("https://www.facebook.com/events/2/", "Two", utcStartDate=None),
            facebook_item("https://www.facebook.com/events/3/", "Three"),
        ]
        handler = recorder(lambda request: json_response(items))
        async with handler.client() as client:
            outcome = await import_from_url(request_for(SEARCH_URL), store, settings, client)

        assert outcome.is_multiple
        assert (outcome.processed_count, outcome.skipped_count, outcome.error_count) == (2, 1, 0)
        assert outcome.details == ["Skipped: missing title or date - https://www.facebook.com/events/2/"]
        assert [r.title for r in outcome.records] == ["One", "Three"]
        assert all(r.platform == Platform.FACEBOOK_SEARCH for r in outcome.records)

        status, body = build_response(outcome)
        assert status == 200
        assert body.to_json() == {
            "success": True,
            "title": "Imported 2 events",
            "count": 2,
            "isMultiple": True,
            "message": "2 imported, 1 skipped, 0 errors",
        }

    @pytest.mark.asyncio
    async def test_unsafe_url_makes_no_network_call(self, settings, store, recorder):
        handler = recorder(lambda request: json_response([]))
        async with handler.client() as client:
            with pytest.raises(UnsafeUrlError):
                await import_from_url(
                    request_for("http://169.254.169.254/latest/meta-data/"), store, settings, client,
                )
        assert handler.calls == 0
        assert store.get_all() == []

    @pytest.mark.asyncio
    async def test_unsupported_url_makes_no_network_call(self, settings, store, recorder):
        handler = recorder(lambda request: json_response([]))
        async with handler.client() as client:
            with pytest.raises(UnsupportedPlatformError):
                await import_from_url(request_for("https://meetup.com/e/1"), store, settings, client)
        assert handler.calls == 0

    @pytest.mark.asyncio
    async def test_reimport_is_skipped(self, settings, store, recorder):
        handler = recorder(lambda request: json_response([facebook_item(EVENT_URL)]))
        async with handler.client() as client:
            first = await import_from_url(request_for(EVENT_URL), store, settings, client)
            second = await import_from_url(request_for(EVENT_URL, "user-2"), store, settings, client)

        assert first.processed_count == 1
        assert build_response(first)[1].slug == "jazz-night"
        assert (second.processed_count, second.skipped_count) == (0, 1)
        assert second.details == [f"Skipped: already exists - {EVENT_URL}"]
        assert len(store.get_all()) == 1
        assert store.get_all()[0].created_by == "user-1"

        status, body = build_response(second)
        assert status == 409
        assert body.error == "Event already exists or is missing required data"

    @pytest.mark.asyncio
    async def test_single_event_uses_first_item_only(self, settings, store, recorder):
        items = [facebook_item(EVENT_URL), facebook_item("https://www.facebook.com/events/999/", "Related")]
        handler = recorder(lambda request: json_response(items))
        async with handler.client() as client:
            outcome = await import_from_url(request_for(EVENT_URL), store, settings, client)
        assert outcome.processed_count == 1
        assert not outcome.is_multiple
        assert [r.title for r in store.get_all()] == ["Jazz Night"]

    @pytest.mark.asyncio
    async def test_luma_page(self, settings, store, recorder):
        handler = recorder(lambda request: html_response(LUMA_HTML))
        async with handler.client() as client:
            outcome = await import_from_url(request_for("https://lu.ma/sunset-jam"), store, settings, client)

        record = outcome.records[0]
        assert record.title == "Sunset Jam"
        assert record.starts_at == "2025-01-10T18:00:00Z"
        assert record.source_url == "https://lu.ma/sunset-jam"
        assert handler.requests[0].method == "GET"

        status, body = build_response(outcome)
        assert status == 200
        assert body.to_json() == {"success": True, "title": "Sunset Jam", "slug": "sunset-jam"}

    @pytest.mark.asyncio
    async def test_duplicates_inside_one_batch(self, settings, store, recorder):
        url = "https://www.facebook.com/events/7/"
        handler = recorder(lambda request: json_response([facebook_item(url), facebook_item(url)]))
        async with handler.client() as client:
            outcome = await import_from_url(request_for(SEARCH_URL), store, settings, client)
        assert (outcome.processed_count, outcome.skipped_count, outcome.error_count) == (1, 1, 0)
        assert len(store.get_all()) == 1

    @pytest.mark.asyncio
    async def test_insert_race_counts_as_skipped(self, settings, recorder):
        store = RacingStore()
        handler = recorder(lambda request: json_response([facebook_item(EVENT_URL)]))
        async with handler.client() as client:
            outcome = await import_from_url(request_for(EVENT_URL), store, settings, client)
        assert (outcome.processed_count, outcome.skipped_count, outcome.error_count) == (0, 1, 0)
        assert store.lookups == [EVENT_URL]

    @pytest.mark.asyncio
    async def test_single_event_persistence_failure(self, settings, recorder):
        handler = recorder(lambda request: json_response([facebook_item(EVENT_URL)]))
        async with handler.client() as client:
            with pytest.raises(ImportFailedError) as exc_info:
                await import_from_url(request_for(EVENT_URL), FailingStore(), settings, client)
        assert "Database unavailable" in exc_info.value.message
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_batch_with_only_errors_returns_outcome(self, settings, recorder):
        items = [facebook_item(f"https://www.facebook.com/events/{i}/") for i in range(3)]
        handler = recorder(lambda request: json_response(items))
        async with handler.client() as client:
            outcome = await import_from_url(request_for(SEARCH_URL), FailingStore(), settings, client)
        assert outcome.error_count == 3
        status, body = build_response(outcome)
        assert status == 500
        assert body.error.startswith("Error: Database unavailable")

    @pytest.mark.asyncio
    async def test_acquisition_errors_propagate(self, settings, store, recorder):
        handler = recorder(lambda request: json_response([]))
        async with handler.client() as client:
            with pytest.raises(NoDataFoundError):
                await import_from_url(request_for(SEARCH_URL), store, settings, client)

    @pytest.mark.asyncio
    async def test_broker_timeout_before_deadline(self, settings, store, recorder):
        settings = dataclasses.replace(settings, broker_timeout=0.05, request_deadline=1.0, page_timeout=0.5)

        async def slow(request):
            await asyncio.sleep(5)
            return json_response([])

        handler = recorder(slow)
        async with handler.client() as client:
            with pytest.raises(BrokerTimeoutError):
                await import_from_url(request_for(EVENT_URL), store, settings, client)

    @pytest.mark.asyncio
    async def test_request_deadline(self, settings, recorder):
        settings = dataclasses.replace(settings, broker_timeout=0.05, request_deadline=0.2, page_timeout=0.05)
        handler = recorder(lambda request: json_response([facebook_item(EVENT_URL)]))
        async with handler.client() as client:
            with pytest.raises(ImportDeadlineError) as exc_info:
                await import_from_url(request_for(EVENT_URL), SlowStore(), settings, client)
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_search_items_without_url_are_skipped(self, settings, store, recorder):
        items = [
            facebook_item("https://www.facebook.com/events/1/", "One"),
            facebook_item(None, "No Link A"),
            facebook_item(None, "No Link B"),
        ]
        handler = recorder(lambda request: json_response(items))
        async with handler.client() as client:
            outcome = await import_from_url(request_for(SEARCH_URL), store, settings, client)

        assert (outcome.processed_count, outcome.skipped_count, outcome.error_count) == (1, 2, 0)
        assert sorted(outcome.details) == [
            "Skipped: missing source URL - No Link A",
            "Skipped: missing source URL - No Link B",
        ]
        assert not await store.exists(SEARCH_URL)
        assert [r.source_url for r in store.get_all()] == ["https://www.facebook.com/events/1/"]

    @pytest.mark.asyncio
    async def test_failed_lookup_after_race_keeps_batch_going(self, settings, recorder):
        store = UnreadableRaceStore()
        items = [facebook_item(f"https://www.facebook.com/events/{i}/") for i in range(3)]
        handler = recorder(lambda request: json_response(items))
        async with handler.client() as client:
            outcome = await import_from_url(request_for(SEARCH_URL), store, settings, client)

        assert (outcome.processed_count, outcome.skipped_count, outcome.error_count) == (0, 3, 0)
        assert len(store.lookups) == 3

    @pytest.mark.asyncio
    async def test_records_import_timestamp(self, settings, store, recorder):
        handler = recorder(lambda request: json_response([facebook_item(EVENT_URL)]))
        async with handler.client() as client:
            outcome = await import_from_url(request_for(EVENT_URL), store, settings, client)

        imported_at = outcome.records[0].source_metadata["imported_at"]
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", imported_at)

    @pytest.mark.asyncio
    async def test_listing_schedule_from_description(self, settings, store, recorder):
        handler = recorder(lambda request: html_response(FLIP_SCHEDULE_HTML))
        async with handler.client() as client:
            outcome = await import_from_url(request_for(FLIP_URL), store, settings, client)

        record = outcome.records[0]
        assert record.title == "Korea Spotlight Showcase"
        assert record.starts_at == "2025-11-22T12:30:00Z"
        assert record.ends_at == "2025-11-22T15:00:00Z"
        assert record.location_name == "SECC – Outdoor, TP.HCM"
        assert record.city == "TP.HCM"
        assert record.status == "published"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("date,time,expected", [
        ("2026-03-15", None, "2026-03-15T12:00:00Z"),
        ("2026-03-15", "20:30", "2026-03-15T13:30:00Z"),
        ("15/03/2026", "09:00", "2026-03-15T02:00:00Z"),
    ])
    async def test_date_override_for_multi_showtime_page(
        self, settings, store, recorder, date: str, time, expected: str,
    ):
        handler = recorder(lambda request: html_response(FLIP_MULTI_SHOWTIME_HTML))
        request = ImportRequest(url=FLIP_URL, requesting_user_id="user-1", date=date, time=time)
        async with handler.client() as client:
            outcome = await import_from_url(request, store, settings, client)

        record = outcome.records[0]
        assert record.starts_at == expected
        assert record.ends_at is None
        assert record.status == "published"
        assert record.city == "Hà Nội"

    @pytest.mark.asyncio
    async def test_multi_showtime_without_date_is_draft(self, settings, store, recorder):
        handler = recorder(lambda request: html_response(FLIP_MULTI_SHOWTIME_HTML))
        async with handler.client() as client:
            outcome = await import_from_url(request_for(FLIP_URL), store, settings, client)
        assert outcome.records[0].starts_at is None
        assert outcome.records[0].status == "draft"

    @pytest.mark.asyncio
    async def test_invalid_date_override_makes_no_network_call(self, settings, store, recorder):
        handler = recorder(lambda request: html_response(FLIP_MULTI_SHOWTIME_HTML))
        request = ImportRequest(url=FLIP_URL, requesting_user_id="user-1", date="next friday")
        async with handler.client() as client:
            with pytest.raises(InvalidDateOverrideError) as exc_info:
                await import_from_url(request, store, settings, client)
        assert exc_info.value.status_code == 400
        assert handler.calls == 0


class TestResponses:
    """Tests for build_response and error_response."""

    def test_batch_all_skipped(self):
        outcome = ImportOutcome(platform=Platform.FACEBOOK_SEARCH, is_multiple=True, skipped_count=4)
        status, body = build_response(outcome)
        assert status == 409
        assert body.error == "4 events already exist or missing data"

    def test_single_processed_plural(self):
        outcome = ImportOutcome(platform=Platform.FACEBOOK_SEARCH, is_multiple=True, processed_count=1)
        assert build_response(outcome)[1].title == "Imported 1 event"

    def test_empty_batch_has_fallback_error(self):
        outcome = ImportOutcome(platform=Platform.FACEBOOK_SEARCH, is_multiple=True)
        status, body = build_response(outcome)
        assert status == 500
        assert body.error == "Failed to process event"

    @pytest.mark.parametrize("error,status", [
        (UnsafeUrlError(), 400),
        (UnsupportedPlatformError("Unsupported URL"), 400),
        (NoDataFoundError("No event data found at URL"), 404),
        (BrokerTimeoutError("timed out"), 504),
        (ImportDeadlineError("timed out"), 504),
    ])
    def test_error_statuses(self, error, status: int):
        code, body = error_response(error)
        assert code == status
        assert body.success is False
        assert body.error == error.message

    def test_unexpected_error(self):
        code, body = error_response(RuntimeError("boom"))
        assert code == 500
        assert body.to_json() == {"success": False, "error": "Failed to import event", "details": "boom"}
