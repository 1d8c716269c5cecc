"""
Tests for source, raw listing and daily cap storage (in-memory SQLite).
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from onmarket.analyst.schemas import ExtractedFields, ListingStub
from onmarket.archivist.database import get_session
from onmarket.archivist.models import DailyInventoryCap, OnMarketSource, RawListing
from onmarket.archivist.storage import (
    RawChange,
    as_utc,
    civil_today,
    ensure_daily_cap,
    get_raw_listing,
    is_source_due,
    list_enabled_sources,
    mark_source_crawled,
    record_raw_extraction,
    record_raw_fetch_error,
    seed_sources,
    stub_checksum,
    upsert_raw_listing,
)
from onmarket.config.sources import ParserKey, SourceConfig, get_all_sources


def _source(name, **kwargs):
    defaults = {
        "name": name,
        "parser_key": ParserKey.BROKER_HTML.value,
        "entry_url": "https://www.synergybb.com/industries/hvac/",
    }
    defaults.update(kwargs)
    return OnMarketSource(**defaults)


async def _add_source(**kwargs) -> int:
    async with get_session() as session:
        source = _source(kwargs.pop("name", "Test Source"), **kwargs)
        session.add(source)
        await session.flush()
        return source.id


# =============================================================================
# Time helpers
# =============================================================================
class TestCivilToday:
    def test_utc(self):
        now = datetime(2026, 3, 1, 3, 0, tzinfo=timezone.utc)
        assert civil_today(now, "UTC") == date(2026, 3, 1)

    def test_configured_zone_can_lag_utc(self):
        now = datetime(2026, 3, 1, 3, 0, tzinfo=timezone.utc)
        assert civil_today(now, "America/Chicago") == date(2026, 2, 28)

    def test_naive_is_treated_as_utc(self):
        assert as_utc(datetime(2026, 1, 1, 12, 0)) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Sources
# =============================================================================
class TestSources:
    @pytest.mark.asyncio
    async def test_seed_sources_is_idempotent(self, db):
        async with get_session() as session:
            created = await seed_sources(session)
        async with get_session() as session:
            again = await seed_sources(session)
            count = (await session.execute(select(func.count()).select_from(OnMarketSource))).scalar_one()

        assert created == len(get_all_sources())
        assert again == 0
        assert count == len(get_all_sources())

    @pytest.mark.asyncio
    async def test_seed_keeps_config_values(self, db):
        config = SourceConfig(
            name="Feed Broker",
            parser_key=ParserKey.RSS,
            entry_url="https://brokerfeed.example.com/feed/",
            rate_limit_per_minute=6,
        )
        async with get_session() as session:
            await seed_sources(session, [config])
        async with get_session() as session:
            row = (await session.execute(select(OnMarketSource))).scalar_one()

        assert row.parser_key == "rss_generic"
        assert row.rate_limit_per_minute == 6
        assert row.last_crawled_at is None

    @pytest.mark.asyncio
    async def test_list_enabled_orders_never_crawled_first(self, db, run_time):
        await _add_source(name="Crawled long ago", last_crawled_at=run_time - timedelta(days=3))
        await _add_source(name="Disabled", is_enabled=False)
        await _add_source(name="Never crawled")
        await _add_source(name="Crawled recently", last_crawled_at=run_time - timedelta(hours=1))

        async with get_session() as session:
            sources = await list_enabled_sources(session, limit=10)

        assert [s.name for s in sources] == ["Never crawled", "Crawled long ago", "Crawled recently"]

    @pytest.mark.asyncio
    async def test_list_enabled_respects_limit(self, db):
        for i in range(3):
            await _add_source(name=f"Source {i}")
        async with get_session() as session:
            assert len(await list_enabled_sources(session, limit=2)) == 2

    def test_is_source_due(self, run_time):
        assert is_source_due(_source("a"), run_time)
        assert is_source_due(_source("b", last_crawled_at=run_time - timedelta(minutes=1440)), run_time)
        assert not is_source_due(_source("c", last_crawled_at=run_time - timedelta(minutes=1439)), run_time)
        assert is_source_due(
            _source("d", crawl_interval_minutes=60, last_crawled_at=run_time - timedelta(minutes=61)),
            run_time,
        )

    def test_naive_last_crawled_is_utc(self, run_time):
        naive = (run_time - timedelta(hours=2)).replace(tzinfo=None)
        assert not is_source_due(_source("e", last_crawled_at=naive), run_time)

    @pytest.mark.asyncio
    async def test_mark_source_crawled(self, db, run_time):
        source_id = await _add_source()
        async with get_session() as session:
            await mark_source_crawled(session, source_id, run_time)
        async with get_session() as session:
            source = await session.get(OnMarketSource, source_id)

        assert as_utc(source.last_crawled_at) == run_time


# =============================================================================
# Raw listings
# =============================================================================
class TestStubChecksum:
    def test_stable_and_hex(self):
        stub = ListingStub(listing_url="https://x.com/listing/1", title="HVAC Co")
        assert stub_checksum(stub) == stub_checksum(stub.model_copy())
        assert len(stub_checksum(stub)) == 64

    def test_url_is_not_part_of_checksum(self):
        a = ListingStub(listing_url="https://x.com/listing/1", title="HVAC Co")
        b = ListingStub(listing_url="https://x.com/listing/2", title="HVAC Co")
        assert stub_checksum(a) == stub_checksum(b)

    def test_none_and_empty_are_equivalent(self):
        a = ListingStub(listing_url="https://x.com/listing/1", title="HVAC Co", maybe_price=None)
        b = ListingStub(listing_url="https://x.com/listing/1", title="HVAC Co", maybe_price="")
        assert stub_checksum(a) == stub_checksum(b)

    def test_title_change_changes_checksum(self):
        a = ListingStub(listing_url="https://x.com/listing/1", title="HVAC Co")
        b = ListingStub(listing_url="https://x.com/listing/1", title="HVAC Co - Price Reduced")
        assert stub_checksum(a) != stub_checksum(b)


class TestUpsertRawListing:
    URL = "https://www.synergybb.com/listings/hvac-dallas/"

    async def _upsert(self, source_id, title, now):
        stub = ListingStub(listing_url=self.URL, title=title)
        async with get_session() as session:
            raw, change = await upsert_raw_listing(session, source_id, stub, stub_checksum(stub), now)
            return raw.id, change

    @pytest.mark.asyncio
    async def test_new_unchanged_changed(self, db, run_time):
        source_id = await _add_source()

        first_id, first = await self._upsert(source_id, "HVAC Co", run_time)
        second_id, second = await self._upsert(source_id, "HVAC Co", run_time + timedelta(days=1))
        third_id, third = await self._upsert(source_id, "HVAC Co (reduced)", run_time + timedelta(days=2))

        assert (first, second, third) == (RawChange.NEW, RawChange.UNCHANGED, RawChange.CHANGED)
        assert first_id == second_id == third_id

        async with get_session() as session:
            count = (await session.execute(select(func.count()).select_from(RawListing))).scalar_one()
            raw = await get_raw_listing(session, source_id, self.URL)

        assert count == 1
        assert raw.status == "changed"
        assert raw.title_raw == "HVAC Co (reduced)"
        assert as_utc(raw.first_seen_at) == run_time
        assert as_utc(raw.last_seen_at) == run_time + timedelta(days=2)

    @pytest.mark.asyncio
    async def test_identical_stub_twice_is_active(self, db, run_time):
        source_id = await _add_source()
        await self._upsert(source_id, "HVAC Co", run_time)
        _, change = await self._upsert(source_id, "HVAC Co", run_time)

        async with get_session() as session:
            raw = await get_raw_listing(session, source_id, self.URL)

        assert change == RawChange.UNCHANGED
        assert raw.status == "active"

    @pytest.mark.asyncio
    async def test_same_url_under_two_sources(self, db, run_time):
        first = await _add_source(name="Source A")
        second = await _add_source(name="Source B")
        a_id, _ = await self._upsert(first, "HVAC Co", run_time)
        b_id, change = await self._upsert(second, "HVAC Co", run_time)

        assert a_id != b_id
        assert change == RawChange.NEW

    @pytest.mark.asyncio
    async def test_fetch_error_then_extraction(self, db, run_time):
        source_id = await _add_source()
        raw_id, _ = await self._upsert(source_id, "HVAC Co", run_time)

        async with get_session() as session:
            await record_raw_fetch_error(session, raw_id, "HTTP 503")
        async with get_session() as session:
            assert (await session.get(RawListing, raw_id)).last_fetch_error == "HTTP 503"

        stub = ListingStub(listing_url=self.URL, title="HVAC Co")
        async with get_session() as session:
            await record_raw_extraction(
                session, raw_id, stub, ExtractedFields(city="Dallas", state="TX"), run_time,
            )
        async with get_session() as session:
            raw = await session.get(RawListing, raw_id)

        assert raw.last_fetch_error is None
        assert raw.payload_json["stub"]["title"] == "HVAC Co"
        assert raw.payload_json["extracted"]["city"] == "Dallas"


# =============================================================================
# Daily cap
# =============================================================================
class TestDailyCap:
    @pytest.mark.asyncio
    async def test_created_with_default_cap(self, db):
        async with get_session() as session:
            cap = await ensure_daily_cap(session, date(2026, 3, 2))
            assert (cap.cap, cap.used) == (10, 0)

    @pytest.mark.asyncio
    async def test_existing_row_is_not_reset(self, db):
        day = date(2026, 3, 2)
        async with get_session() as session:
            session.add(DailyInventoryCap(day=day, cap=3, used=2))
        async with get_session() as session:
            cap = await ensure_daily_cap(session, day, default_cap=10)

        assert (cap.cap, cap.used) == (3, 2)
