"""
Storage operations for sources, raw listings and daily caps.

All functions take an AsyncSession and leave commit/rollback to the caller's
get_session() block. Promotion (canonical deal writes) lives in promotion.py.
"""

import hashlib
import json
import logging
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import select, update, nullsfirst
from sqlalchemy.ext.asyncio import AsyncSession

from .models import DailyInventoryCap, OnMarketDeal, OnMarketSource, RawListing
from ..analyst.schemas import ExtractedFields, ListingStub
from ..config.settings import settings
from ..config.sources import SOURCE_REGISTRY, SourceConfig

logger = logging.getLogger(__name__)


class RawChange(str, Enum):
    """How a stub compares to its stored raw listing."""
    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class RawStatus(str, Enum):
    ACTIVE = "active"
    CHANGED = "changed"


# =============================================================================
# Time helpers
# =============================================================================

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (sqlite drops tzinfo) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def civil_today(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> date:
    """
    "Today" in the configured civil timezone, independent of host local time.

    Examples:
        >>> civil_today(datetime(2026, 3, 1, 3, 0, tzinfo=timezone.utc), "America/Chicago")
        datetime.date(2026, 2, 28)
    """
    now = as_utc(now) or datetime.now(timezone.utc)
    return now.astimezone(ZoneInfo(tz_name or settings.civil_timezone)).date()


# =============================================================================
# Sources
# =============================================================================

async def seed_sources(
    session: AsyncSession,
    sources: Optional[List[SourceConfig]] = None,
) -> int:
    """Insert configured sources that are not in the database yet (matched by name)."""
    configs = sources if sources is not None else list(SOURCE_REGISTRY.values())
    result = await session.execute(select(OnMarketSource.name))
    existing = {row[0] for row in result.fetchall()}

    created = 0
    for config in configs:
        if config.name in existing:
            continue
        session.add(OnMarketSource(
            name=config.name,
            parser_key=config.parser_key.value,
            entry_url=config.entry_url,
            crawl_interval_minutes=config.crawl_interval_minutes,
            rate_limit_per_minute=config.rate_limit_per_minute,
            is_enabled=config.is_enabled,
        ))
        existing.add(config.name)
        created += 1

    await session.flush()
    if created:
        logger.info(f"Seeded {created} on-market sources")
    return created


async def list_enabled_sources(session: AsyncSession, limit: int) -> List[OnMarketSource]:
    """Enabled sources, least recently crawled first (never-crawled sources lead)."""
    stmt = (
        select(OnMarketSource)
        .where(OnMarketSource.is_enabled == True)  # noqa: E712
        .order_by(nullsfirst(OnMarketSource.last_crawled_at.asc()), OnMarketSource.id)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


def is_source_due(source: OnMarketSource, now: datetime) -> bool:
    """Due when never crawled or when crawl_interval_minutes have elapsed."""
    last = as_utc(source.last_crawled_at)
    if last is None:
        return True
    interval = source.crawl_interval_minutes if source.crawl_interval_minutes is not None else 1440
    return as_utc(now) - last >= timedelta(minutes=interval)


async def mark_source_crawled(session: AsyncSession, source_id: int, now: datetime) -> None:
    stmt = (
        update(OnMarketSource)
        .where(OnMarketSource.id == source_id)
        .values(last_crawled_at=now)
    )
    await session.execute(stmt)


# =============================================================================
# Raw listings
# =============================================================================

def stub_checksum(stub: ListingStub) -> str:
    """
    SHA-256 over the stub's stable projection (title, date, location, price).

    Missing fields hash as empty strings so None and "" are equivalent.
    """
    projection = {
        "title": stub.title or "",
        "maybe_date": stub.maybe_date or "",
        "maybe_location": stub.maybe_location or "",
        "maybe_price": stub.maybe_price or "",
    }
    payload = json.dumps(projection, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


async def get_raw_listing(
    session: AsyncSession,
    source_id: int,
    listing_url: str,
) -> Optional[RawListing]:
    stmt = select(RawListing).where(
        RawListing.source_id == source_id,
        RawListing.listing_url == listing_url,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def upsert_raw_listing(
    session: AsyncSession,
    source_id: int,
    stub: ListingStub,
    checksum: str,
    now: datetime,
) -> Tuple[RawListing, RawChange]:
    """
    Insert or refresh the raw listing for (source, URL).

    A different checksum marks the row "changed"; a matching one marks it
    "active". Either way there is exactly one row per (source, URL).
    """
    existing = await get_raw_listing(session, source_id, stub.listing_url)

    if existing is None:
        raw = RawListing(
            source_id=source_id,
            listing_url=stub.listing_url,
            title_raw=stub.title,
            payload_json={"stub": stub.model_dump()},
            checksum=checksum,
            status=RawStatus.ACTIVE.value,
            first_seen_at=now,
            last_seen_at=now,
        )
        session.add(raw)
        await session.flush()
        return raw, RawChange.NEW

    change = RawChange.UNCHANGED if existing.checksum == checksum else RawChange.CHANGED
    existing.title_raw = stub.title
    existing.checksum = checksum
    existing.status = RawStatus.CHANGED.value if change == RawChange.CHANGED else RawStatus.ACTIVE.value
    existing.last_seen_at = now
    existing.last_fetch_error = None
    existing.payload_json = {**(existing.payload_json or {}), "stub": stub.model_dump()}
    await session.flush()
    return existing, change


async def record_raw_extraction(
    session: AsyncSession,
    raw_listing_id: int,
    stub: ListingStub,
    extracted: ExtractedFields,
    now: datetime,
) -> None:
    """Store the parsed detail next to the stub for traceability."""
    stmt = (
        update(RawListing)
        .where(RawListing.id == raw_listing_id)
        .values(
            payload_json={"stub": stub.model_dump(), "extracted": extracted.model_dump()},
            last_fetch_error=None,
            last_seen_at=now,
        )
    )
    await session.execute(stmt)


async def record_raw_fetch_error(session: AsyncSession, raw_listing_id: int, message: str) -> None:
    stmt = (
        update(RawListing)
        .where(RawListing.id == raw_listing_id)
        .values(last_fetch_error=message[:1000])
    )
    await session.execute(stmt)


async def touch_deal_last_seen(session: AsyncSession, raw_listing_id: int, now: datetime) -> bool:
    """Bump last_seen_at on the canonical deal for a raw listing, if one exists."""
    stmt = (
        update(OnMarketDeal)
        .where(OnMarketDeal.primary_raw_listing_id == raw_listing_id)
        .values(last_seen_at=now)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


# =============================================================================
# Daily cap
# =============================================================================

async def get_daily_cap(session: AsyncSession, day: date) -> Optional[DailyInventoryCap]:
    result = await session.execute(
        select(DailyInventoryCap).where(DailyInventoryCap.day == day)
    )
    return result.scalar_one_or_none()


async def ensure_daily_cap(
    session: AsyncSession,
    day: date,
    default_cap: Optional[int] = None,
) -> DailyInventoryCap:
    """Create today's cap row if missing; an existing row keeps its cap and used."""
    existing = await get_daily_cap(session, day)
    if existing is not None:
        return existing

    cap = DailyInventoryCap(
        day=day,
        cap=default_cap if default_cap is not None else settings.daily_promotion_cap,
        used=0,
    )
    session.add(cap)
    await session.flush()
    logger.info(f"Created daily cap row for {day.isoformat()} (cap={cap.cap})")
    return cap
