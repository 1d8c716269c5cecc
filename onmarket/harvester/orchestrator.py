"""
Ingestion Orchestrator - One sequential crawl over all due listing sources.

Handles:
- Due-source selection (enabled, never crawled or interval elapsed)
- Index fetch/parse, stub truncation and checksum diffing against raw listings
- Detail fetch/parse, normalization and the gated, cap-limited deal upsert
- Error isolation: every failing stage is recorded and the loop moves on
- Metrics logging and a run summary for the caller

A canonical-write failure is the one exception to "record and continue": it
aborts the remaining stubs of that source (the source loop records it).
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from .base_parser import BaseParser
from .parsers import get_parser
from ..analyst.normalizer import NormalizeInput, normalize_deal
from ..analyst.schemas import ExtractedFields, ListingStub, ParserInput
from ..archivist.database import get_session
from ..archivist.models import OnMarketSource
from ..archivist.promotion import PromotionOutcome, upsert_deal_with_daily_cap
from ..archivist.storage import (
    RawChange,
    civil_today,
    ensure_daily_cap,
    is_source_due,
    list_enabled_sources,
    mark_source_crawled,
    record_raw_extraction,
    record_raw_fetch_error,
    stub_checksum,
    touch_deal_last_seen,
    upsert_raw_listing,
)
from ..common.http_client import create_scraper_client, fetch
from ..common.throttle import SourceThrottle
from ..config.settings import settings

logger = logging.getLogger(__name__)


# Stage names recorded in IngestionError.where
WHERE_FETCH_INDEX = "fetch index"
WHERE_PARSE_INDEX = "parse index"
WHERE_UPSERT_RAW = "upsert raw listing"
WHERE_FETCH_DETAIL = "fetch detail"
WHERE_PARSE_DETAIL = "parse detail"
WHERE_RECORD_EXTRACTION = "record extraction"
WHERE_SOURCE_LOOP = "source loop"
WHERE_MARK_CRAWLED = "mark crawled"


@dataclass
class IngestionError:
    """One recorded failure, with source and stage context."""
    source_id: Optional[int]
    source_name: Optional[str]
    where: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "sourceName": self.source_name,
            "where": self.where,
            "message": self.message,
        }


class IngestionResult:
    """Counters and errors for one ingestion run."""

    def __init__(self):
        self.sources_processed = 0
        self.sources_skipped = 0
        self.raw_seen = 0
        self.raw_new = 0
        self.raw_changed = 0
        self.detail_fetched = 0
        self.promoted_deals = 0
        self.held_deals = 0
        self.updated_deals = 0
        self.errors: List[IngestionError] = []
        self.started_at = datetime.now(timezone.utc)
        self.completed_at: Optional[datetime] = None

    def complete(self):
        self.completed_at = datetime.now(timezone.utc)

    @property
    def duration_seconds(self) -> float:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0

    def record_error(self, source: Optional[OnMarketSource], where: str, error) -> None:
        message = str(error) or type(error).__name__
        self.errors.append(IngestionError(
            source_id=source.id if source is not None else None,
            source_name=source.name if source is not None else None,
            where=where,
            message=message,
        ))
        name = source.name if source is not None else "-"
        logger.warning(f"Ingestion error source={name} where={where}: {message}")

    def count_outcome(self, outcome: PromotionOutcome) -> None:
        if outcome == PromotionOutcome.PROMOTED:
            self.promoted_deals += 1
        elif outcome == PromotionOutcome.HELD:
            self.held_deals += 1
        else:
            self.updated_deals += 1

    def to_summary(self) -> Dict[str, Any]:
        """Run summary in the shape downstream tooling consumes."""
        return {
            "sourcesProcessed": self.sources_processed,
            "sourcesSkipped": self.sources_skipped,
            "rawSeen": self.raw_seen,
            "rawNew": self.raw_new,
            "rawChanged": self.raw_changed,
            "detailFetched": self.detail_fetched,
            "promotedDeals": self.promoted_deals,
            "heldDeals": self.held_deals,
            "errors": [e.to_dict() for e in self.errors],
        }

    def log_metrics(self):
        """Log performance metrics."""
        logger.info(
            f"METRICS ingestion "
            f"sources_processed={self.sources_processed} "
            f"sources_skipped={self.sources_skipped} "
            f"raw_seen={self.raw_seen} "
            f"raw_new={self.raw_new} "
            f"raw_changed={self.raw_changed} "
            f"detail_fetched={self.detail_fetched} "
            f"promoted={self.promoted_deals} "
            f"held={self.held_deals} "
            f"updated={self.updated_deals} "
            f"errors={len(self.errors)} "
            f"duration_sec={self.duration_seconds:.2f}"
        )


async def process_stub(
    source: OnMarketSource,
    parser: BaseParser,
    stub: ListingStub,
    client: httpx.AsyncClient,
    throttle: SourceThrottle,
    result: IngestionResult,
    now: datetime,
    today,
) -> None:
    """
    Diff, fetch, parse, normalize and promote one stub.

    Recoverable failures are recorded on `result`; canonical-write failures raise.
    """
    checksum = stub_checksum(stub)

    try:
        async with get_session() as session:
            raw, change = await upsert_raw_listing(session, source.id, stub, checksum, now)
            raw_id = raw.id
            if change == RawChange.UNCHANGED:
                await touch_deal_last_seen(session, raw_id, now)
    except Exception as e:
        result.record_error(source, WHERE_UPSERT_RAW, e)
        return

    if change == RawChange.NEW:
        result.raw_new += 1
    elif change == RawChange.CHANGED:
        result.raw_changed += 1

    # Unchanged stubs are still re-fetched so detail edits reach the deal row
    page = await fetch(client, stub.listing_url)
    await throttle.pace(source.id, source.rate_limit_per_minute)
    if not page.ok:
        await _record_detail_failure(source, raw_id, WHERE_FETCH_DETAIL, page.error, result)
        return

    try:
        extracted: ExtractedFields = parser.parse_detail(ParserInput(
            url=stub.listing_url,
            text=page.text,
            content_type=page.content_type,
            fetched_at=now.isoformat(),
        ))
    except Exception as e:
        await _record_detail_failure(source, raw_id, WHERE_PARSE_DETAIL, f"{type(e).__name__}: {e}", result)
        return

    result.detail_fetched += 1

    try:
        async with get_session() as session:
            await record_raw_extraction(session, raw_id, stub, extracted, now)
    except Exception as e:
        result.record_error(source, WHERE_RECORD_EXTRACTION, e)

    candidate = normalize_deal(NormalizeInput(
        source_name=source.name,
        source_url=stub.listing_url,
        listing=stub,
        extracted=extracted,
    ))

    async with get_session() as session:
        outcome = await upsert_deal_with_daily_cap(session, raw_id, candidate, today, now)
    result.count_outcome(outcome)


async def _record_detail_failure(
    source: OnMarketSource,
    raw_id: int,
    where: str,
    message: str,
    result: IngestionResult,
) -> None:
    result.record_error(source, where, message)
    try:
        async with get_session() as session:
            await record_raw_fetch_error(session, raw_id, message)
    except Exception as e:
        result.record_error(source, WHERE_UPSERT_RAW, e)


async def process_source(
    source: OnMarketSource,
    client: httpx.AsyncClient,
    throttle: SourceThrottle,
    result: IngestionResult,
    now: datetime,
    today,
    max_listings: int,
) -> None:
    """Crawl one due source. Never raises; last_crawled_at always advances."""
    try:
        parser = get_parser(source.parser_key)

        index = await fetch(client, source.entry_url)
        await throttle.pace(source.id, source.rate_limit_per_minute)
        if not index.ok:
            result.record_error(source, WHERE_FETCH_INDEX, index.error)
            return

        try:
            stubs = parser.parse_index(ParserInput(
                url=source.entry_url,
                text=index.text,
                content_type=index.content_type,
                fetched_at=now.isoformat(),
            ))
        except Exception as e:
            result.record_error(source, WHERE_PARSE_INDEX, f"{type(e).__name__}: {e}")
            return

        if not stubs:
            logger.warning(
                f"PARSER_HEALTH_ALERT: {source.name} ({source.parser_key}) returned 0 listings "
                f"from {source.entry_url} - page layout may have changed"
            )

        stubs = stubs[:max_listings]
        result.raw_seen += len(stubs)
        logger.info(f"{source.name}: {len(stubs)} listing stubs")

        for stub in stubs:
            await process_stub(source, parser, stub, client, throttle, result, now, today)

    except Exception as e:
        result.record_error(source, WHERE_SOURCE_LOOP, f"{type(e).__name__}: {e}")

    finally:
        try:
            async with get_session() as session:
                await mark_source_crawled(session, source.id, now)
        except Exception as e:
            result.record_error(source, WHERE_MARK_CRAWLED, e)


async def run_ingestion(
    client: Optional[httpx.AsyncClient] = None,
    throttle: Optional[SourceThrottle] = None,
    now: Optional[datetime] = None,
    max_sources: Optional[int] = None,
    max_listings: Optional[int] = None,
) -> IngestionResult:
    """
    Run one ingestion pass over all due sources.

    Args:
        client: HTTP client (default: create_scraper_client(), closed afterwards)
        throttle: Per-source pacing (default: real asyncio.sleep pacing)
        now: Run timestamp, UTC (default: current time)
        max_sources: Sources considered this run (default: settings.max_sources_per_run)
        max_listings: Stubs processed per source (default: settings.max_listings_per_source)

    Returns:
        IngestionResult with counters and recorded errors
    """
    result = IngestionResult()
    start_time = time.perf_counter()

    now = now or datetime.now(timezone.utc)
    today = civil_today(now)
    throttle = throttle or SourceThrottle()
    max_sources = max_sources if max_sources is not None else settings.max_sources_per_run
    max_listings = max_listings if max_listings is not None else settings.max_listings_per_source

    async with get_session() as session:
        await ensure_daily_cap(session, today)
        sources = await list_enabled_sources(session, max_sources)

    owns_client = client is None
    client = client or create_scraper_client()
    try:
        for source in sources:
            if not is_source_due(source, now):
                result.sources_skipped += 1
                continue

            result.sources_processed += 1
            await process_source(source, client, throttle, result, now, today, max_listings)
    finally:
        if owns_client:
            await client.aclose()

    result.complete()
    result.log_metrics()
    logger.info(f"Ingestion finished in {time.perf_counter() - start_time:.2f}s")
    return result


async def run_ingestion_cli(
    max_sources: Optional[int] = None,
    max_listings: Optional[int] = None,
) -> IngestionResult:
    """
    CLI entry point for one ingestion run. Prints a human-readable summary.
    """
    result = await run_ingestion(max_sources=max_sources, max_listings=max_listings)

    print("\n=== On-Market Ingestion Summary ===")
    print(f"Sources processed: {result.sources_processed}")
    print(f"Sources skipped (not due): {result.sources_skipped}")
    print(f"Listings seen: {result.raw_seen} (new {result.raw_new}, changed {result.raw_changed})")
    print(f"Detail pages parsed: {result.detail_fetched}")
    print(f"Deals promoted: {result.promoted_deals}")
    print(f"Deals held: {result.held_deals}")
    print(f"Errors: {len(result.errors)}")
    for error in result.errors:
        print(f"  - [{error.source_name}] {error.where}: {error.message}")
    print(f"Duration: {result.duration_seconds:.2f}s")
    return result
