"""
Database models using SQLModel (SQLAlchemy + Pydantic).

Schema:
- OnMarketSource: Configured listing sources and their crawl schedule
- RawListing: Every listing URL ever seen under a source, with change checksum
- OnMarketDeal: Normalized (canonical) deal, optionally promoted into the catalog
- DailyInventoryCap: Per-civil-day admission budget
"""

from datetime import datetime, date, timezone
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, BigInteger, JSON, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


# JSONB on PostgreSQL, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class OnMarketSource(SQLModel, table=True):
    """A listing source (broker site, RSS feed, sitemap)."""
    __tablename__ = "on_market_sources"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    parser_key: str  # ParserKey value
    entry_url: str
    crawl_interval_minutes: int = Field(default=1440)
    rate_limit_per_minute: int = Field(default=30)
    is_enabled: bool = Field(default=True, index=True)
    last_crawled_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), index=True),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), default=utc_now),
    )


class RawListing(SQLModel, table=True):
    """One row per distinct listing URL seen under a source."""
    __tablename__ = "on_market_raw_listings"
    __table_args__ = (
        UniqueConstraint("source_id", "listing_url", name="uq_raw_listing_source_url"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    source_id: int = Field(foreign_key="on_market_sources.id", index=True)
    listing_url: str
    title_raw: Optional[str] = None
    # {"stub": {...}, "extracted": {...}} for traceability
    payload_json: dict = Field(default_factory=dict, sa_column=Column(JSONType))
    checksum: str
    status: str = Field(default="active")  # "active" | "changed"
    last_fetch_error: Optional[str] = None
    first_seen_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), default=utc_now),
    )
    last_seen_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), default=utc_now),
    )


class OnMarketDeal(SQLModel, table=True):
    """Canonical deal derived from one raw listing."""
    __tablename__ = "on_market_deals"

    id: Optional[int] = Field(default=None, primary_key=True)
    primary_raw_listing_id: int = Field(
        foreign_key="on_market_raw_listings.id", unique=True, index=True
    )

    company_name: Optional[str] = None
    headline: str

    # Only "HVAC", "Plumbing", "Electrical" or NULL
    industry_tag: Optional[str] = Field(default=None, index=True)
    industry_confidence: int = Field(default=0)

    location_city: Optional[str] = None
    location_state: Optional[str] = Field(default=None, index=True)

    revenue_min: Optional[int] = Field(default=None, sa_column=Column(BigInteger))
    revenue_max: Optional[int] = Field(default=None, sa_column=Column(BigInteger))
    ebitda_min: Optional[int] = Field(default=None, sa_column=Column(BigInteger))
    ebitda_max: Optional[int] = Field(default=None, sa_column=Column(BigInteger))
    revenue_band: Optional[str] = None
    ebitda_band: Optional[str] = None
    asking_price: Optional[int] = Field(default=None, sa_column=Column(BigInteger))

    deal_type: str = Field(default="unknown")  # asset | stock | unknown
    has_teaser_pdf: bool = Field(default=False)

    source_name: str
    source_url: str

    data_confidence: str = Field(default="low")  # high | medium | low
    confidence_score: int = Field(default=0)

    first_seen_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), default=utc_now),
    )
    last_seen_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), default=utc_now),
    )
    published_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True)),
    )

    is_promoted: bool = Field(default=False, index=True)
    promoted_date: Optional[date] = Field(default=None, index=True)
    is_new_today: bool = Field(default=False)


class DailyInventoryCap(SQLModel, table=True):
    """Admission budget for one civil day."""
    __tablename__ = "daily_inventory_caps"

    day: date = Field(primary_key=True)  # civil date in settings.civil_timezone
    cap: int = Field(default=10)
    used: int = Field(default=0)
