"""Database models and storage utilities."""

from .models import (
    OnMarketSource,
    RawListing,
    OnMarketDeal,
    DailyInventoryCap,
)
from .database import get_session, init_db, close_db, configure_database
from .storage import (
    RawChange,
    seed_sources,
    list_enabled_sources,
    is_source_due,
    mark_source_crawled,
    stub_checksum,
    upsert_raw_listing,
    touch_deal_last_seen,
    ensure_daily_cap,
    civil_today,
)
from .promotion import PromotionOutcome, passes_gate, upsert_deal_with_daily_cap

__all__ = [
    "OnMarketSource",
    "RawListing",
    "OnMarketDeal",
    "DailyInventoryCap",
    "get_session",
    "init_db",
    "close_db",
    "configure_database",
    "RawChange",
    "seed_sources",
    "list_enabled_sources",
    "is_source_due",
    "mark_source_crawled",
    "stub_checksum",
    "upsert_raw_listing",
    "touch_deal_last_seen",
    "ensure_daily_cap",
    "civil_today",
    "PromotionOutcome",
    "passes_gate",
    "upsert_deal_with_daily_cap",
]
