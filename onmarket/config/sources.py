"""
Source Registry - Default on-market listing sources.

Each source names the parser strategy used for its index and detail pages,
its entry URL, and how often / how politely it may be crawled. Rows are seeded
into on_market_sources by archivist.storage.seed_sources(); after that the
database row is the source of truth (operators may disable or retune it).
"""

from dataclasses import dataclass
from typing import List
from enum import Enum


class ParserKey(str, Enum):
    """Parser strategy for a source."""
    BROKER_HTML = "synergy_html"    # Broker site HTML (Synergy, VR, Murphy)
    RSS = "rss_generic"             # RSS / Atom feed
    SITEMAP = "sitemap_generic"     # XML sitemap <loc> list


@dataclass
class SourceConfig:
    """Configuration for a single listing source."""
    name: str
    parser_key: ParserKey
    entry_url: str
    crawl_interval_minutes: int = 1440
    rate_limit_per_minute: int = 30
    is_enabled: bool = True


# Source names may carry an industry suffix ("Synergy - HVAC") which pins the
# industry tag for every listing from that source.
SOURCE_REGISTRY: dict[str, SourceConfig] = {
    "synergy_hvac": SourceConfig(
        name="Synergy Business Brokers - HVAC",
        parser_key=ParserKey.BROKER_HTML,
        entry_url="https://www.synergybb.com/industries/hvac-businesses-for-sale/",
    ),
    "synergy_plumbing": SourceConfig(
        name="Synergy Business Brokers - Plumbing",
        parser_key=ParserKey.BROKER_HTML,
        entry_url="https://www.synergybb.com/industries/plumbing-businesses-for-sale/",
    ),
    "synergy_electrical": SourceConfig(
        name="Synergy Business Brokers - Electrical",
        parser_key=ParserKey.BROKER_HTML,
        entry_url="https://www.synergybb.com/industries/electrical-businesses-for-sale/",
    ),
    "vr_business_brokers": SourceConfig(
        name="VR Business Brokers",
        parser_key=ParserKey.BROKER_HTML,
        entry_url="https://www.vrbusinessbrokers.com/businesses-for-sale/",
        rate_limit_per_minute=20,
    ),
    "murphy_business": SourceConfig(
        name="Murphy Business Sales",
        parser_key=ParserKey.BROKER_HTML,
        entry_url="https://www.murphybusiness.com/businesses-for-sale/",
        rate_limit_per_minute=12,
    ),
}


def get_source(slug: str) -> SourceConfig:
    """Get source configuration by slug."""
    if slug not in SOURCE_REGISTRY:
        raise ValueError(f"Unknown source: {slug}")
    return SOURCE_REGISTRY[slug]


def get_all_sources() -> List[SourceConfig]:
    """Get all configured sources."""
    return list(SOURCE_REGISTRY.values())
