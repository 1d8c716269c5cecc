"""
Common utilities and shared modules.
"""

from .http_client import (
    create_scraper_client,
    fetch,
    timeout_for,
    FetchResult,
    BROWSER_HEADERS,
    USER_AGENT_BROWSER,
)
from .throttle import SourceThrottle, pacing_delay_ms
from .url_utils import (
    host_of,
    to_absolute_url,
    is_listing_url_for_host,
    find_teaser_pdf_url,
)

__all__ = [
    # HTTP client utilities
    "create_scraper_client",
    "fetch",
    "timeout_for",
    "FetchResult",
    "BROWSER_HEADERS",
    "USER_AGENT_BROWSER",
    # Pacing
    "SourceThrottle",
    "pacing_delay_ms",
    # URL helpers
    "host_of",
    "to_absolute_url",
    "is_listing_url_for_host",
    "find_teaser_pdf_url",
]
