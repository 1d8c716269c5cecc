"""
Shared HTTP Client Configuration.

Provides the browser-like HTTP client used for every listing fetch, plus a
fetch helper that turns every failure into a value so a single bad page never
escapes the stub/source loop.

Usage:
    from onmarket.common.http_client import create_scraper_client, fetch

    async with create_scraper_client() as client:
        result = await fetch(client, url)
        if not result.ok:
            logger.warning(result.error)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import httpx

from ..config.settings import settings

logger = logging.getLogger(__name__)


# =============================================================================
# Header Constants
# =============================================================================

# Browser-like User-Agent - broker sites serve stripped pages to bots
# Based on Chrome 120 on macOS
USER_AGENT_BROWSER = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_HEADERS = {
    "User-Agent": USER_AGENT_BROWSER,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


# =============================================================================
# HTTP Client Factory
# =============================================================================

def create_scraper_client(
    timeout: Optional[float] = None,
    max_connections: int = 10,
    max_keepalive: int = 5,
    follow_redirects: bool = True,
    extra_headers: Optional[dict] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create a standardized async HTTP client for listing pages.

    Args:
        timeout: Request timeout in seconds (default: settings.request_timeout)
        max_connections: Maximum concurrent connections
        max_keepalive: Maximum keepalive connections
        follow_redirects: Whether to follow HTTP redirects
        extra_headers: Additional headers to include
        transport: Optional transport override (tests use httpx.MockTransport)

    Returns:
        Configured httpx.AsyncClient
    """
    headers = dict(BROWSER_HEADERS)
    if settings.user_agent:
        headers["User-Agent"] = settings.user_agent
    if extra_headers:
        headers.update(extra_headers)

    return httpx.AsyncClient(
        timeout=timeout or settings.request_timeout,
        headers=headers,
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive,
        ),
        follow_redirects=follow_redirects,
        transport=transport,
    )


# =============================================================================
# Fetch
# =============================================================================

@dataclass
class FetchResult:
    """Outcome of one GET. Failures are carried in `error`, never raised."""
    url: str
    ok: bool
    status_code: Optional[int] = None
    text: str = ""
    content_type: Optional[str] = None
    error: Optional[str] = None


def _host(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def timeout_for(url: str) -> float:
    """Resolve the fetch timeout for a URL (slow hosts get the shorter budget)."""
    host = _host(url)
    for slow in settings.slow_host_list:
        if host == slow or host.endswith("." + slow):
            return settings.slow_host_timeout
    return settings.request_timeout


async def fetch(
    client: httpx.AsyncClient,
    url: str,
    timeout: Optional[float] = None,
) -> FetchResult:
    """
    GET a URL, capturing network errors, timeouts and non-2xx statuses as values.

    Args:
        client: Shared client from create_scraper_client()
        url: Absolute URL to fetch
        timeout: Seconds before the request is abandoned (default: timeout_for(url))

    Returns:
        FetchResult with ok=True and the body text, or ok=False and an error message
    """
    budget = timeout if timeout is not None else timeout_for(url)

    try:
        # httpx timeouts apply per connect/read step; wait_for bounds the whole request
        response = await asyncio.wait_for(client.get(url, timeout=budget), budget)
    except (httpx.TimeoutException, asyncio.TimeoutError):
        logger.warning(f"Timeout after {budget}s fetching {url}")
        return FetchResult(url=url, ok=False, error=f"Timeout after {budget}s")
    except httpx.HTTPError as e:
        logger.warning(f"Network error fetching {url}: {e}")
        return FetchResult(url=url, ok=False, error=f"{type(e).__name__}: {e}")
    except Exception as e:
        # Malformed URLs and similar surface as non-httpx errors
        logger.warning(f"Fetch failed for {url}: {e}")
        return FetchResult(url=url, ok=False, error=f"{type(e).__name__}: {e}")

    content_type = response.headers.get("content-type")
    if not response.is_success:
        logger.debug(f"HTTP {response.status_code} for {url}")
        return FetchResult(
            url=url,
            ok=False,
            status_code=response.status_code,
            content_type=content_type,
            error=f"HTTP {response.status_code}",
        )

    return FetchResult(
        url=str(response.url),
        ok=True,
        status_code=response.status_code,
        text=response.text,
        content_type=content_type,
    )
