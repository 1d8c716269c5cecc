"""
Pytest fixtures for test infrastructure.

This module is automatically loaded by pytest and provides shared fixtures.
For page builders and other helpers, see test_helpers.py.
"""

from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio

from onmarket.archivist.database import close_db, configure_database, init_db
from onmarket.common.http_client import create_scraper_client
from onmarket.common.throttle import SourceThrottle


# =============================================================================
# Database
# =============================================================================
@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database with all tables created."""
    configure_database("sqlite+aiosqlite:///:memory:")
    await init_db()
    yield
    await close_db()


# =============================================================================
# HTTP
# =============================================================================
class FakeSite:
    """
    URL -> response map served through httpx.MockTransport.

    Values are (status, body) tuples, or an exception instance to raise.
    Unknown URLs return 404. Every requested URL is recorded in `requested`.
    """

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.requested = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        page = self.pages.get(url)
        if page is None:
            return httpx.Response(404, text="not found")
        if isinstance(page, Exception):
            raise page
        status, body = page
        content_type = "application/xml" if body.lstrip().startswith("<?xml") else "text/html"
        return httpx.Response(status, text=body, headers={"content-type": content_type})

    def client(self) -> httpx.AsyncClient:
        return create_scraper_client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_site():
    return FakeSite()


# =============================================================================
# Pacing
# =============================================================================
class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def throttle(recording_sleep):
    """SourceThrottle that never actually waits."""
    return SourceThrottle(sleep=recording_sleep)


@pytest.fixture
def run_time():
    """Fixed run timestamp: 2026-03-02 15:00 UTC."""
    return datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)
