"""
Shared URL helpers for listing discovery.

Parsers import from here so host handling (www. stripping, franchise domains,
listing-shaped paths) stays consistent across index and detail parsing.
"""

import re
from typing import Optional
from urllib.parse import urljoin, urlparse

# Schemes and fragments that never point at a listing page
SKIPPED_HREF_PREFIXES = ("#", "mailto:", "tel:", "javascript:")

# Non-listing sections on broker sites (generic fallback only)
NON_LISTING_PATH_PREFIXES = (
    "/blog", "/news", "/about", "/contact", "/privacy",
    "/terms", "/category", "/tag", "/wp-",
)

LISTING_PATH_PATTERN = re.compile(r'listing|business|for-sale|opportunity', re.IGNORECASE)

# VR Business Brokers franchisees publish listings on their own domains
VR_FRANCHISE_HOST_PATTERN = re.compile(r'^vr[a-z0-9-]+\.com$', re.IGNORECASE)

PDF_URL_PATTERN = re.compile(r'https?://[^\s"\'<>]+', re.IGNORECASE)


def host_of(url: Optional[str]) -> str:
    """Lowercase hostname without a leading www., or "" if unparseable."""
    if not url:
        return ""
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def path_of(url: Optional[str]) -> str:
    if not url:
        return ""
    try:
        return urlparse(url).path.lower()
    except ValueError:
        return ""


def to_absolute_url(href: Optional[str], base_url: str) -> Optional[str]:
    """
    Resolve an href against the page URL.

    Returns None for anchors, mailto/tel/javascript links and anything that
    does not resolve to an http(s) URL.

    Examples:
        >>> to_absolute_url("/listings/abc/", "https://www.synergybb.com/hvac/")
        'https://www.synergybb.com/listings/abc/'
        >>> to_absolute_url("mailto:broker@example.com", "https://example.com/")
    """
    if not href:
        return None
    href = href.strip()
    if not href or href.lower().startswith(SKIPPED_HREF_PREFIXES):
        return None
    try:
        absolute = urljoin(base_url, href)
    except ValueError:
        return None
    # Fragments never distinguish listings
    absolute = absolute.split("#", 1)[0]
    if not absolute.startswith(("http://", "https://")):
        return None
    return absolute


def is_listing_url_for_host(url: str, entry_url: str) -> bool:
    """
    Decide whether a harvested link is a listing detail page for this source.

    Links must stay on the entry URL's host, except VR franchise domains
    (vr*.com) linked from vrbusinessbrokers.com under /listing/.
    """
    if not url:
        return False

    entry_host = host_of(entry_url)
    url_host = host_of(url)
    path = path_of(url)

    cross_host_ok = (
        entry_host == "vrbusinessbrokers.com"
        and bool(VR_FRANCHISE_HOST_PATTERN.match(url_host))
        and path.startswith("/listing/")
    )
    if url_host != entry_host and not cross_host_ok:
        return False

    if entry_host == "synergybb.com":
        return path.startswith("/listings/") and path != "/listings/"

    if entry_host == "vrbusinessbrokers.com":
        if path.startswith("/listing/") and path != "/listing/":
            return True
        if path.startswith("/businesses-for-sale/") and path != "/businesses-for-sale/":
            return True
        if path == "/businesses-for-sale/":
            query = urlparse(url).query
            if query and re.search(r'id=|listing|business', query, re.IGNORECASE):
                return True
        return cross_host_ok

    if entry_host == "murphybusiness.com":
        if "/businesses-for-sale/" in path and path != "/businesses-for-sale/":
            return True
        if path.startswith("/business/") and path != "/business/":
            return True
        return "listing" in path or "business-for-sale" in path

    if path.startswith(NON_LISTING_PATH_PREFIXES):
        return False
    return bool(LISTING_PATH_PATTERN.search(path))


def find_teaser_pdf_url(text: str) -> Optional[str]:
    """First absolute URL in the text that points at a .pdf file."""
    for match in PDF_URL_PATTERN.finditer(text or ""):
        candidate = match.group(0)
        if re.search(r'\.pdf(\?.*)?$', candidate, re.IGNORECASE):
            return candidate
    return None
