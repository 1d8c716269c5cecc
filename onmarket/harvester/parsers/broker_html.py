"""
Broker HTML Parser - Synergy, VR Business Brokers, Murphy Business and
similar broker sites that publish one HTML page per listing.

Index pages are link-harvested: every <a href> is resolved against the page
URL and kept only if it looks like a listing detail page for that broker
(see common.url_utils.is_listing_url_for_host).

Detail pages get heuristic extraction:
- headline from <h1>, else the meta description
- location from a "Location:" label, else a "City, ST" pattern
- a text sample starting a little before the listing body
- financial lines, explicit asking price, teaser PDF link, industry and
  deal-type terms
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from ..base_parser import BaseParser
from ...analyst.financials import parse_stated_asking_price
from ...analyst.normalizer import normalize_state
from ...analyst.schemas import ExtractedFields, ListingStub, ParserInput
from ...common.url_utils import (
    find_teaser_pdf_url,
    is_listing_url_for_host,
    to_absolute_url,
)
from ...config.sources import ParserKey

logger = logging.getLogger(__name__)

TEXT_SAMPLE_CHARS = 5000
ANCHOR_LEAD_CHARS = 1400

# First of these found marks where the listing body starts
BODY_ANCHORS = [
    "listing details", "business description", "overview", "financial",
    "annual revenue", "ebitda", "asking price", "location",
]

# Link text that says nothing about the listing
GENERIC_LINK_TEXT = {
    "view listing", "view details", "details", "learn more", "read more",
    "more info", "more information", "view", "click here", "see listing",
}

LOCATION_LABEL_PATTERN = re.compile(r'\blocation\s*:\s*([A-Za-z][A-Za-z .,\-]{1,78})', re.IGNORECASE)
CITY_STATE_PATTERN = re.compile(r'\b([A-Z][a-zA-Z.\-]+(?:[ \t]+[A-Z][a-zA-Z.\-]+){0,3}),\s*([A-Z]{2})\b')
COMPANY_LABEL_PATTERN = re.compile(
    r'\b(?:company name|business name|company)\s*:\s*([^\n]{2,80})',
    re.IGNORECASE,
)


def _clean(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    cleaned = re.sub(r'\s+', ' ', value).strip()
    return cleaned or None


class BrokerHTMLParser(BaseParser):
    """Parser for broker sites with one HTML page per listing."""

    key = ParserKey.BROKER_HTML

    def parse_index(self, page: ParserInput) -> List[ListingStub]:
        soup = self._soup(page.text)

        stubs: Dict[str, ListingStub] = {}
        for link in soup.find_all("a", href=True):
            url = to_absolute_url(link["href"], page.url)
            if not url or not is_listing_url_for_host(url, page.url):
                continue

            title = self._link_title(link.get_text(" ", strip=True))
            stub = stubs.get(url)
            if stub is None:
                stubs[url] = ListingStub(listing_url=url, title=title)
            elif stub.title is None and title:
                # Image links often precede the titled link to the same listing
                stub.title = title

        logger.debug(f"Broker index {page.url}: {len(stubs)} listing links")
        return list(stubs.values())

    def parse_detail(self, page: ParserInput) -> ExtractedFields:
        soup = self._soup(page.text)

        meta_description = None
        meta = soup.find("meta", attrs={"name": re.compile(r'^description$', re.IGNORECASE)})
        if meta and meta.get("content"):
            meta_description = _clean(meta["content"])

        h1 = soup.find("h1")
        headline = _clean(h1.get_text(" ", strip=True)) if h1 else None
        headline = headline or meta_description

        text = self._extract_text(page.text)
        sample = self._text_sample(text)

        location_text, city, state = self._location(text)
        company = COMPANY_LABEL_PATTERN.search(text)

        return ExtractedFields(
            company_name=_clean(company.group(1)) if company else None,
            headline=headline,
            city=city,
            state=state,
            financial_strings=self._financial_lines(sample),
            asking_price=parse_stated_asking_price(sample),
            teaser_pdf_url=self._teaser_pdf(soup, page),
            industry_terms=self._industry_terms(sample),
            deal_type_terms=self._deal_type_terms(sample),
            text_sample=sample,
            raw={
                "location_text": location_text,
                "meta_description": meta_description,
            },
        )

    # ------------------------------------------------------------------

    @staticmethod
    def _link_title(text: str) -> Optional[str]:
        title = _clean(text)
        if not title or title.lower() in GENERIC_LINK_TEXT or len(title) < 8:
            return None
        return title[:200]

    @staticmethod
    def _text_sample(text: str) -> str:
        """A slice likely to hold the listing body rather than site navigation."""
        if not text:
            return ""
        lowered = text.lower()
        for anchor in BODY_ANCHORS:
            idx = lowered.find(anchor)
            if idx != -1:
                start = max(0, idx - ANCHOR_LEAD_CHARS)
                return text[start:start + TEXT_SAMPLE_CHARS]

        # Header navigation dominates the top of most pages
        if len(text) > TEXT_SAMPLE_CHARS:
            start = (len(text) - TEXT_SAMPLE_CHARS) // 2
            return text[start:start + TEXT_SAMPLE_CHARS]
        return text

    @staticmethod
    def _location(text: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        """(location_text, city, state) from a Location label or a City, ST pattern."""
        label = LOCATION_LABEL_PATTERN.search(text)
        if label:
            location_text = _clean(label.group(1).strip(" ,.-"))
            if location_text:
                parts = [p.strip() for p in location_text.split(",") if p.strip()]
                if len(parts) >= 2:
                    return location_text, parts[-2], parts[-1]
                if normalize_state(parts[0]):
                    return location_text, None, parts[0]
                return location_text, parts[0], None

        match = CITY_STATE_PATTERN.search(text)
        if match and normalize_state(match.group(2)):
            return match.group(0), match.group(1), match.group(2)
        return None, None, None

    @staticmethod
    def _teaser_pdf(soup, page: ParserInput) -> Optional[str]:
        for link in soup.find_all("a", href=True):
            url = to_absolute_url(link["href"], page.url)
            if url and re.search(r'\.pdf(\?.*)?$', url, re.IGNORECASE):
                return url
        return find_teaser_pdf_url(page.text)
