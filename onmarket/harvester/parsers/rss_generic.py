"""
RSS Parser - Generic RSS/Atom listing feeds.

parse_index reads <item>/<entry> elements with feedparser; parse_detail is
deliberately minimal (text sample, financial lines, terms, teaser PDF).
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

import feedparser

from ..base_parser import BaseParser, ListingParseError
from ...analyst.financials import parse_stated_asking_price
from ...analyst.schemas import ExtractedFields, ListingStub, ParserInput
from ...common.url_utils import find_teaser_pdf_url, to_absolute_url
from ...config.sources import ParserKey

logger = logging.getLogger(__name__)

TEXT_SAMPLE_CHARS = 2000


class RSSGenericParser(BaseParser):
    """Parser for listing sources that publish an RSS or Atom feed."""

    key = ParserKey.RSS

    def parse_index(self, page: ParserInput) -> List[ListingStub]:
        feed = feedparser.parse(page.text)

        # Malformed but readable feeds still carry entries
        if feed.bozo:
            if not feed.entries:
                raise ListingParseError(f"Malformed feed {page.url}: {feed.bozo_exception}")
            logger.warning(f"Malformed feed {page.url}: {feed.bozo_exception}")

        stubs = []
        for entry in feed.entries:
            link = (entry.get("link") or "").strip()
            if not link:
                continue
            url = to_absolute_url("".join(link.split()), page.url)
            if not url:
                continue

            stubs.append(ListingStub(
                listing_url=url,
                title=(entry.get("title") or "").strip() or None,
                maybe_date=self._entry_date(entry),
            ))

        return self._dedupe(stubs)

    def parse_detail(self, page: ParserInput) -> ExtractedFields:
        text = self._extract_text(page.text)
        sample = text[:TEXT_SAMPLE_CHARS]

        return ExtractedFields(
            financial_strings=self._financial_lines(text, limit=10),
            asking_price=parse_stated_asking_price(sample),
            teaser_pdf_url=find_teaser_pdf_url(page.text),
            industry_terms=self._industry_terms(sample),
            deal_type_terms=self._deal_type_terms(sample),
            text_sample=sample,
        )

    def _entry_date(self, entry) -> Optional[str]:
        parsed = entry.get("published_parsed") or entry.get("updated_parsed")
        if parsed and len(parsed) >= 6:
            return datetime(*parsed[:6], tzinfo=timezone.utc).isoformat()
        return self._parse_date(entry.get("published") or entry.get("updated"))
