"""
Sitemap Parser - XML sitemaps that enumerate listing pages.

parse_index collects <loc> URLs (with <lastmod> as the date hint);
parse_detail only reports what plain page text supports.
"""

import logging
from typing import List

from bs4 import BeautifulSoup

from ..base_parser import BaseParser, ListingParseError
from ...analyst.schemas import ExtractedFields, ListingStub, ParserInput
from ...common.url_utils import find_teaser_pdf_url, to_absolute_url
from ...config.sources import ParserKey

logger = logging.getLogger(__name__)

TEXT_SAMPLE_CHARS = 2000


class SitemapGenericParser(BaseParser):
    """Parser for sitemap-driven sources."""

    key = ParserKey.SITEMAP

    def parse_index(self, page: ParserInput) -> List[ListingStub]:
        soup = BeautifulSoup(page.text or "", "xml")
        locs = soup.find_all("loc")
        if not locs and "<loc" not in (page.text or "").lower():
            raise ListingParseError(f"No <loc> entries in sitemap {page.url}")

        stubs = []
        for loc in locs:
            url = to_absolute_url(loc.get_text(strip=True), page.url)
            if not url:
                continue
            # Sitemap indexes nest further sitemaps, not listings
            if loc.parent is not None and loc.parent.name == "sitemap":
                continue

            lastmod = loc.parent.find("lastmod") if loc.parent is not None else None
            stubs.append(ListingStub(
                listing_url=url,
                maybe_date=self._parse_date(lastmod.get_text(strip=True)) if lastmod else None,
            ))

        return self._dedupe(stubs)

    def parse_detail(self, page: ParserInput) -> ExtractedFields:
        text = self._extract_text(page.text)
        sample = text[:TEXT_SAMPLE_CHARS]

        return ExtractedFields(
            financial_strings=self._financial_lines(text, limit=10),
            teaser_pdf_url=find_teaser_pdf_url(page.text),
            industry_terms=self._industry_terms(sample),
            deal_type_terms=self._deal_type_terms(sample),
            text_sample=sample,
        )
