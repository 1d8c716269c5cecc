"""
Base Parser - Abstract interface for listing-source parsers.

Every source type implements two operations:
- parse_index(): discover listing stubs on an index page / feed / sitemap
- parse_detail(): extract text-evidenced fields from a listing detail page

Parsers are pure: they never fetch, never touch the database, and never
report a value the page text does not state.
"""

import logging
import re
from abc import ABC, abstractmethod
from datetime import timezone
from typing import List, Optional

from bs4 import BeautifulSoup, Comment
from dateutil import parser as date_parser

from ..analyst.financials import find_financial_lines
from ..analyst.schemas import ExtractedFields, ListingStub, ParserInput
from ..config.sources import ParserKey

logger = logging.getLogger(__name__)


class ListingParseError(ValueError):
    """Raised when a page cannot be parsed as the expected format."""


NOISY_TAGS = ["script", "style", "noscript", "svg", "form", "iframe"]

# Industry vocabulary reported verbatim in ExtractedFields.industry_terms
INDUSTRY_TERM_PATTERNS = [
    # HVAC
    ("hvac", r'\bhvac\b'),
    ("air conditioning", r'\bair\s+conditioning\b|\ba/c\b'),
    ("heating", r'\bheating\b'),
    ("refrigeration", r'\brefrigeration\b'),
    ("ductwork", r'\bduct(?:work|ing)?\b'),
    ("ventilation", r'\bventilation\b'),
    ("furnace", r'\bfurnaces?\b'),
    ("heat pump", r'\bheat\s+pumps?\b'),
    ("boiler", r'\bboilers?\b'),
    # Plumbing
    ("plumbing", r'\bplumb(?:ing|ers?)\b'),
    ("drain cleaning", r'\bdrain\s+clean(?:ing|er)\b'),
    ("sewer", r'\bsewers?\b'),
    ("septic", r'\bseptic\b'),
    ("water heater", r'\bwater\s+heaters?\b'),
    ("backflow", r'\bbackflow\b'),
    # Electrical
    ("electrical", r'\belectric(?:al|ians?)\b'),
    ("electrical contractor", r'\belectrical\s+contract(?:or|ors|ing)\b'),
    ("panel upgrade", r'\bpanel\s+upgrades?\b'),
    ("generator", r'\bgenerators?\b'),
    ("rewiring", r'\brewir(?:ing|ed)\b'),
    ("low voltage", r'\blow[-\s]voltage\b'),
    ("ev charger", r'\bev\s+chargers?\b'),
]

DEAL_TYPE_TERM_PATTERNS = [
    ("asset sale", r'\basset\s+(?:sale|purchase)\b'),
    ("stock sale", r'\bstock\s+(?:sale|purchase)\b'),
    ("membership interest", r'\bmembership\s+interests?\b'),
]


class BaseParser(ABC):
    """
    Abstract base class for listing parsers.

    Subclasses must implement:
    - parse_index(): Extract listing stubs (deduplicated by URL)
    - parse_detail(): Extract conservative detail fields
    """

    key: ParserKey

    @abstractmethod
    def parse_index(self, page: ParserInput) -> List[ListingStub]:
        """Extract listing stubs from an index page."""
        pass

    @abstractmethod
    def parse_detail(self, page: ParserInput) -> ExtractedFields:
        """Extract text-evidenced fields from a listing detail page."""
        pass

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _soup(self, html: str) -> BeautifulSoup:
        return BeautifulSoup(html or "", "lxml")

    def _extract_text(self, html: str) -> str:
        """Extract clean text from HTML, one visible line per line."""
        soup = self._soup(html)

        for element in soup(NOISY_TAGS):
            element.decompose()

        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        text = soup.get_text(separator="\n", strip=True)
        lines = [re.sub(r'\s+', ' ', line).strip() for line in text.splitlines()]
        return "\n".join(line for line in lines if line)

    def _parse_date(self, date_str: Optional[str]) -> Optional[str]:
        """Parse a feed/page date into an ISO-8601 UTC timestamp."""
        if not date_str:
            return None
        try:
            parsed = date_parser.parse(date_str)
        except (ValueError, TypeError, OverflowError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc).isoformat()

    def _industry_terms(self, text: str) -> List[str]:
        lowered = (text or "").lower()
        return [term for term, pattern in INDUSTRY_TERM_PATTERNS if re.search(pattern, lowered)]

    def _deal_type_terms(self, text: str) -> List[str]:
        lowered = (text or "").lower()
        return [term for term, pattern in DEAL_TYPE_TERM_PATTERNS if re.search(pattern, lowered)]

    def _financial_lines(self, text: str, limit: int = 14) -> List[str]:
        return find_financial_lines(text, limit=limit)

    @staticmethod
    def _dedupe(stubs: List[ListingStub]) -> List[ListingStub]:
        """Keep the first stub per listing URL, preserving page order."""
        seen = set()
        unique: List[ListingStub] = []
        for stub in stubs:
            if stub.listing_url in seen:
                continue
            seen.add(stub.listing_url)
            unique.append(stub)
        return unique
