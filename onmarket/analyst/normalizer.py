"""
Normalizer - turns a listing stub plus parsed detail fields into a canonical
deal candidate.

Rules:
- Never invent numbers: revenue/EBITDA/asking price come only from stated text.
- Confidence measures completeness, not quality.
- Location keeps a city as written and a state only as a two-letter code.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from .financials import parse_asking_price, parse_ebitda, parse_revenue
from .industry import classify_industry
from .schemas import (
    DataConfidence,
    DealType,
    ExtractedFields,
    ListingStub,
    NormalizedDeal,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_HEADLINE = "On-market listing"

HIGH_CONFIDENCE_SCORE = 75
MEDIUM_CONFIDENCE_SCORE = 45
LONG_TEXT_SAMPLE_CHARS = 200

# Upper bounds (exclusive) and labels
REVENUE_BANDS = [
    (1_000_000, "<$1M"),
    (5_000_000, "$1–5M"),
    (10_000_000, "$5–10M"),
    (25_000_000, "$10–25M"),
    (50_000_000, "$25–50M"),
]
REVENUE_TOP_BAND = "$50M+"

EBITDA_BANDS = [
    (250_000, "<$250K"),
    (500_000, "$250–500K"),
    (1_000_000, "$500K–$1M"),
    (2_500_000, "$1–2.5M"),
    (5_000_000, "$2.5–5M"),
]
EBITDA_TOP_BAND = "$5M+"

US_STATES = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
    "california": "CA", "colorado": "CO", "connecticut": "CT", "delaware": "DE",
    "district of columbia": "DC", "florida": "FL", "georgia": "GA", "hawaii": "HI",
    "idaho": "ID", "illinois": "IL", "indiana": "IN", "iowa": "IA",
    "kansas": "KS", "kentucky": "KY", "louisiana": "LA", "maine": "ME",
    "maryland": "MD", "massachusetts": "MA", "michigan": "MI", "minnesota": "MN",
    "mississippi": "MS", "missouri": "MO", "montana": "MT", "nebraska": "NE",
    "nevada": "NV", "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM",
    "new york": "NY", "north carolina": "NC", "north dakota": "ND", "ohio": "OH",
    "oklahoma": "OK", "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI",
    "south carolina": "SC", "south dakota": "SD", "tennessee": "TN", "texas": "TX",
    "utah": "UT", "vermont": "VT", "virginia": "VA", "washington": "WA",
    "west virginia": "WV", "wisconsin": "WI", "wyoming": "WY",
}
STATE_CODES = frozenset(US_STATES.values())


@dataclass
class NormalizeInput:
    """Everything normalize_deal() needs for one listing."""
    source_name: str
    source_url: str
    listing: ListingStub
    extracted: Optional[ExtractedFields] = None


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = re.sub(r'\s+', ' ', value).strip()
    return cleaned or None


def round_half_up(value) -> int:
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def pick_representative(low: Optional[int], high: Optional[int]) -> Optional[int]:
    """Midpoint when both bounds exist, else whichever bound exists."""
    if low is not None and high is not None:
        return round_half_up(Decimal(low + high) / 2)
    if low is not None:
        return low
    return high


def _band(value: Optional[int], bands, top_band: str) -> Optional[str]:
    if value is None:
        return None
    for upper, label in bands:
        if value < upper:
            return label
    return top_band


def revenue_band(low: Optional[int], high: Optional[int]) -> Optional[str]:
    """
    Examples:
        >>> revenue_band(1_200_000, 1_500_000)
        '$1–5M'
        >>> revenue_band(None, None) is None
        True
    """
    return _band(pick_representative(low, high), REVENUE_BANDS, REVENUE_TOP_BAND)


def ebitda_band(low: Optional[int], high: Optional[int]) -> Optional[str]:
    return _band(pick_representative(low, high), EBITDA_BANDS, EBITDA_TOP_BAND)


def data_confidence_for(score: int) -> DataConfidence:
    if score >= HIGH_CONFIDENCE_SCORE:
        return DataConfidence.HIGH
    if score >= MEDIUM_CONFIDENCE_SCORE:
        return DataConfidence.MEDIUM
    return DataConfidence.LOW


def compute_confidence(
    has_headline: bool,
    has_company: bool,
    has_industry: bool,
    has_geo: bool,
    has_any_financial: bool,
    has_asking_price: bool,
    has_teaser: bool,
    text_sample_length: int = 0,
) -> Tuple[int, DataConfidence]:
    """
    Completeness score (0-100) and its data_confidence bucket.

    Points: headline 15, company 15, industry 15, geography 15,
    revenue/EBITDA figure 20, asking price 10, teaser PDF 10,
    text sample of 200+ chars 5.
    """
    score = 0
    if has_headline:
        score += 15
    if has_company:
        score += 15
    if has_industry:
        score += 15
    if has_geo:
        score += 15
    if has_any_financial:
        score += 20
    if has_asking_price:
        score += 10
    if has_teaser:
        score += 10
    if text_sample_length >= LONG_TEXT_SAMPLE_CHARS:
        score += 5

    score = max(0, min(score, 100))
    return score, data_confidence_for(score)


def map_deal_type(terms: Iterable[str]) -> DealType:
    lowered = [t.lower() for t in terms if t]
    if any("asset" in t for t in lowered):
        return DealType.ASSET
    if any("stock" in t or "membership" in t for t in lowered):
        return DealType.STOCK
    return DealType.UNKNOWN


def normalize_state(state: Optional[str]) -> Optional[str]:
    """
    Two-letter US state code, or None.

    Examples:
        >>> normalize_state("tx")
        'TX'
        >>> normalize_state("New York")
        'NY'
        >>> normalize_state("Ontario") is None
        True
    """
    cleaned = clean_text(state)
    if not cleaned:
        return None
    upper = cleaned.upper().rstrip(".")
    if re.fullmatch(r'[A-Z]{2}', upper):
        return upper if upper in STATE_CODES else None
    return US_STATES.get(cleaned.lower())


def normalize_location(city: Optional[str], state: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    return clean_text(city), normalize_state(state)


def normalize_deal(data: NormalizeInput) -> NormalizedDeal:
    """Build the canonical candidate for one listing. Pure: no I/O."""
    listing = data.listing
    extracted = data.extracted or ExtractedFields()

    company_name = clean_text(extracted.company_name)
    title = clean_text(listing.title)
    headline = title or clean_text(extracted.headline) or company_name
    has_headline = headline is not None
    headline = headline or PLACEHOLDER_HEADLINE

    city, state = normalize_location(extracted.city, extracted.state)
    text_sample = extracted.text_sample or ""

    tag, industry_confidence = classify_industry(
        data.source_name,
        [
            data.source_name,
            data.source_url,
            listing.title,
            extracted.company_name,
            extracted.headline,
            text_sample,
            " ".join(extracted.industry_terms),
        ],
    )

    fin_text = "\n".join(list(extracted.financial_strings) + [text_sample])
    revenue = parse_revenue(fin_text)
    ebitda = parse_ebitda(fin_text)

    asking_price = extracted.asking_price
    if asking_price is None:
        asking_price = parse_asking_price(fin_text)

    revenue_min = revenue.min if revenue else None
    revenue_max = revenue.max if revenue else None
    ebitda_min = ebitda.min if ebitda else None
    ebitda_max = ebitda.max if ebitda else None

    has_teaser_pdf = bool(extracted.teaser_pdf_url)
    confidence_score, data_confidence = compute_confidence(
        has_headline=has_headline,
        has_company=company_name is not None,
        has_industry=tag is not None,
        has_geo=bool(city or state),
        has_any_financial=revenue is not None or ebitda is not None,
        has_asking_price=asking_price is not None,
        has_teaser=has_teaser_pdf,
        text_sample_length=len(text_sample),
    )

    return NormalizedDeal(
        company_name=company_name,
        headline=headline,
        industry_tag=tag,
        industry_confidence=industry_confidence,
        location_city=city,
        location_state=state,
        revenue_min=revenue_min,
        revenue_max=revenue_max,
        ebitda_min=ebitda_min,
        ebitda_max=ebitda_max,
        revenue_band=revenue_band(revenue_min, revenue_max),
        ebitda_band=ebitda_band(ebitda_min, ebitda_max),
        asking_price=asking_price,
        deal_type=map_deal_type(extracted.deal_type_terms),
        has_teaser_pdf=has_teaser_pdf,
        source_name=data.source_name,
        source_url=data.source_url,
        data_confidence=data_confidence,
        confidence_score=confidence_score,
        published_at=listing.maybe_date,
        text_sample_length=len(text_sample),
    )
