"""
Pydantic schemas shared by parsers, the normalizer and storage.

ListingStub and ExtractedFields are what parsers are allowed to report;
NormalizedDeal is the canonical candidate handed to the promotion gate.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Any
from enum import Enum


class IndustryTag(str, Enum):
    """The only industry tags allowed into the canonical catalog."""
    HVAC = "HVAC"
    PLUMBING = "Plumbing"
    ELECTRICAL = "Electrical"


ALLOWED_INDUSTRY_TAGS = frozenset(tag.value for tag in IndustryTag)


class DealType(str, Enum):
    """Transaction structure stated in the listing."""
    ASSET = "asset"
    STOCK = "stock"
    UNKNOWN = "unknown"


class DataConfidence(str, Enum):
    """Coarse completeness bucket derived from confidence_score."""
    HIGH = "high"      # score >= 75
    MEDIUM = "medium"  # score >= 45
    LOW = "low"


class ListingStub(BaseModel):
    """Minimal metadata discovered on an index page."""
    listing_url: str
    title: Optional[str] = None
    maybe_date: Optional[str] = None       # ISO timestamp when the index exposes one
    maybe_location: Optional[str] = None
    maybe_price: Optional[str] = None


class ParserInput(BaseModel):
    """A fetched page handed to a parser."""
    url: str
    text: str
    content_type: Optional[str] = None
    fetched_at: Optional[str] = None


class ExtractedFields(BaseModel):
    """
    Text-evidenced fields from a detail page.

    Parsers must leave a field empty rather than guess; the normalizer
    decides what the evidence means.
    """
    company_name: Optional[str] = None
    headline: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    financial_strings: List[str] = Field(default_factory=list)
    asking_price: Optional[int] = None
    teaser_pdf_url: Optional[str] = None
    industry_terms: List[str] = Field(default_factory=list)
    deal_type_terms: List[str] = Field(default_factory=list)
    text_sample: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict)


class NormalizedDeal(BaseModel):
    """Canonical candidate produced by normalize_deal()."""
    company_name: Optional[str] = None
    headline: str

    industry_tag: Optional[IndustryTag] = None
    industry_confidence: int = Field(default=0, ge=0, le=100)

    location_city: Optional[str] = None
    location_state: Optional[str] = None

    revenue_min: Optional[int] = None
    revenue_max: Optional[int] = None
    ebitda_min: Optional[int] = None
    ebitda_max: Optional[int] = None
    revenue_band: Optional[str] = None
    ebitda_band: Optional[str] = None

    asking_price: Optional[int] = None
    deal_type: DealType = DealType.UNKNOWN
    has_teaser_pdf: bool = False

    source_name: str
    source_url: str

    data_confidence: DataConfidence = DataConfidence.LOW
    confidence_score: int = Field(default=0, ge=0, le=100)

    published_at: Optional[str] = None
    text_sample_length: int = 0

    @field_validator("industry_tag", mode="before")
    @classmethod
    def drop_disallowed_tag(cls, v):
        """Anything outside the allowed set becomes None instead of failing validation."""
        if v is None or isinstance(v, IndustryTag):
            return v
        return v if v in ALLOWED_INDUSTRY_TAGS else None

    @property
    def has_any_financial(self) -> bool:
        return any(
            v is not None
            for v in (self.revenue_min, self.revenue_max, self.ebitda_min, self.ebitda_max)
        )
