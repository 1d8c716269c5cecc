from .schemas import (
    IndustryTag,
    DealType,
    DataConfidence,
    ListingStub,
    ParserInput,
    ExtractedFields,
    NormalizedDeal,
    ALLOWED_INDUSTRY_TAGS,
)
from .industry import classify_industry
from .financials import (
    MoneyRange,
    parse_money,
    parse_money_range,
    parse_revenue,
    parse_ebitda,
    parse_asking_price,
)
from .normalizer import (
    NormalizeInput,
    normalize_deal,
    compute_confidence,
    revenue_band,
    ebitda_band,
)

__all__ = [
    "IndustryTag",
    "DealType",
    "DataConfidence",
    "ListingStub",
    "ParserInput",
    "ExtractedFields",
    "NormalizedDeal",
    "ALLOWED_INDUSTRY_TAGS",
    "classify_industry",
    "MoneyRange",
    "parse_money",
    "parse_money_range",
    "parse_revenue",
    "parse_ebitda",
    "parse_asking_price",
    "NormalizeInput",
    "normalize_deal",
    "compute_confidence",
    "revenue_band",
    "ebitda_band",
]
