"""
Rule-based industry classification for trade-services listings.

Two tiers:
1. Source override: a source named "Synergy - HVAC" or "VR (Plumbing)" pins
   every listing it produces to that tag at confidence 95.
2. Keyword scoring over a lowercase blob of the listing text:
       score = strong_hits * 35 + weak_hits * 12  (+10 if strong_hits >= 2), max 100
   A candidate qualifies with at least one strong hit or two weak hits, and is
   disqualified outright by any of its exclusion terms. The best qualifying
   candidate wins; below 55 the listing stays untagged.
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable, List, Optional, Tuple

from .schemas import IndustryTag

logger = logging.getLogger(__name__)

SOURCE_OVERRIDE_CONFIDENCE = 95
STRONG_WEIGHT = 35
WEAK_WEIGHT = 12
MULTI_STRONG_BONUS = 10
MIN_CLASSIFY_SCORE = 55


@dataclass
class IndustryRule:
    """Keyword lists for one industry tag."""
    tag: IndustryTag
    strong: List[str]
    weak: List[str]
    exclusions: List[str] = field(default_factory=list)


# Order matters only for exact score ties (earlier rule wins)
INDUSTRY_RULES: List[IndustryRule] = [
    IndustryRule(
        tag=IndustryTag.HVAC,
        strong=[
            "hvac", "heating and air", "heating and cooling", "heating & air",
            "air conditioning", "heat pump", "furnace", "ductwork",
            "refrigeration", "mechanical contractor",
        ],
        weak=[
            "heating", "cooling", "ventilation", "boiler", "thermostat",
            "duct", "a/c", "indoor air quality", "chiller",
        ],
        exclusions=["hvac supply", "hvac distributor", "hvac software"],
    ),
    IndustryRule(
        tag=IndustryTag.PLUMBING,
        strong=[
            "plumbing", "plumber", "drain cleaning", "sewer", "septic",
            "water heater", "backflow", "hydro jetting", "repiping",
        ],
        weak=[
            "drain", "pipe", "water line", "leak detection", "fixture",
            "gas line", "excavation",
        ],
        exclusions=["plumbing supply", "plumbing distributor", "plumbing software"],
    ),
    IndustryRule(
        tag=IndustryTag.ELECTRICAL,
        strong=[
            "electrician", "electrical contractor", "electrical contracting",
            "electrical services", "electrical service", "panel upgrade",
            "rewiring", "ev charger",
        ],
        weak=[
            "electrical", "wiring", "generator", "lighting", "low voltage",
            "switchgear", "service calls",
        ],
        exclusions=["electrical supply", "electrical distributor", "electronics"],
    ),
]

# "Synergy - HVAC", "VR Business Brokers (Plumbing)", "Murphy: Electrical", "Synergy | HVAC"
SOURCE_SUFFIX_PATTERN = re.compile(
    r'[-–—:|/(]\s*(hvac|plumbing|electrical)\s*\)?\s*$',
    re.IGNORECASE,
)


@dataclass
class IndustryScore:
    """Keyword evidence for one candidate industry."""
    tag: IndustryTag
    strong_hits: int
    weak_hits: int
    excluded: bool = False

    @property
    def score(self) -> int:
        score = self.strong_hits * STRONG_WEIGHT + self.weak_hits * WEAK_WEIGHT
        if self.strong_hits >= 2:
            score += MULTI_STRONG_BONUS
        return min(score, 100)

    @property
    def qualifies(self) -> bool:
        if self.excluded:
            return False
        return self.strong_hits >= 1 or self.weak_hits >= 2


@lru_cache(maxsize=None)
def _term_pattern(term: str) -> re.Pattern:
    # Word-bounded, optional plural ("furnaces", "plumbers")
    return re.compile(r'(?<![a-z0-9])' + re.escape(term) + r'(?:s|es)?(?![a-z0-9])')


def _count_hits(blob: str, terms: Iterable[str]) -> int:
    return sum(1 for term in terms if _term_pattern(term).search(blob))


def industry_from_source_name(source_name: Optional[str]) -> Optional[IndustryTag]:
    """
    Read an industry suffix from a source name.

    Examples:
        >>> industry_from_source_name("Synergy Business Brokers - HVAC")
        <IndustryTag.HVAC: 'HVAC'>
        >>> industry_from_source_name("Murphy Business Sales") is None
        True
    """
    if not source_name:
        return None
    match = SOURCE_SUFFIX_PATTERN.search(source_name.strip())
    if not match:
        return None
    suffix = match.group(1).lower()
    for tag in IndustryTag:
        if tag.value.lower() == suffix:
            return tag
    return None


def build_industry_blob(parts: Iterable[Optional[str]]) -> str:
    """Join non-empty text parts into one lowercase blob."""
    return " | ".join(str(p).lower() for p in parts if p)


def score_industries(blob: str) -> List[IndustryScore]:
    """Keyword evidence for every industry rule, in rule order."""
    scores = []
    for rule in INDUSTRY_RULES:
        scores.append(IndustryScore(
            tag=rule.tag,
            strong_hits=_count_hits(blob, rule.strong),
            weak_hits=_count_hits(blob, rule.weak),
            excluded=_count_hits(blob, rule.exclusions) > 0,
        ))
    return scores


def classify_industry(
    source_name: Optional[str],
    blob_parts: Iterable[Optional[str]],
) -> Tuple[Optional[IndustryTag], int]:
    """
    Classify a listing into one of the allowed industry tags.

    Args:
        source_name: Source display name (may carry an industry suffix)
        blob_parts: Source name, URL, title, company, headline, text sample, terms

    Returns:
        (tag, confidence) or (None, 0) when no candidate scores at least 55
    """
    override = industry_from_source_name(source_name)
    if override is not None:
        return override, SOURCE_OVERRIDE_CONFIDENCE

    blob = build_industry_blob(blob_parts)
    if not blob:
        return None, 0

    best: Optional[IndustryScore] = None
    for candidate in score_industries(blob):
        if not candidate.qualifies:
            continue
        if best is None or candidate.score > best.score:
            best = candidate

    if best is None or best.score < MIN_CLASSIFY_SCORE:
        return None, 0

    logger.debug(
        f"Industry {best.tag.value} score={best.score} "
        f"strong={best.strong_hits} weak={best.weak_hits}"
    )
    return best.tag, best.score
