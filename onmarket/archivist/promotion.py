"""
Promotion gate and daily cap allocator.

upsert_deal_with_daily_cap() is the only writer of on_market_deals. Per raw
listing it either inserts a promoted row (consuming one unit of today's cap),
refreshes an existing row, or holds the candidate without writing anything.

Invariants enforced here:
- industry_tag is one of IndustryTag or NULL
- is_promoted never goes from True to False
- an existing tag is never replaced by NULL (sticky tag)
- the cap is only consumed on insert, through a conditional UPDATE
  (used < cap) so concurrent runs cannot over-admit
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple

from dateutil import parser as date_parser
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import DailyInventoryCap, OnMarketDeal
from .storage import ensure_daily_cap
from ..analyst.schemas import ALLOWED_INDUSTRY_TAGS, NormalizedDeal

logger = logging.getLogger(__name__)

GATE_MIN_INDUSTRY_CONFIDENCE = 70
GATE_MIN_CONFIDENCE_SCORE = 45
ANCHOR_TEXT_SAMPLE_CHARS = 160


class PromotionOutcome(str, Enum):
    """Result of one gated upsert."""
    PROMOTED = "promoted"  # inserted and admitted today
    UPDATED = "updated"    # existing canonical row refreshed
    HELD = "held"          # nothing inserted (no tag, gate failed or cap exhausted)


def clamp_tag(tag) -> Optional[str]:
    """Allowed tag value or None."""
    if tag is None:
        return None
    value = getattr(tag, "value", tag)
    return value if value in ALLOWED_INDUSTRY_TAGS else None


def has_anchor(candidate: NormalizedDeal) -> bool:
    """Geography, a financial figure, or a substantial text sample."""
    if candidate.location_city or candidate.location_state:
        return True
    if candidate.has_any_financial:
        return True
    return candidate.text_sample_length >= ANCHOR_TEXT_SAMPLE_CHARS


def passes_gate(
    candidate: NormalizedDeal,
    industry_tag: Optional[str] = None,
    industry_confidence: Optional[int] = None,
) -> bool:
    """
    Admission predicate.

    The tag/confidence overrides let the update path evaluate the gate with a
    sticky tag instead of the candidate's own classification.
    """
    tag = clamp_tag(candidate.industry_tag if industry_tag is None else industry_tag)
    confidence = candidate.industry_confidence if industry_confidence is None else industry_confidence

    if tag is None:
        return False
    if confidence < GATE_MIN_INDUSTRY_CONFIDENCE:
        return False
    if candidate.confidence_score < GATE_MIN_CONFIDENCE_SCORE:
        return False
    return has_anchor(candidate)


def resolve_sticky_tag(
    existing_tag: Optional[str],
    existing_confidence: int,
    candidate: NormalizedDeal,
) -> Tuple[Optional[str], int]:
    """Keep a stored tag when the new pass found none; otherwise take the new (clamped) tag."""
    new_tag = clamp_tag(candidate.industry_tag)
    if new_tag is None:
        kept = clamp_tag(existing_tag)
        if kept is not None:
            return kept, existing_confidence
        return None, 0
    return new_tag, candidate.industry_confidence


def _parse_published_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return date_parser.isoparse(value)
    except (ValueError, TypeError):
        return None


def _descriptive_fields(candidate: NormalizedDeal) -> dict:
    return {
        "company_name": candidate.company_name,
        "headline": candidate.headline,
        "location_city": candidate.location_city,
        "location_state": candidate.location_state,
        "revenue_min": candidate.revenue_min,
        "revenue_max": candidate.revenue_max,
        "ebitda_min": candidate.ebitda_min,
        "ebitda_max": candidate.ebitda_max,
        "revenue_band": candidate.revenue_band,
        "ebitda_band": candidate.ebitda_band,
        "asking_price": candidate.asking_price,
        "deal_type": candidate.deal_type.value,
        "has_teaser_pdf": candidate.has_teaser_pdf,
        "source_name": candidate.source_name,
        "source_url": candidate.source_url,
        "data_confidence": candidate.data_confidence.value,
        "confidence_score": candidate.confidence_score,
        "published_at": _parse_published_at(candidate.published_at),
    }


async def get_deal_for_raw_listing(session: AsyncSession, raw_listing_id: int) -> Optional[OnMarketDeal]:
    result = await session.execute(
        select(OnMarketDeal).where(OnMarketDeal.primary_raw_listing_id == raw_listing_id)
    )
    return result.scalar_one_or_none()


async def reserve_cap_slot(session: AsyncSession, day: date) -> bool:
    """
    Atomically take one unit of the day's cap.

    Returns:
        True if used was below cap and has been incremented
    """
    stmt = (
        update(DailyInventoryCap)
        .where(DailyInventoryCap.day == day, DailyInventoryCap.used < DailyInventoryCap.cap)
        .values(used=DailyInventoryCap.used + 1)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def upsert_deal_with_daily_cap(
    session: AsyncSession,
    raw_listing_id: int,
    candidate: NormalizedDeal,
    today: date,
    now: datetime,
) -> PromotionOutcome:
    """
    Apply the promotion state machine for one raw listing.

    Errors propagate; the caller's session rolls back the cap reservation
    together with the failed insert.
    """
    existing = await get_deal_for_raw_listing(session, raw_listing_id)

    if existing is not None:
        tag, confidence = resolve_sticky_tag(existing.industry_tag, existing.industry_confidence, candidate)

        for field_name, value in _descriptive_fields(candidate).items():
            setattr(existing, field_name, value)
        existing.industry_tag = tag
        existing.industry_confidence = confidence
        existing.last_seen_at = now

        # Held-then-qualifying rows are admitted here without a cap check
        if not existing.is_promoted and passes_gate(candidate, tag, confidence):
            existing.is_promoted = True
            existing.promoted_date = today
            logger.info(f"Promoted existing deal {existing.id} ({tag}) on update")

        existing.is_new_today = existing.promoted_date == today
        await session.flush()
        return PromotionOutcome.UPDATED

    tag = clamp_tag(candidate.industry_tag)
    if tag is None:
        return PromotionOutcome.HELD
    if not passes_gate(candidate):
        return PromotionOutcome.HELD

    reserved = await reserve_cap_slot(session, today)
    if not reserved and await _cap_row_missing(session, today):
        await ensure_daily_cap(session, today)
        reserved = await reserve_cap_slot(session, today)
    if not reserved:
        logger.info(f"Daily cap reached for {today.isoformat()}, holding raw listing {raw_listing_id}")
        return PromotionOutcome.HELD

    deal = OnMarketDeal(
        primary_raw_listing_id=raw_listing_id,
        industry_tag=tag,
        industry_confidence=candidate.industry_confidence,
        first_seen_at=now,
        last_seen_at=now,
        is_promoted=True,
        promoted_date=today,
        is_new_today=True,
        **_descriptive_fields(candidate),
    )
    session.add(deal)
    await session.flush()

    logger.info(f"Promoted deal {deal.id}: {candidate.headline[:80]} ({tag})")
    return PromotionOutcome.PROMOTED


async def _cap_row_missing(session: AsyncSession, day: date) -> bool:
    result = await session.execute(
        select(DailyInventoryCap.day).where(DailyInventoryCap.day == day)
    )
    return result.scalar_one_or_none() is None
