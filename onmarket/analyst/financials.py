"""
Strict financial text parsing.

Pure functions, no I/O. Figures are only reported when the text states them:

1. Label search: find a label ("annual revenue", "ebitda", "asking price", ...)
   and parse a range or a single value from the ~100 characters after it.
2. Fallback: for every keyword occurrence take a window from 60 characters
   before to 220 characters after, skip windows that do not look money-like,
   and parse the first window that yields a value.

Money grammar:
    amount := ["$"] number [suffix]
    number := 1,234,567 | 1234.5
    suffix := K | M | MM | B | million | thousand | billion
    range  := amount ("-" | "–" | "—" | "to") amount

A bare number only counts when it directly follows a label; everywhere else a
token must carry a "$", a suffix or thousands grouping to be read as money.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, Sequence

LABEL_WINDOW_CHARS = 100
FALLBACK_BEFORE_CHARS = 60
FALLBACK_AFTER_CHARS = 220
MIN_BARE_AMOUNT = 10_000

# Labels are tried in order; longer phrases first so "asking price" wins over "price"
REVENUE_LABELS = [
    "annual revenue", "gross revenue", "total revenue", "revenue",
    "gross sales", "annual sales", "sales",
]
EBITDA_LABELS = [
    "adjusted ebitda", "ebitda", "seller's discretionary earnings",
    "seller’s discretionary earnings", "discretionary earnings", "sde",
    "cash flow",
]
ASKING_PRICE_LABELS = ["asking price", "list price", "listing price", "price"]

ALL_LABELS = REVENUE_LABELS + EBITDA_LABELS + ASKING_PRICE_LABELS + ["net income", "profit"]

MULTIPLIERS = {
    "k": Decimal(1_000),
    "thousand": Decimal(1_000),
    "m": Decimal(1_000_000),
    "mm": Decimal(1_000_000),
    "mil": Decimal(1_000_000),
    "million": Decimal(1_000_000),
    "b": Decimal(1_000_000_000),
    "bil": Decimal(1_000_000_000),
    "billion": Decimal(1_000_000_000),
}

_NUMBER = r'\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?'
_SUFFIX = r'million|thousand|billion|mil|bil|mm|k|m|b'


def _amount(tag: str) -> str:
    return (
        rf'(?P<{tag}_dollar>\$)?\s*(?P<{tag}_num>{_NUMBER})'
        rf'(?:\s*(?P<{tag}_suffix>{_SUFFIX}))?\b(?!\s*%)'
    )


AMOUNT_PATTERN = re.compile(_amount("a"), re.IGNORECASE)
RANGE_TAIL_PATTERN = re.compile(
    r'\s*(?:-|–|—|\bto\b)\s*' + _amount("b"),
    re.IGNORECASE,
)
LEADING_SEPARATORS = re.compile(r'^[\s:=\-–—]*(?:of|is|was|approx\.?|approximately|about|~)?\s*', re.IGNORECASE)


@dataclass(frozen=True)
class MoneyRange:
    """Parsed figure; min == max for a single value."""
    min: int
    max: int


def parse_money(number: str, suffix: Optional[str] = None) -> Optional[int]:
    """
    Convert a number string with an optional suffix to whole dollars.

    Examples:
        >>> parse_money("1,200,000")
        1200000
        >>> parse_money("350", "K")
        350000
        >>> parse_money("1.25", "million")
        1250000
    """
    try:
        value = Decimal(number.replace(",", ""))
    except (InvalidOperation, AttributeError):
        return None
    if suffix:
        multiplier = MULTIPLIERS.get(suffix.lower())
        if multiplier is None:
            return None
        value *= multiplier
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _is_money_like(dollar: Optional[str], number: str, suffix: Optional[str]) -> bool:
    return bool(dollar) or bool(suffix) or "," in number


def looks_money_like(text: str) -> bool:
    """True if the text contains at least one $-prefixed, suffixed or comma-grouped number."""
    for m in AMOUNT_PATTERN.finditer(text or ""):
        if _is_money_like(m.group("a_dollar"), m.group("a_num"), m.group("a_suffix")):
            return True
    return False


def parse_money_range(text: str, allow_leading_bare: bool = False) -> Optional[MoneyRange]:
    """
    Parse the first money range or single money value in a text window.

    A range needs two amounts joined by "-" or "to" where at least one side is
    money-like. An unsuffixed first amount below 1,000 borrows the second
    amount's suffix ("1.2 - 1.5 million"). A bare side of a range must be at
    least MIN_BARE_AMOUNT, otherwise the first amount is parsed on its own.

    Args:
        text: Window to parse
        allow_leading_bare: Accept a bare number if it is the first thing in
            the window (used right after a label: "Revenue: 1200000")
    """
    if not text:
        return None

    lead = LEADING_SEPARATORS.match(text)
    lead_end = lead.end() if lead else 0

    for m in AMOUNT_PATTERN.finditer(text):
        a_dollar, a_num, a_suffix = m.group("a_dollar"), m.group("a_num"), m.group("a_suffix")
        a_money_like = _is_money_like(a_dollar, a_num, a_suffix)

        tail = RANGE_TAIL_PATTERN.match(text, m.end())
        if tail:
            b_dollar, b_num, b_suffix = tail.group("b_dollar"), tail.group("b_num"), tail.group("b_suffix")
            if a_money_like or _is_money_like(b_dollar, b_num, b_suffix):
                first_suffix = a_suffix
                if not first_suffix and b_suffix:
                    try:
                        if Decimal(a_num.replace(",", "")) < 1000:
                            first_suffix = b_suffix
                    except InvalidOperation:
                        pass
                a = parse_money(a_num, first_suffix)
                b = parse_money(b_num, b_suffix)
                if (
                    a is not None and b is not None
                    and (a_money_like or first_suffix or a >= MIN_BARE_AMOUNT)
                    and (_is_money_like(b_dollar, b_num, b_suffix) or b >= MIN_BARE_AMOUNT)
                ):
                    return MoneyRange(min=min(a, b), max=max(a, b))

        if a_money_like:
            value = parse_money(a_num, a_suffix)
            if value is not None:
                return MoneyRange(min=value, max=value)
        elif allow_leading_bare and m.start() <= lead_end:
            # Bare figures below five digits are years, counts or percentages
            value = parse_money(a_num)
            if value is not None and value >= MIN_BARE_AMOUNT:
                return MoneyRange(min=value, max=value)

    return None


@lru_cache(maxsize=None)
def _label_pattern(label: str) -> re.Pattern:
    return re.compile(r'(?<![a-z])' + re.escape(label) + r'(?![a-z])', re.IGNORECASE)


_ALL_LABEL_PATTERN = re.compile(
    r'(?<![a-z])(?:' + "|".join(re.escape(l) for l in sorted(ALL_LABELS, key=len, reverse=True)) + r')(?![a-z])',
    re.IGNORECASE,
)


def _label_window(text: str, start: int) -> str:
    """Text after a label, cut at the next line break or the next financial label.

    Line breaks directly after the label are skipped ("Revenue:\\n$1.2M" from
    definition lists).
    """
    window = text[start:start + LABEL_WINDOW_CHARS]
    lead = re.match(r'[\s:=\-–—]*', window)
    newline = re.compile(r'[\r\n]').search(window, lead.end())
    if newline:
        window = window[:newline.start()]
    next_label = _ALL_LABEL_PATTERN.search(window)
    if next_label:
        window = window[:next_label.start()]
    return window


def _labeled_value(text: str, labels: Sequence[str]) -> Optional[MoneyRange]:
    for label in labels:
        for m in _label_pattern(label).finditer(text):
            parsed = parse_money_range(_label_window(text, m.end()), allow_leading_bare=True)
            if parsed:
                return parsed
    return None


def _fallback_value(text: str, keywords: Sequence[str]) -> Optional[MoneyRange]:
    hits: List[int] = []
    for keyword in keywords:
        hits.extend(m.start() for m in _label_pattern(keyword).finditer(text))

    for idx in sorted(set(hits)):
        window = text[max(0, idx - FALLBACK_BEFORE_CHARS):idx + FALLBACK_AFTER_CHARS]
        if not looks_money_like(window):
            continue
        parsed = parse_money_range(window)
        if parsed:
            return parsed
    return None


def extract_financial_range(text: str, labels: Sequence[str]) -> Optional[MoneyRange]:
    """Label search, then keyword-window fallback. None when nothing money-like is stated."""
    if not text:
        return None
    return _labeled_value(text, labels) or _fallback_value(text, labels)


def parse_revenue(text: str) -> Optional[MoneyRange]:
    return extract_financial_range(text, REVENUE_LABELS)


def parse_ebitda(text: str) -> Optional[MoneyRange]:
    return extract_financial_range(text, EBITDA_LABELS)


def parse_asking_price(text: str) -> Optional[int]:
    """Asking price as a single figure (the low end when a range is quoted)."""
    parsed = extract_financial_range(text, ASKING_PRICE_LABELS)
    return parsed.min if parsed else None


def find_financial_lines(text: str, limit: int = 14, max_len: int = 260) -> List[str]:
    """Lines that mention a financial label, truncated, in document order."""
    lines: List[str] = []
    for line in re.split(r'[\r\n]+', text or ""):
        line = line.strip()
        if line and _ALL_LABEL_PATTERN.search(line):
            lines.append(line[:max_len])
            if len(lines) >= limit:
                break
    return lines


def parse_stated_asking_price(text: str) -> Optional[int]:
    """Asking price only when an explicit asking/list price label precedes it."""
    parsed = _labeled_value(text or "", ASKING_PRICE_LABELS[:-1])
    return parsed.min if parsed else None
