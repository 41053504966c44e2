"""Ordered regex rules that mine free text for company financial facts.

Every field owns a tuple of :class:`ExtractionRule` objects sorted from most to
least specific. Rules are evaluated in order and the first one whose pattern
matches (and whose transform yields a value) wins; later rules for the same
field are never consulted. Conflicting mentions on the same page are therefore
resolved purely by rule priority and position, never by plausibility.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_DOWN, Decimal, InvalidOperation

from findata.models.financial import (
    MAX_DESCRIPTION_LENGTH,
    MAX_INVESTORS,
    FinancialRecord,
    dedupe_preserving_order,
)

MIN_DESCRIPTION_LENGTH = 20
MAX_TEXT_LENGTH = 50_000

_AMOUNT = r"\$\s?(\d+(?:[.,]\d+)*)\s*(billion|million|thousand|bn|b|m|k)\b"
_COUNT = r"(\d{1,3}(?:,\d{3})+|\d+)"
_YEAR = r"((?:19|20)\d{2})"
_PEOPLE = r"(?:employees|team members|staff|people|workers)"

_UNIT_SUFFIXES = {
    "thousand": "K",
    "k": "K",
    "million": "M",
    "m": "M",
    "billion": "B",
    "bn": "B",
    "b": "B",
}

Transform = Callable[[re.Match[str]], "str | None"]


@dataclass(frozen=True)
class ExtractionRule:
    """A single (field, pattern, transform) entry in a priority list."""

    field: str
    pattern: re.Pattern[str]
    transform: Transform

    def apply(self, text: str) -> str | None:
        match = self.pattern.search(text)
        if not match:
            return None
        try:
            value = self.transform(match)
        except (ValueError, IndexError, InvalidOperation):
            return None
        return value.strip() if value and value.strip() else None


def format_currency(amount: str, unit: str) -> str | None:
    """Render ``$<numeral><K|M|B>`` without converting between units."""
    suffix = _UNIT_SUFFIXES.get(unit.lower())
    if not suffix or not amount:
        return None
    return f"${amount}{suffix}"


def format_employee_range(low: str, high: str) -> str:
    """Midpoint of a ``min-max`` headcount band with the original range appended."""
    low_value = int(low.replace(",", ""))
    high_value = int(high.replace(",", ""))
    midpoint = (Decimal(low_value) + Decimal(high_value)) / 2
    rounded = midpoint.quantize(Decimal(1), rounding=ROUND_HALF_DOWN)
    return f"{rounded} ({low}-{high})"


def parse_employee_size(size: str) -> str | None:
    """Normalize a size string such as ``51-200`` or ``1,001-5,000``."""
    if not size or not size.strip():
        return None
    match = re.search(rf"{_COUNT}\s*[-–]\s*{_COUNT}", size)
    if match:
        return format_employee_range(match.group(1), match.group(2))
    return size.strip()


def _currency(match: re.Match[str]) -> str | None:
    return format_currency(match.group(1), match.group(2))


def _group(index: int = 1) -> Transform:
    def _take(match: re.Match[str]) -> str | None:
        return match.group(index)

    return _take


def _employee_range(match: re.Match[str]) -> str:
    return format_employee_range(match.group(1), match.group(2))


def _percent(match: re.Match[str]) -> str:
    return f"{match.group(1)}%"


def _burn(match: re.Match[str]) -> str | None:
    amount = format_currency(match.group(1), match.group(2))
    period = (match.group(3) or "").lower()
    if amount and period:
        return f"{amount}/{'year' if period.startswith('y') else 'month'}"
    return amount


def _runway(match: re.Match[str]) -> str:
    quantity, unit = match.group(1), match.group(2).lower()
    unit = unit if unit.endswith("s") or quantity == "1" else f"{unit}s"
    return f"{quantity} {unit}"


def _funding_round(match: re.Match[str]) -> str:
    label = re.sub(r"\s+", " ", match.group(1)).strip()
    if label.lower().startswith("series"):
        return f"Series {label.split()[-1].upper()}"
    if label.upper() == "IPO":
        return "IPO"
    return label.replace("-", " ").title().replace(" ", "-") if "-" in label else label.title()


def _rule(field: str, pattern: str, transform: Transform, *, flags: int = re.IGNORECASE) -> ExtractionRule:
    return ExtractionRule(field=field, pattern=re.compile(pattern, flags), transform=transform)


FIELD_RULES: Mapping[str, tuple[ExtractionRule, ...]] = {
    "total_funding": (
        _rule("total_funding", rf"(?:total funding|raised a total of|total raised)[^$]{{0,40}}?{_AMOUNT}", _currency),
        _rule("total_funding", rf"\b(?:raised|raising|secured|closed)\b[^$.]{{0,60}}?{_AMOUNT}", _currency),
        _rule("total_funding", rf"\b(?:funding|investment)\b[^$.]{{0,60}}?{_AMOUNT}", _currency),
        _rule("total_funding", rf"{_AMOUNT}[^.$]{{0,60}}?(?:funding|investment|financing|round)", _currency),
    ),
    "revenue": (
        _rule("revenue", rf"\b(?:annual revenue|annual recurring revenue|revenue|arr|sales)\b[^$.]{{0,40}}?{_AMOUNT}", _currency),
        _rule("revenue", rf"{_AMOUNT}\s+(?:in\s+)?(?:annual\s+)?(?:revenue|arr|sales)\b", _currency),
    ),
    "valuation": (
        _rule("valuation", rf"(?:valued at|valuation of|valuation)\b[^$.]{{0,40}}?{_AMOUNT}", _currency),
        _rule("valuation", rf"{_AMOUNT}\s+(?:post-money\s+|pre-money\s+)?valuation", _currency),
    ),
    "employee_count": (
        _rule("employee_count", rf"{_COUNT}\s*[-–]\s*{_COUNT}\s+{_PEOPLE}\b", _employee_range),
        _rule("employee_count", rf"{_COUNT}\s*\+?\s*{_PEOPLE}\b", _group()),
        _rule("employee_count", rf"(?:team|workforce|headcount) of\s+{_COUNT}\b", _group()),
        _rule("employee_count", rf"(?:employees|company size|headcount)\s*:?\s*{_COUNT}\b", _group()),
    ),
    "founded_year": (
        _rule("founded_year", rf"(?:founded|established|incorporated|started)\s+(?:in\s+)?(?:[a-z]+\s+)?{_YEAR}\b", _group()),
        _rule("founded_year", rf"(?:founded|established|started)\b[^.]{{0,60}}?\b{_YEAR}\b", _group()),
        _rule("founded_year", rf"\bsince\s+{_YEAR}\b", _group()),
    ),
    "last_funding_round": (
        _rule(
            "last_funding_round",
            r"\b(series\s+[a-h]|pre-seed|seed|angel|bridge)\s+(?:round|funding|financing|extension)\b",
            _funding_round,
        ),
        _rule("last_funding_round", r"\b(?:raised|closed|announced)\b[^.]{0,60}?\b(series\s+[a-h])\b", _funding_round),
        _rule("last_funding_round", r"\b(IPO)\b", _funding_round, flags=0),
    ),
    "growth_rate": (
        _rule("growth_rate", r"(\d+(?:\.\d+)?)\s*%\s*(?:year[- ]over[- ]year|yoy|annual|revenue)?\s*growth\b", _percent),
        _rule("growth_rate", r"(?:grew|growth of|growing(?: at)?)\s+(?:by\s+)?(\d+(?:\.\d+)?)\s*%", _percent),
    ),
    "burn_rate": (
        _rule(
            "burn_rate",
            rf"(?:burn rate|monthly burn|burning)\b[^$.]{{0,30}}?{_AMOUNT}(?:\s*(?:per|/|a)\s*(month|mo|year|yr))?",
            _burn,
        ),
    ),
    "runway": (
        _rule("runway", r"(\d+(?:\.\d+)?)\s*(months?|years?)\s+(?:of\s+)?(?:cash\s+)?runway", _runway),
        _rule("runway", r"runway\s+(?:of\s+)?(?:about\s+|approximately\s+|roughly\s+)?(\d+(?:\.\d+)?)\s*(months?|years?)", _runway),
    ),
    "headquarters": (
        _rule(
            "headquarters",
            r"(?:[Hh]eadquartered|[Bb]ased) in ([A-Z][a-zA-Z]+(?: [A-Z][a-zA-Z]+)*(?:, [A-Z][a-zA-Z]+(?: [A-Z][a-zA-Z]+)*)?)",
            _group(),
            flags=0,
        ),
    ),
    "description": (
        _rule(
            "description",
            r"([A-Z][^.!?]{0,200}?\b(?:is|are) (?:a|an|the)\b[^.!?]{10,450}[.!?])",
            _group(),
            flags=0,
        ),
    ),
}

YEAR_RULES: tuple[ExtractionRule, ...] = (
    *FIELD_RULES["founded_year"],
    _rule("founded_year", rf"\b{_YEAR}\b", _group()),
)

COUNT_RULES: tuple[ExtractionRule, ...] = (
    _rule("employee_count", rf"{_COUNT}\s*[-–]\s*{_COUNT}", _employee_range),
    _rule("employee_count", _COUNT, _group()),
)

CURRENCY_RULES: tuple[ExtractionRule, ...] = (
    _rule("amount", _AMOUNT, _currency),
    _rule("amount", r"(\$\d+(?:[.,]\d+)*[KMB]?)\b", _group(), flags=0),
)

_INVESTOR_PATTERN = re.compile(
    r"\b((?:[A-Z][A-Za-z0-9&'.-]*\s){1,3}(?:Capital|Ventures|Partners|Fund|Investments?))\b"
)
_INVESTOR_LEADING_NOISE = {
    "A",
    "An",
    "And",
    "By",
    "From",
    "Including",
    "Investors",
    "Led",
    "The",
    "With",
}


def normalize_text(text: str | None, *, limit: int = MAX_TEXT_LENGTH) -> str:
    """Collapse whitespace and bound the amount of text scanned by the rules."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text[: limit * 2]).strip()[:limit]


def apply_rules(text: str, rules: Iterable[ExtractionRule]) -> str | None:
    """Return the first rule hit in priority order."""
    for rule in rules:
        value = rule.apply(text)
        if value:
            return value
    return None


def extract_field(text: str | None, field: str) -> str | None:
    """Run the priority list for a single field."""
    rules = FIELD_RULES.get(field)
    if not rules:
        raise KeyError(f"No extraction rules registered for field '{field}'")
    return apply_rules(normalize_text(text), rules)


def extract_year(text: str | None) -> str | None:
    """Founded-year lookup for short, field-scoped snippets (allows a bare year)."""
    return apply_rules(normalize_text(text), YEAR_RULES)


def extract_count(text: str | None) -> str | None:
    """First headcount-like number (or range) inside a short snippet."""
    return apply_rules(normalize_text(text), COUNT_RULES)


def extract_amount(text: str | None) -> str | None:
    """First currency amount inside a short snippet."""
    return apply_rules(normalize_text(text), CURRENCY_RULES)


def extract_investors(text: str | None, *, limit: int = MAX_INVESTORS) -> list[str]:
    """Capitalized organization names ending in a fund-like suffix."""
    normalized = normalize_text(text)
    if not normalized:
        return []
    candidates: list[str] = []
    for match in _INVESTOR_PATTERN.finditer(normalized):
        words = match.group(1).split()
        while len(words) > 1 and words[0] in _INVESTOR_LEADING_NOISE:
            words = words[1:]
        if len(words) > 1:
            candidates.append(" ".join(words))
    return dedupe_preserving_order(candidates, limit=limit)


def pick_description(candidates: Iterable[str | None]) -> str | None:
    """First candidate longer than the minimum description length, truncated."""
    for candidate in candidates:
        if not candidate:
            continue
        text = normalize_text(candidate)
        if len(text) > MIN_DESCRIPTION_LENGTH:
            return text[:MAX_DESCRIPTION_LENGTH]
    return None


def extract_financial_data(text: str | None, *, investor_limit: int = MAX_INVESTORS) -> FinancialRecord:
    """Best-effort FinancialRecord from arbitrary text; never raises."""
    normalized = normalize_text(text)
    if not normalized:
        return FinancialRecord()

    values: dict[str, object] = {}
    for field, rules in FIELD_RULES.items():
        value = apply_rules(normalized, rules)
        if value is None:
            continue
        if field == "description" and len(value) <= MIN_DESCRIPTION_LENGTH:
            continue
        values[field] = value

    investors = extract_investors(normalized, limit=investor_limit)
    if investors:
        values["investors"] = investors
    return FinancialRecord(**values)
