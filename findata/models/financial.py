"""Shared financial data models produced by every retrieval source."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_DESCRIPTION_LENGTH = 500
MAX_INVESTORS = 10

_TEXT_FIELDS = (
    "total_funding",
    "revenue",
    "valuation",
    "employee_count",
    "founded_year",
    "last_funding_round",
    "headquarters",
    "industry",
    "description",
    "growth_rate",
    "burn_rate",
    "runway",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def dedupe_preserving_order(values: Iterable[Any], *, limit: int | None = None) -> list[str]:
    """Drop blanks and exact duplicates while keeping first-seen order."""
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if not text or text in seen:
            continue
        seen.add(text)
        ordered.append(text)
        if limit is not None and len(ordered) >= limit:
            break
    return ordered


class FinancialRecord(BaseModel):
    """Best-effort company financial facts; unset fields mean unknown."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_funding: str | None = None
    revenue: str | None = None
    valuation: str | None = None
    employee_count: str | None = None
    founded_year: str | None = None
    last_funding_round: str | None = None
    investors: list[str] = Field(default_factory=list)
    headquarters: str | None = None
    industry: str | None = None
    description: str | None = None
    growth_rate: str | None = None
    burn_rate: str | None = None
    runway: str | None = None

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            value = str(value)
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator("description")
    @classmethod
    def _truncate_description(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value[:MAX_DESCRIPTION_LENGTH]

    @field_validator("investors", mode="before")
    @classmethod
    def _normalize_investors(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if isinstance(value, Iterable):
            return dedupe_preserving_order(value, limit=MAX_INVESTORS)
        return value

    def is_empty(self) -> bool:
        """True when no field carries a value."""
        return not self.filled_fields()

    def filled_fields(self) -> list[str]:
        filled = [name for name in _TEXT_FIELDS if getattr(self, name)]
        if self.investors:
            filled.append("investors")
        return filled

    def merge(self, other: FinancialRecord) -> FinancialRecord:
        """Fill gaps in this record from ``other``; existing values always win."""
        updates: dict[str, Any] = {}
        for name in _TEXT_FIELDS:
            if getattr(self, name) is None and getattr(other, name) is not None:
                updates[name] = getattr(other, name)
        if not self.investors and other.investors:
            updates["investors"] = list(other.investors)
        if not updates:
            return self
        return self.model_copy(update=updates)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready mapping using camelCase keys and omitting unknown fields."""
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not payload.get("investors"):
            payload.pop("investors", None)
        return payload


class RetrievalError(BaseModel):
    """Structured failure surfaced to callers instead of an exception."""

    message: str
    source: str
    details: str = ""


class RetrievalResult(BaseModel):
    """Financial record plus provenance for a single retrieval request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    company_name: str
    domain: str = ""
    financial_data: FinancialRecord | None = None
    source: str | None = None
    retrieved_at: datetime = Field(default_factory=_utcnow)
    cached: bool = False
    error: RetrievalError | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if self.financial_data is not None:
            payload["financialData"] = self.financial_data.to_payload()
        return payload


@dataclass(frozen=True)
class CacheEntry:
    """Cached retrieval outcome for a (company name, domain) pair."""

    company_name: str
    domain: str
    record: FinancialRecord
    source: str
    created_at: datetime

    def is_fresh(self, ttl_seconds: float, *, now: datetime | None = None) -> bool:
        reference = now or _utcnow()
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return (reference - created).total_seconds() <= ttl_seconds
