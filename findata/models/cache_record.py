"""SQLModel mapping for cached financial retrieval results."""
# ruff: noqa: UP017

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql import expression
from sqlmodel import Field, SQLModel

from findata.models.financial import CacheEntry, FinancialRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


JSON_BACKING_TYPE = sa.JSON().with_variant(JSONB(astext_type=sa.Text()), "postgresql")


class UtcNow(expression.FunctionElement):
    """Dialect-aware server default that pins timestamps to UTC."""

    type = DateTime(timezone=True)
    inherit_cache = True


@compiles(UtcNow)
def _utc_now_default(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "CURRENT_TIMESTAMP"


@compiles(UtcNow, "postgresql")
def _utc_now_default_postgres(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "timezone('utc', now())"


class FinancialCacheRecord(SQLModel, table=True):
    """One cached record per (company name, domain) pair."""

    __tablename__ = "financial_cache"
    __table_args__ = (
        sa.UniqueConstraint("company_name", "domain", name="uq_financial_cache_company_domain"),
        sa.Index("ix_financial_cache_domain", "domain"),
        sa.Index("ix_financial_cache_created_at", "created_at"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    company_name: str = Field(sa_column=Column(String(length=255), nullable=False))
    domain: str = Field(
        default="",
        sa_column=Column(String(length=255), nullable=False, server_default=""),
    )
    financial_data: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON_BACKING_TYPE, nullable=False),
    )
    source: str = Field(sa_column=Column(String(length=128), nullable=False))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(
            DateTime(timezone=True),
            nullable=False,
            server_default=UtcNow(),
        ),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(
            DateTime(timezone=True),
            nullable=False,
            server_default=UtcNow(),
            onupdate=UtcNow(),
        ),
    )

    @classmethod
    def from_cache_entry(cls, entry: CacheEntry) -> FinancialCacheRecord:
        return cls(
            company_name=entry.company_name,
            domain=entry.domain,
            financial_data=entry.record.model_dump(mode="json", exclude_none=True),
            source=entry.source,
            created_at=entry.created_at,
            updated_at=entry.created_at,
        )

    def to_cache_entry(self) -> CacheEntry:
        """Hydrate the stored JSON back into a FinancialRecord."""
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return CacheEntry(
            company_name=self.company_name,
            domain=self.domain,
            record=FinancialRecord.model_validate(self.financial_data),
            source=self.source,
            created_at=created,
        )
