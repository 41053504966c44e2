"""Shared contract and helpers for financial data source adapters."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Protocol, TypeVar

import httpx

from findata.clients.errors import SourceAuthError, SourceRateLimitError, SourceTimeoutError
from findata.models.financial import FinancialRecord

T = TypeVar("T")

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}


@dataclass(frozen=True)
class SourceResult:
    """A non-empty record together with the label of the source that produced it."""

    record: FinancialRecord
    source: str


class FinancialDataSource(Protocol):
    """Capability shared by every adapter in the fallback chain."""

    name: str

    async def fetch_financial_data(
        self, company_name: str, domain: str | None = None
    ) -> SourceResult | None:
        ...


async def with_timeout(awaitable: Awaitable[T], timeout_seconds: float, *, source: str) -> T:
    """Await ``awaitable`` but cancel it once ``timeout_seconds`` elapse."""
    try:
        return await asyncio.wait_for(awaitable, timeout=max(timeout_seconds, 0.001))
    except asyncio.TimeoutError as exc:
        raise SourceTimeoutError(source, timeout_seconds) from exc


def raise_for_actionable_status(response: httpx.Response, *, source: str) -> None:
    """Surface the statuses callers must react to (throttling and bad credentials)."""
    if response.status_code == 429:
        raise SourceRateLimitError(source)
    if response.status_code == 401:
        raise SourceAuthError(source)


def usable(record: FinancialRecord | None, source: str) -> SourceResult | None:
    """Wrap ``record`` unless it carries no information at all."""
    if record is None or record.is_empty():
        return None
    return SourceResult(record=record, source=source)
