"""Fallback orchestration across the financial data sources."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

from findata.clients.base import FinancialDataSource, SourceResult, with_timeout
from findata.clients.clearbit import ClearbitClient
from findata.clients.people_data_labs import PeopleDataLabsClient
from findata.clients.serpapi import SerpApiClient
from findata.clients.web_scraper import WebScrapingClient
from findata.config import Settings, settings
from findata.models.financial import CacheEntry, RetrievalError, RetrievalResult
from findata.observability.metrics import MetricsReporter, metrics
from findata.services.retrieval.cache import FinancialCache, build_financial_cache
from findata.services.retrieval.company_input import (
    CompanyTarget,
    classify_input,
    extract_domain,
)
from findata.services.retrieval.errors import CacheStorageError

logger = logging.getLogger(__name__)

ALL_SOURCES = "All Sources"
SYSTEM_SOURCE = "System"
DOMAIN_RESOLUTION_SOURCE = "Clearbit"


class DomainResolver(Protocol):
    async def resolve_domain(self, company_name: str) -> str | None:
        ...


class FinancialDataRetriever:
    """Cache, resolve the domain, then walk the sources until one returns data."""

    def __init__(
        self,
        sources: Sequence[FinancialDataSource],
        *,
        domain_resolver: DomainResolver | None = None,
        cache: FinancialCache | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        metrics_reporter: MetricsReporter | Any | None = None,
    ) -> None:
        self._sources = list(sources)
        self._domain_resolver = domain_resolver
        self._cache = cache
        self._sleep = sleep
        self._clock = clock
        self._metrics = metrics_reporter or metrics

    @property
    def source_names(self) -> list[str]:
        return [source.name for source in self._sources]

    def cache_available(self) -> bool:
        return self._cache is None or self._cache.ping()

    async def aclose(self) -> None:
        """Close every collaborator that owns network resources."""
        for collaborator in [*self._sources, self._domain_resolver]:
            closer = getattr(collaborator, "aclose", None)
            if closer is not None:
                await closer()

    async def get_financial_data(
        self,
        company_or_url: str,
        *,
        force_refresh: bool = False,
        timeout: float | None = None,
    ) -> RetrievalResult:
        """Never raises; failures come back as ``success=False`` results."""
        budget = settings.retrieval_timeout_seconds if timeout is None else timeout
        started = self._clock()
        try:
            result = await self._retrieve(company_or_url, force_refresh, budget, started)
        except Exception as exc:
            logger.exception("retrieval.unexpected_error", extra={"company": company_or_url})
            self._metrics.increment("retrieval.failure", tags={"reason": "system"})
            return RetrievalResult(
                success=False,
                company_name=company_or_url,
                error=RetrievalError(
                    message="Unexpected error during data retrieval",
                    source=SYSTEM_SOURCE,
                    details=str(exc),
                ),
            )
        elapsed_ms = (self._clock() - started) * 1000
        self._metrics.timing(
            "retrieval.latency_ms",
            elapsed_ms,
            tags={"success": result.success, "cached": result.cached},
        )
        return result

    async def _retrieve(
        self, company_or_url: str, force_refresh: bool, timeout: float, started: float
    ) -> RetrievalResult:
        target = classify_input(company_or_url)
        logger.info(
            "retrieval.started",
            extra={"company_name": target.company_name, "domain": target.domain},
        )

        if not force_refresh:
            entry = self._read_cache(target)
            if entry is not None:
                self._metrics.increment("retrieval.cache_hit")
                return RetrievalResult(
                    success=True,
                    company_name=entry.company_name,
                    domain=entry.domain,
                    financial_data=entry.record,
                    source=entry.source,
                    cached=True,
                )

        domain = target.domain or await self._resolve_domain(target.company_name, timeout / 4)

        hit, last_error = await self._run_sources(target.company_name, domain, timeout, started)
        if hit is None:
            details = str(last_error) if last_error else "All data sources failed"
            logger.error(
                "retrieval.all_sources_failed",
                extra={"company_name": target.company_name, "details": details},
            )
            self._metrics.increment("retrieval.failure", tags={"reason": "all_sources"})
            return RetrievalResult(
                success=False,
                company_name=target.company_name,
                domain=domain,
                error=RetrievalError(
                    message="Failed to retrieve financial data from all sources",
                    source=ALL_SOURCES,
                    details=details,
                ),
            )

        self._write_cache(target.company_name, domain, hit)
        self._metrics.increment("retrieval.success", tags={"source": hit.source})
        logger.info(
            "retrieval.succeeded",
            extra={
                "company_name": target.company_name,
                "source": hit.source,
                "fields": hit.record.filled_fields(),
            },
        )
        return RetrievalResult(
            success=True,
            company_name=target.company_name,
            domain=domain,
            financial_data=hit.record,
            source=hit.source,
        )

    async def _run_sources(
        self, company_name: str, domain: str, timeout: float, started: float
    ) -> tuple[SourceResult | None, Exception | None]:
        deadline = started + timeout
        per_source_cap = timeout / 3
        last_error: Exception | None = None
        total = len(self._sources)

        for index, source in enumerate(self._sources):
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(
                    "retrieval.budget_exhausted",
                    extra={"company_name": company_name, "skipped_from": source.name},
                )
                break
            attempt_budget = min(remaining / (total - index), per_source_cap)
            try:
                hit = await with_timeout(
                    source.fetch_financial_data(company_name, domain or None),
                    attempt_budget,
                    source=source.name,
                )
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "retrieval.source_failed",
                    extra={
                        "company_name": company_name,
                        "source": source.name,
                        "code": getattr(exc, "code", None),
                        "error": str(exc),
                    },
                )
                self._metrics.increment("retrieval.source_failed", tags={"source": source.name})
                if index < total - 1:
                    await self._sleep(float(2**index))
                continue
            if hit is not None and not hit.record.is_empty():
                return hit, last_error
            logger.info(
                "retrieval.source_empty",
                extra={"company_name": company_name, "source": source.name},
            )
        return None, last_error

    async def _resolve_domain(self, company_name: str, budget: float) -> str:
        if self._domain_resolver is None or not company_name:
            return ""
        try:
            domain = await with_timeout(
                self._domain_resolver.resolve_domain(company_name),
                budget,
                source=DOMAIN_RESOLUTION_SOURCE,
            )
        except Exception as exc:
            logger.warning(
                "retrieval.domain_resolution_failed",
                extra={"company_name": company_name, "error": str(exc)},
            )
            return ""
        domain = extract_domain(domain or "")
        if domain:
            logger.info(
                "retrieval.domain_resolved",
                extra={"company_name": company_name, "domain": domain},
            )
        return domain

    def _read_cache(self, target: CompanyTarget) -> CacheEntry | None:
        if self._cache is None:
            return None
        try:
            return self._cache.get(target.company_name, target.domain)
        except CacheStorageError as exc:
            logger.warning("retrieval.cache_read_failed", extra={"error": str(exc)})
            return None

    def _write_cache(self, company_name: str, domain: str, hit: SourceResult) -> None:
        if self._cache is None:
            return
        try:
            self._cache.put(company_name, domain, hit.record, hit.source)
        except CacheStorageError as exc:
            logger.warning(
                "retrieval.cache_write_failed",
                extra={"company_name": company_name, "error": str(exc)},
            )


def build_default_retriever(
    config: Settings | None = None, *, cache: FinancialCache | None = None
) -> FinancialDataRetriever:
    """Wire the production source chain from settings."""
    config = config or settings
    sources: list[FinancialDataSource] = [
        WebScrapingClient(timeout=config.scrape_timeout_seconds),
        PeopleDataLabsClient(config.people_data_labs_api_key, timeout=config.api_timeout_seconds),
        SerpApiClient(
            config.serpapi_key,
            timeout=config.api_timeout_seconds,
            query_delay=config.search_query_delay_seconds,
        ),
    ]
    return FinancialDataRetriever(
        sources,
        domain_resolver=ClearbitClient(config.clearbit_api_key),
        cache=cache if cache is not None else build_financial_cache(config.database_url),
    )


_RETRIEVER_INSTANCE: FinancialDataRetriever | None = None


def get_financial_data_retriever() -> FinancialDataRetriever:
    """Singleton accessor used by API routes."""
    global _RETRIEVER_INSTANCE  # noqa: PLW0603
    if _RETRIEVER_INSTANCE is None:
        _RETRIEVER_INSTANCE = build_default_retriever()
    return _RETRIEVER_INSTANCE


async def close_financial_data_retriever() -> None:
    global _RETRIEVER_INSTANCE  # noqa: PLW0603
    if _RETRIEVER_INSTANCE is not None:
        await _RETRIEVER_INSTANCE.aclose()
        _RETRIEVER_INSTANCE = None
