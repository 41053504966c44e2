"""Client that mines SerpAPI Google results for company financial facts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from findata.clients.base import (
    SourceResult,
    raise_for_actionable_status,
    usable,
    with_timeout,
)
from findata.clients.errors import SourceAuthError, SourceError, SourceRateLimitError
from findata.models.financial import FinancialRecord
from findata.services.extraction.text_patterns import (
    extract_count,
    extract_field,
    extract_financial_data,
    extract_investors,
    extract_year,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "SerpAPI"
DEFAULT_BASE_URL = "https://serpapi.com/search"
ORGANIC_RESULTS_SCANNED = 5
SEARCH_INVESTOR_LIMIT = 5
FUNDING_DATABASE_DOMAINS = ("crunchbase.com", "pitchbook.com", "cbinsights.com", "dealroom.co")


class _SerpModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _stringify_scalars(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class SerpOrganicResult(_SerpModel):
    title: str = ""
    snippet: str = ""
    link: str = ""


class SerpKnowledgeGraph(_SerpModel):
    title: str | None = None
    type: str | None = None
    description: str | None = None
    founded: str | None = None
    employees: str | None = None
    revenue: str | None = None
    headquarters: str | None = None
    website: str | None = None


class SerpAnswerBox(_SerpModel):
    answer: str | None = None
    title: str | None = None
    snippet: str | None = None


class SerpApiResponse(BaseModel):
    """Subset of the SerpAPI Google payload the extractor understands."""

    model_config = ConfigDict(extra="ignore")

    organic_results: list[SerpOrganicResult] = Field(default_factory=list)
    knowledge_graph: SerpKnowledgeGraph | None = None
    answer_box: SerpAnswerBox | None = None

    @field_validator("organic_results", mode="before")
    @classmethod
    def _drop_malformed_results(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, dict)]

    @field_validator("knowledge_graph", "answer_box", mode="before")
    @classmethod
    def _objects_only(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None


def build_queries(company_name: str, domain: str | None = None) -> list[str]:
    """Engineered queries ordered from broad financial intent to profile lookups."""
    queries = [
        f"{company_name} financial data funding revenue",
        f"{company_name} company profile employees founded",
    ]
    if domain:
        queries.append(f"site:{domain} about company")
    queries.extend(
        [
            f"{company_name} crunchbase funding",
            f"{company_name} linkedin company size",
        ]
    )
    return queries


def is_funding_database_url(link: str) -> bool:
    host = (urlparse(link).hostname or "").lower()
    return any(host == domain or host.endswith(f".{domain}") for domain in FUNDING_DATABASE_DOMAINS)


def extract_from_response(response: SerpApiResponse) -> FinancialRecord:
    """Knowledge panel first, then the answer box, then the top organic results."""
    record = FinancialRecord()

    graph = response.knowledge_graph
    if graph:
        record = FinancialRecord(
            founded_year=extract_year(graph.founded),
            employee_count=extract_count(graph.employees),
            revenue=graph.revenue,
            headquarters=graph.headquarters,
            description=graph.description,
        )

    answer = response.answer_box.answer if response.answer_box else None
    if answer:
        record = record.merge(
            FinancialRecord(
                total_funding=extract_field(answer, "total_funding"),
                valuation=extract_field(answer, "valuation"),
            )
        )

    organic = response.organic_results[:ORGANIC_RESULTS_SCANNED]
    if organic:
        combined = " ".join(f"{result.title} {result.snippet}" for result in organic)
        mined = extract_financial_data(combined).model_copy(
            update={"investors": [], "description": None}
        )
        record = record.merge(mined)

    funding_pages = [
        f"{result.title} {result.snippet}"
        for result in response.organic_results
        if is_funding_database_url(result.link)
    ]
    if funding_pages and not record.investors:
        investors = extract_investors(" ".join(funding_pages), limit=SEARCH_INVESTOR_LIMIT)
        if investors:
            record = record.model_copy(update={"investors": investors})
    return record


class SerpApiClient:
    """Search-results adapter; one query at a time with a fixed pause in between."""

    name = SOURCE_NAME

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        query_delay: float = 1.0,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._api_key = api_key or ""
        if not self._api_key:
            logger.warning("serpapi.missing_api_key")
        self._base_url = base_url
        self._timeout = timeout
        self._query_delay = query_delay
        self._sleep = sleep
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_http_client:
            await self._http.aclose()

    async def fetch_financial_data(
        self, company_name: str, domain: str | None = None
    ) -> SourceResult | None:
        """Stop at the first query that produces a non-empty record."""
        if not self.configured:
            return None

        for index, query in enumerate(build_queries(company_name, domain)):
            if index:
                await self._sleep(self._query_delay)
            try:
                response = await self.search(query)
            except (SourceRateLimitError, SourceAuthError):
                raise
            except SourceError as exc:
                logger.warning(
                    "serpapi.query_failed",
                    extra={"query": query, "code": exc.code, "error": str(exc)},
                )
                continue
            if response is None:
                continue
            result = usable(extract_from_response(response), SOURCE_NAME)
            if result:
                logger.info(
                    "serpapi.query_hit",
                    extra={"query": query, "fields": result.record.filled_fields()},
                )
                return result
        return None

    async def search(self, query: str, *, num: int = 10) -> SerpApiResponse | None:
        """Run one Google query; ``None`` when the payload cannot be understood."""
        params = {"q": query, "engine": "google", "api_key": self._api_key, "num": str(num)}
        try:
            response = await with_timeout(
                self._http.get(self._base_url, params=params),
                self._timeout,
                source=SOURCE_NAME,
            )
        except httpx.HTTPError as exc:
            raise SourceError(f"HTTP error calling SerpAPI: {exc}", source=SOURCE_NAME) from exc

        raise_for_actionable_status(response, source=SOURCE_NAME)
        if response.status_code >= 400:
            raise SourceError(f"SerpAPI error: {response.status_code}", source=SOURCE_NAME)

        try:
            return SerpApiResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            logger.warning("serpapi.malformed_response", extra={"query": query})
            return None
