"""People Data Labs company enrichment client."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from findata.clients.base import (
    SourceResult,
    raise_for_actionable_status,
    usable,
    with_timeout,
)
from findata.clients.errors import SourceTimeoutError
from findata.models.financial import FinancialRecord
from findata.services.extraction.text_patterns import parse_employee_size

logger = logging.getLogger(__name__)

SOURCE_NAME = "People Data Labs"
DEFAULT_BASE_URL = "https://api.peopledatalabs.com/v5"


class PeopleDataLabsLocation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    locality: str | None = None
    region: str | None = None
    country: str | None = None


class PeopleDataLabsCompany(BaseModel):
    """Fields of the enrichment payload this project maps."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    website: str | None = None
    size: str | None = None
    founded: int | None = None
    industry: str | None = None
    location: PeopleDataLabsLocation | None = None
    linkedin_url: str | None = None
    employee_count: int | None = None
    estimated_num_employees: int | None = None

    def to_financial_record(self) -> FinancialRecord:
        employees: str | None = None
        if self.employee_count:
            employees = str(self.employee_count)
        elif self.estimated_num_employees:
            employees = str(self.estimated_num_employees)
        elif self.size:
            employees = parse_employee_size(self.size)

        headquarters = None
        if self.location:
            headquarters = self.location.name or self.location.country

        return FinancialRecord(
            employee_count=employees,
            founded_year=str(self.founded) if self.founded else None,
            industry=self.industry,
            headquarters=headquarters,
        )


class PeopleDataLabsSearchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: list[PeopleDataLabsCompany] = Field(default_factory=list)
    total: int = 0


class PeopleDataLabsClient:
    """Enrichment adapter keyed by website when known, otherwise by name."""

    name = SOURCE_NAME

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key or ""
        if not self._api_key:
            logger.warning("people_data_labs.missing_api_key")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def fetch_financial_data(
        self, company_name: str, domain: str | None = None
    ) -> SourceResult | None:
        company = await self.enrich_company(company_name, domain)
        if company is None:
            return None
        return usable(company.to_financial_record(), SOURCE_NAME)

    async def enrich_company(
        self, company_name: str, domain: str | None = None
    ) -> PeopleDataLabsCompany | None:
        """Look up one company. Missing records and transient failures yield ``None``."""
        if not self.configured:
            return None
        params = {"website": domain} if domain else {"name": company_name}
        payload = await self._get("/company/enrich", params)
        if payload is None:
            return None
        try:
            return PeopleDataLabsCompany.model_validate(payload)
        except ValidationError:
            logger.warning("people_data_labs.malformed_response", extra={"company": company_name})
            return None

    async def search_companies(self, query: str, limit: int = 10) -> list[PeopleDataLabsCompany]:
        """Name search used for discovery; failures yield an empty list."""
        if not self.configured:
            return []
        es_query = {
            "query": {
                "multi_match": {"query": query, "fields": ["name^2", "website", "industry"]}
            }
        }
        payload = await self._get(
            "/company/search",
            {"query": json.dumps(es_query), "size": str(limit)},
        )
        if payload is None:
            return []
        try:
            return PeopleDataLabsSearchResponse.model_validate(payload).data[:limit]
        except ValidationError:
            logger.warning("people_data_labs.malformed_search_response", extra={"query": query})
            return []

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any] | None:
        try:
            response = await with_timeout(
                self._http.get(
                    f"{self._base_url}{path}",
                    params=params,
                    headers={"X-Api-Key": self._api_key, "Accept": "application/json"},
                ),
                self._timeout,
                source=SOURCE_NAME,
            )
        except SourceTimeoutError as exc:
            logger.warning("people_data_labs.timeout", extra={"path": path, "error": str(exc)})
            return None
        except httpx.HTTPError as exc:
            logger.warning(
                "people_data_labs.request_error",
                extra={"path": path, "error": type(exc).__name__},
            )
            return None

        if response.status_code == 404:
            return None
        raise_for_actionable_status(response, source=SOURCE_NAME)
        if response.status_code >= 400:
            logger.warning(
                "people_data_labs.http_error",
                extra={"path": path, "status": response.status_code},
            )
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.warning("people_data_labs.invalid_json", extra={"path": path})
            return None
        return payload if isinstance(payload, dict) else None
