"""Clearbit company lookup, used to resolve a company name to its domain."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from findata.clients.base import raise_for_actionable_status, with_timeout
from findata.clients.errors import SourceTimeoutError

logger = logging.getLogger(__name__)

SOURCE_NAME = "Clearbit"
DEFAULT_BASE_URL = "https://company.clearbit.com/v2"


class _ClearbitMetrics(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    employees: int | None = None
    employees_range: str | None = Field(default=None, alias="employeesRange")
    estimated_annual_revenue: str | None = Field(default=None, alias="estimatedAnnualRevenue")
    raised: int | None = None


class _ClearbitCategory(BaseModel):
    model_config = ConfigDict(extra="ignore")

    industry: str | None = None
    sector: str | None = None


class _ClearbitGeo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    city: str | None = None
    state: str | None = None
    country: str | None = None


class ClearbitFundingRound(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str | None = None
    amount: int | None = None
    announced_on: str | None = Field(default=None, alias="announcedOn")


class ClearbitCompany(BaseModel):
    """Flattened view of a Clearbit company profile."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    domain: str | None = None
    description: str | None = None
    founded_year: int | None = None
    employees: int | None = None
    employees_range: str | None = None
    estimated_annual_revenue: str | None = None
    total_raised: int | None = None
    industry: str | None = None
    location: str | None = None
    funding_rounds: list[ClearbitFundingRound] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ClearbitCompany:
        metrics = _ClearbitMetrics.model_validate(payload.get("metrics") or {})
        category = _ClearbitCategory.model_validate(payload.get("category") or {})
        geo = _ClearbitGeo.model_validate(payload.get("geo") or {})
        location = ", ".join(part for part in (geo.city, geo.state, geo.country) if part) or None
        return cls(
            name=payload.get("name"),
            domain=payload.get("domain"),
            description=payload.get("description"),
            founded_year=payload.get("foundedYear"),
            employees=metrics.employees,
            employees_range=metrics.employees_range,
            estimated_annual_revenue=metrics.estimated_annual_revenue,
            total_raised=metrics.raised,
            industry=category.industry,
            location=location,
            funding_rounds=payload.get("fundingRounds") or [],
        )


class ClearbitClient:
    """Thin async wrapper over the Clearbit company ``find`` endpoint."""

    name = SOURCE_NAME

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key or ""
        if not self._api_key:
            logger.warning("clearbit.missing_api_key")
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

    async def enrich_company(self, company_name: str) -> ClearbitCompany | None:
        return await self._find({"name": company_name})

    async def enrich_by_domain(self, domain: str) -> ClearbitCompany | None:
        return await self._find({"domain": domain})

    async def resolve_domain(self, company_name: str) -> str | None:
        """Best-effort domain for ``company_name``; ``None`` when Clearbit has no match."""
        company = await self.enrich_company(company_name)
        if company is None or not company.domain:
            return None
        return company.domain

    async def _find(self, params: dict[str, str]) -> ClearbitCompany | None:
        if not self.configured:
            return None
        try:
            response = await with_timeout(
                self._http.get(
                    f"{self._base_url}/companies/find",
                    params=params,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                ),
                self._timeout,
                source=SOURCE_NAME,
            )
        except SourceTimeoutError as exc:
            logger.warning("clearbit.timeout", extra={"params": params, "error": str(exc)})
            return None
        except httpx.HTTPError as exc:
            logger.warning(
                "clearbit.request_error",
                extra={"params": params, "error": type(exc).__name__},
            )
            return None

        if response.status_code == 404:
            return None
        raise_for_actionable_status(response, source=SOURCE_NAME)
        if response.status_code >= 400:
            logger.warning("clearbit.http_error", extra={"status": response.status_code})
            return None

        try:
            payload = response.json()
            if not isinstance(payload, dict):
                return None
            return ClearbitCompany.from_payload(payload)
        except (ValueError, ValidationError):
            logger.warning("clearbit.malformed_response", extra={"params": params})
            return None
