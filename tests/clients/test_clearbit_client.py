from __future__ import annotations

import httpx
import pytest

from findata.clients.clearbit import ClearbitClient
from findata.clients.errors import SourceRateLimitError

COMPANY_PAYLOAD = {
    "name": "Acme",
    "domain": "acme.com",
    "description": "Payments for the internet.",
    "foundedYear": 2012,
    "metrics": {"employees": 420, "employeesRange": "251-1K", "raised": 120000000},
    "category": {"industry": "Internet Software & Services"},
    "geo": {"city": "San Francisco", "state": "California", "country": "United States"},
    "fundingRounds": [{"type": "Series B", "amount": 80000000, "announcedOn": "2021-04-01"}],
}


def _client(handler, api_key: str | None = "cb-key") -> ClearbitClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ClearbitClient(api_key, http_client=http_client)


@pytest.mark.asyncio
async def test_enrich_company_maps_structured_fields():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=COMPANY_PAYLOAD)

    company = await _client(handler).enrich_company("Acme")

    assert company is not None
    assert company.domain == "acme.com"
    assert company.founded_year == 2012
    assert company.employees == 420
    assert company.total_raised == 120000000
    assert company.industry == "Internet Software & Services"
    assert company.location == "San Francisco, California, United States"
    assert company.funding_rounds[0].type == "Series B"
    assert company.funding_rounds[0].announced_on == "2021-04-01"
    assert seen[0].url.path == "/v2/companies/find"
    assert seen[0].url.params["name"] == "Acme"
    assert seen[0].headers["Authorization"] == "Bearer cb-key"


@pytest.mark.asyncio
async def test_enrich_by_domain_queries_domain_parameter():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"name": "Acme", "domain": "acme.com"})

    company = await _client(handler).enrich_by_domain("acme.com")

    assert company is not None
    assert company.name == "Acme"
    assert seen[0].url.params["domain"] == "acme.com"


@pytest.mark.asyncio
async def test_resolve_domain_returns_none_when_unknown():
    assert await _client(lambda request: httpx.Response(404)).resolve_domain("Nobody") is None
    assert await _client(lambda request: httpx.Response(200, json={"name": "x"})).resolve_domain("x") is None
    assert await _client(lambda request: httpx.Response(200, json=COMPANY_PAYLOAD)).resolve_domain("Acme") == "acme.com"


@pytest.mark.asyncio
async def test_rate_limit_raises():
    with pytest.raises(SourceRateLimitError):
        await _client(lambda request: httpx.Response(429)).enrich_company("Acme")


@pytest.mark.asyncio
async def test_missing_key_and_bad_payloads_return_none():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("unexpected request")

    assert await _client(handler, api_key="").enrich_company("Acme") is None
    assert await _client(lambda request: httpx.Response(200, json=[1, 2])).enrich_company("Acme") is None
    assert await _client(lambda request: httpx.Response(502)).enrich_company("Acme") is None
