from __future__ import annotations

import json

import httpx
import pytest

from findata.clients.errors import SourceRateLimitError
from findata.clients.people_data_labs import PeopleDataLabsClient, PeopleDataLabsCompany


def _client(handler, api_key: str | None = "pdl-key") -> PeopleDataLabsClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PeopleDataLabsClient(api_key, http_client=http_client)


@pytest.mark.asyncio
async def test_enrich_prefers_website_and_sends_api_key_header():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "name": "acme",
                "employee_count": 250,
                "estimated_num_employees": 300,
                "size": "201-500",
                "founded": 2014,
                "industry": "financial services",
                "location": {"name": "san francisco, california, united states", "country": "united states"},
            },
        )

    client = _client(handler)
    result = await client.fetch_financial_data("Acme", "acme.com")

    assert result is not None
    assert result.source == "People Data Labs"
    assert result.record.employee_count == "250"
    assert result.record.founded_year == "2014"
    assert result.record.industry == "financial services"
    assert result.record.headquarters == "san francisco, california, united states"
    request = seen[0]
    assert request.url.path == "/v5/company/enrich"
    assert request.url.params["website"] == "acme.com"
    assert "name" not in request.url.params
    assert request.headers["X-Api-Key"] == "pdl-key"


@pytest.mark.asyncio
async def test_enrich_by_name_when_domain_unknown():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"size": "51-200", "location": {"country": "canada"}})

    result = await _client(handler).fetch_financial_data("Acme")

    assert seen[0].url.params["name"] == "Acme"
    assert result is not None
    assert result.record.employee_count == "125 (51-200)"
    assert result.record.headquarters == "canada"


def test_employee_count_precedence():
    assert PeopleDataLabsCompany(estimated_num_employees=80, size="11-50").to_financial_record().employee_count == "80"
    assert PeopleDataLabsCompany(size="11-50").to_financial_record().employee_count == "30 (11-50)"
    assert PeopleDataLabsCompany().to_financial_record().is_empty()


@pytest.mark.asyncio
async def test_not_found_returns_none():
    client = _client(lambda request: httpx.Response(404, json={"status": 404}))

    assert await client.fetch_financial_data("Nobody Inc") is None


@pytest.mark.asyncio
async def test_server_errors_and_bad_json_return_none():
    assert await _client(lambda request: httpx.Response(500)).fetch_financial_data("Acme") is None
    assert await _client(lambda request: httpx.Response(200, text="<html>")).fetch_financial_data("Acme") is None


@pytest.mark.asyncio
async def test_rate_limit_raises_typed_error():
    client = _client(lambda request: httpx.Response(429))

    with pytest.raises(SourceRateLimitError) as exc_info:
        await client.fetch_financial_data("Acme")

    assert str(exc_info.value) == "People Data Labs rate limit exceeded"


@pytest.mark.asyncio
async def test_missing_key_skips_network():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("unexpected request")

    client = _client(handler, api_key=None)

    assert await client.fetch_financial_data("Acme") is None
    assert await client.search_companies("Acme") == []


@pytest.mark.asyncio
async def test_search_companies_returns_parsed_matches():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"total": 2, "data": [{"name": "acme", "founded": 2010}, {"name": "acme labs"}]},
        )

    companies = await _client(handler).search_companies("acme", limit=1)

    assert [company.name for company in companies] == ["acme"]
    assert seen[0].url.path == "/v5/company/search"
    assert seen[0].url.params["size"] == "1"
    query = json.loads(seen[0].url.params["query"])
    assert query["query"]["multi_match"] == {
        "query": "acme",
        "fields": ["name^2", "website", "industry"],
    }


@pytest.mark.asyncio
async def test_search_companies_failure_returns_empty_list():
    assert await _client(lambda request: httpx.Response(503)).search_companies("acme") == []
