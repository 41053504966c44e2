from __future__ import annotations

import httpx
import pytest

from findata.clients.errors import SourceAuthError, SourceRateLimitError
from findata.clients.serpapi import (
    SerpApiClient,
    SerpApiResponse,
    build_queries,
    extract_from_response,
    is_funding_database_url,
)
from tests.helpers.sources import RecordingSleep


def _client(handler, *, api_key: str | None = "test-key", sleep=None) -> SerpApiClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SerpApiClient(
        api_key,
        http_client=http_client,
        sleep=sleep or RecordingSleep(),
    )


def test_queries_cover_financial_profile_site_and_database_intents():
    queries = build_queries("Acme", "acme.com")

    assert queries == [
        "Acme financial data funding revenue",
        "Acme company profile employees founded",
        "site:acme.com about company",
        "Acme crunchbase funding",
        "Acme linkedin company size",
    ]
    assert len(build_queries("Acme")) == 4


def test_funding_database_urls_are_recognized_by_host():
    assert is_funding_database_url("https://www.crunchbase.com/organization/acme")
    assert is_funding_database_url("https://crunchbase.com/organization/acme")
    assert not is_funding_database_url("https://notcrunchbase.com/acme")
    assert not is_funding_database_url("not a url")


@pytest.mark.asyncio
async def test_missing_api_key_short_circuits_without_network():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("network call attempted without an API key")

    client = _client(handler, api_key=None)

    assert await client.fetch_financial_data("Acme") is None


@pytest.mark.asyncio
async def test_knowledge_graph_fields_map_directly():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={"knowledge_graph": {"founded": "2020", "employees": 100, "headquarters": "Austin, TX"}},
        )

    client = _client(handler)
    result = await client.fetch_financial_data("Test Company")

    assert result is not None
    assert result.source == "SerpAPI"
    assert result.record.founded_year == "2020"
    assert result.record.employee_count == "100"
    assert result.record.headquarters == "Austin, TX"
    assert len(requests) == 1
    params = requests[0].url.params
    assert params["q"] == "Test Company financial data funding revenue"
    assert params["engine"] == "google"
    assert params["api_key"] == "test-key"
    assert params["num"] == "10"


@pytest.mark.asyncio
async def test_organic_results_are_mined_with_text_patterns():
    payload = {
        "organic_results": [
            {
                "title": "Test Company raises $100 million",
                "snippet": "Test Company raised $100 million and is now valued at $1 billion with 500 employees",
                "link": "https://news.example.com/test-company",
            }
        ]
    }

    client = _client(lambda request: httpx.Response(200, json=payload))
    result = await client.fetch_financial_data("Test Company")

    assert result is not None
    assert result.record.total_funding == "$100M"
    assert result.record.valuation == "$1B"
    assert result.record.employee_count == "500"
    assert result.record.investors == []


def test_investors_only_come_from_funding_database_results():
    response = SerpApiResponse.model_validate(
        {
            "organic_results": [
                {
                    "title": "Acme - Crunchbase Company Profile",
                    "snippet": "Investors include Sequoia Capital and Benchmark Partners",
                    "link": "https://www.crunchbase.com/organization/acme",
                },
                {
                    "title": "Blog",
                    "snippet": "Greylock Partners wrote about Acme",
                    "link": "https://blog.example.com/acme",
                },
            ]
        }
    )

    record = extract_from_response(response)

    assert record.investors == ["Sequoia Capital", "Benchmark Partners"]


def test_answer_box_fills_funding_and_valuation():
    response = SerpApiResponse.model_validate(
        {
            "knowledge_graph": {"founded": "Founded in 2011"},
            "answer_box": {"answer": "Acme has raised $250 million, with a valuation of $3 billion."},
        }
    )

    record = extract_from_response(response)

    assert record.founded_year == "2011"
    assert record.total_funding == "$250M"
    assert record.valuation == "$3B"


def test_malformed_sections_are_ignored():
    response = SerpApiResponse.model_validate(
        {"organic_results": "oops", "knowledge_graph": ["not", "an", "object"], "answer_box": None}
    )

    assert extract_from_response(response).is_empty()


@pytest.mark.asyncio
async def test_rate_limit_is_a_hard_failure():
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.params["q"])
        return httpx.Response(429, json={"error": "Too many requests"})

    client = _client(handler)

    with pytest.raises(SourceRateLimitError) as exc_info:
        await client.fetch_financial_data("Acme")

    assert "rate limit exceeded" in str(exc_info.value)
    assert exc_info.value.source == "SerpAPI"
    assert exc_info.value.code == "SERPAPI_429"
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_invalid_key_raises_auth_error():
    client = _client(lambda request: httpx.Response(401))

    with pytest.raises(SourceAuthError):
        await client.fetch_financial_data("Acme")


@pytest.mark.asyncio
async def test_failed_and_malformed_queries_continue_with_fixed_delay():
    responses = iter(
        [
            httpx.Response(500, text="upstream error"),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json={"organic_results": []}),
            httpx.Response(200, json={"knowledge_graph": {"founded": "2018"}}),
        ]
    )
    sleep = RecordingSleep()

    client = _client(lambda request: next(responses), sleep=sleep)
    result = await client.fetch_financial_data("Acme")

    assert result is not None
    assert result.record.founded_year == "2018"
    assert sleep.delays == [1.0, 1.0, 1.0]


@pytest.mark.asyncio
async def test_exhausting_all_queries_returns_none():
    sleep = RecordingSleep()
    client = _client(lambda request: httpx.Response(200, json={}), sleep=sleep)

    assert await client.fetch_financial_data("Acme", "acme.com") is None
    assert len(sleep.delays) == 4
