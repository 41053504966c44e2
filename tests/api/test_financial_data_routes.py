from __future__ import annotations

from findata.models.financial import FinancialRecord
from findata.services.retrieval.cache import InMemoryFinancialCache
from findata.services.retrieval.retriever import FinancialDataRetriever
from tests.helpers.sources import RecordingSleep, ScriptedSource


def _retriever(*sources: ScriptedSource) -> FinancialDataRetriever:
    return FinancialDataRetriever(
        list(sources),
        cache=InMemoryFinancialCache(),
        sleep=RecordingSleep(),
    )


def test_get_returns_camel_case_payload(client, override_retriever):
    record = FinancialRecord(total_funding="$50M", employee_count="100", founded_year="2020")
    override_retriever(_retriever(ScriptedSource("Crunchbase", record=record)))

    response = client.get("/api/financial-data", params={"company": "Test Company"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["companyName"] == "Test Company"
    assert body["source"] == "Crunchbase"
    assert body["cached"] is False
    assert body["financialData"] == {
        "totalFunding": "$50M",
        "employeeCount": "100",
        "foundedYear": "2020",
    }


def test_get_second_request_is_cached(client, override_retriever):
    calls: list = []
    source = ScriptedSource("Crunchbase", record=FinancialRecord(revenue="$1M"), calls=calls)
    override_retriever(_retriever(source))

    client.get("/api/financial-data", params={"company": "Acme"})
    cached = client.get("/api/financial-data", params={"company": "Acme"})
    refreshed = client.get("/api/financial-data", params={"company": "Acme", "forceRefresh": "true"})

    assert cached.json()["cached"] is True
    assert refreshed.json()["cached"] is False
    assert len(calls) == 2


def test_get_without_company_is_rejected(client, override_retriever):
    override_retriever(_retriever())

    response = client.get("/api/financial-data")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["source"] == "API"
    assert body["error"]["message"] == "Company name or URL is required"


def test_post_without_company_is_rejected(client, override_retriever):
    override_retriever(_retriever())

    response = client.post("/api/financial-data", json={"forceRefresh": True})

    assert response.status_code == 400
    assert response.json()["error"]["details"] == "Missing company field in request body"


def test_post_failure_returns_500_with_structured_error(client, override_retriever):
    override_retriever(_retriever(ScriptedSource("Web Scraping")))

    response = client.post("/api/financial-data", json={"company": "Nobody Inc"})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"]["source"] == "All Sources"


def test_post_success(client, override_retriever):
    override_retriever(_retriever(ScriptedSource("SerpAPI", record=FinancialRecord(valuation="$1B"))))

    response = client.post(
        "/api/financial-data", json={"company": "https://www.acme.com", "forceRefresh": False}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["domain"] == "acme.com"
    assert body["financialData"] == {"valuation": "$1B"}


def test_health_endpoints(client, override_retriever):
    override_retriever(_retriever(ScriptedSource("Web Scraping"), ScriptedSource("SerpAPI")))

    live = client.get("/health")
    ready = client.get("/health/ready")

    assert live.status_code == 200
    assert live.json()["status"] == "healthy"
    assert ready.status_code == 200
    assert ready.json()["sources"] == ["Web Scraping", "SerpAPI"]
