import pytest
from fastapi.testclient import TestClient

from findata.main import app
from findata.models.financial import FinancialRecord
from findata.services.retrieval.cache import InMemoryFinancialCache
from findata.services.retrieval.retriever import (
    FinancialDataRetriever,
    get_financial_data_retriever,
)
from tests.helpers.metrics_stub import StubMetrics
from tests.helpers.sources import RecordingSleep


@pytest.fixture
def sample_record() -> FinancialRecord:
    return FinancialRecord(
        total_funding="$50M",
        employee_count="100",
        founded_year="2020",
        investors=["Sequoia Capital", "Accel Partners"],
    )


@pytest.fixture
def stub_metrics() -> StubMetrics:
    return StubMetrics()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def memory_cache() -> InMemoryFinancialCache:
    return InMemoryFinancialCache(ttl_hours=24)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def override_retriever():
    """Swap the route dependency for a retriever built by the test."""

    def _override(retriever: FinancialDataRetriever) -> None:
        app.dependency_overrides[get_financial_data_retriever] = lambda: retriever

    yield _override
    app.dependency_overrides.pop(get_financial_data_retriever, None)
