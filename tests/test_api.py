"""Tests for the Flask read API."""

from datetime import datetime, timezone

import pytest

from conftest import InMemoryIndexStore, StubPredictionClient

from logproc.api import create_app
from logproc.backends.aggregations import AggregateResult, StringTermsAggregate
from logproc.config import Runtime, Settings
from logproc.models import AnomalyResult, LogRecord


@pytest.fixture
def index():
    store = InMemoryIndexStore()
    store.records = [
        LogRecord(
            timestamp=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc),
            level="ERROR",
            message="boom",
            service="api",
            trace_id="t-1",
        ),
        LogRecord(level="INFO", message="ok", service="web"),
    ]
    return store


@pytest.fixture
def runtime(index, anomaly_store):
    rt = Runtime(
        settings=Settings(),
        index_store=index,
        anomaly_store=anomaly_store,
        prediction_client=StubPredictionClient(available=False),
    )
    yield rt
    rt.close()


@pytest.fixture
def client(runtime):
    app = create_app(runtime)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


class TestDashboardRoutes:
    """Test dashboard endpoints."""

    def test_metrics(self, client):
        resp = client.get("/api/v1/dashboard/metrics")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["totalLogs"] == 2
        assert data["errorCount"] == 1
        assert data["errorRate"] == pytest.approx(50.0)
        assert data["activeAlerts"] == 0

    def test_level_distribution(self, client, index):
        index.aggregates["level_distribution"] = AggregateResult(
            total=2,
            aggregate=StringTermsAggregate(buckets=[{"key": "ERROR", "doc_count": 1}, {"key": "INFO", "doc_count": 1}]),
        )
        data = client.get("/api/v1/dashboard/log-level-distribution").get_json()
        assert data == [
            {"level": "ERROR", "count": 1, "percentage": 50.0},
            {"level": "INFO", "count": 1, "percentage": 50.0},
        ]

    def test_top_services_empty(self, client):
        resp = client.get("/api/v1/dashboard/top-services?limit=3")
        assert resp.status_code == 200
        assert resp.get_json() == []

    def test_log_volume_empty(self, client):
        assert client.get("/api/v1/dashboard/log-volume?hours=6").get_json() == []

    def test_anomalies(self, client, anomaly_store):
        anomaly_store.save(AnomalyResult(log_id="doc-9", anomaly_score=0.95, is_anomaly=True, confidence=0.9))
        data = client.get("/api/v1/dashboard/anomalies").get_json()
        assert len(data) == 1
        assert data[0]["logId"] == "doc-9"
        assert data[0]["isAnomaly"] is True


class TestSearchRoute:
    """Test log search."""

    def test_search_defaults(self, client):
        data = client.get("/api/v1/logs/search").get_json()
        assert data["total"] == 2
        assert data["page"] == 0
        assert data["size"] == 50
        assert data["logs"][0]["traceId"] == "t-1"
        assert data["logs"][0]["timestamp"] == "2024-01-15T10:00:00.000Z"

    def test_search_with_filters(self, client):
        resp = client.get(
            "/api/v1/logs/search",
            query_string={
                "level": "ERROR,WARN",
                "service": "api",
                "startTime": "2024-01-15T00:00:00Z",
                "endTime": "2024-01-16T00:00:00Z",
                "size": "1",
            },
        )
        assert resp.status_code == 200
        assert resp.get_json()["size"] == 1

    def test_invalid_time_is_bad_request(self, client):
        resp = client.get("/api/v1/logs/search?startTime=not-a-time")
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_invalid_integer_is_bad_request(self, client):
        resp = client.get("/api/v1/dashboard/log-volume?hours=abc")
        assert resp.status_code == 400
        assert "hours" in resp.get_json()["error"]


class TestHealthRoute:
    """Test the processor health endpoint."""

    def test_health(self, client, index):
        data = client.get("/api/v1/processor/health").get_json()
        assert data == {
            "status": "UP",
            "service": "log-processor",
            "elasticsearch": "UP",
            "mlService": "DOWN",
        }

    def test_health_with_index_down(self, client, index):
        index.reachable = False
        assert client.get("/api/v1/processor/health").get_json()["elasticsearch"] == "DOWN"


class TestWindowBounds:
    """Test look-back windows that cannot be represented as datetimes."""

    @pytest.mark.parametrize("route", ["log-volume", "anomalies"])
    def test_huge_window_returns_empty_list(self, client, route):
        resp = client.get(f"/api/v1/dashboard/{route}?hours=100000000")
        assert resp.status_code == 200
        assert resp.get_json() == []


class TestRecentAlertsRoute:
    """Test the recent alerts placeholder."""

    def test_recent_alerts_is_empty(self, client):
        resp = client.get("/api/v1/dashboard/recent-alerts?limit=5")
        assert resp.status_code == 200
        assert resp.get_json() == []

    def test_recent_alerts_invalid_limit(self, client):
        assert client.get("/api/v1/dashboard/recent-alerts?limit=lots").status_code == 400
