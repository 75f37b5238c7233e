"""Tests for dashboard and search read views."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import InMemoryIndexStore

from logproc.backends.aggregations import (
    AggregateResult,
    DateHistogramAggregate,
    LongTermsAggregate,
    OtherAggregate,
    StringTermsAggregate,
)
from logproc.models import AnomalyResult, DashboardMetrics, LogRecord, SearchRequest
from logproc.query import QueryService

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def populated_index():
    index = InMemoryIndexStore()
    index.records = (
        [LogRecord(level="INFO", message=f"ok {i}") for i in range(6)]
        + [LogRecord(level="ERROR", message="boom")] * 3
        + [LogRecord(level="WARN", message="hmm")]
    )
    return index


class TestDashboardMetrics:
    """Test summary counters."""

    def test_counts_and_rates(self, populated_index):
        metrics = QueryService(populated_index, clock=lambda: NOW).dashboard_metrics()

        assert metrics.total_logs == 10
        assert metrics.error_count == 3
        assert metrics.warning_count == 1
        assert metrics.error_rate == pytest.approx(30.0)
        assert metrics.logs_per_minute == pytest.approx(10 / 1440)
        assert metrics.active_alerts == 0

    def test_empty_index_has_zero_error_rate(self):
        metrics = QueryService(InMemoryIndexStore()).dashboard_metrics()
        assert metrics.total_logs == 0
        assert metrics.error_rate == 0.0

    def test_unreachable_index_returns_zeros(self):
        metrics = QueryService(InMemoryIndexStore(fail=True)).dashboard_metrics()
        assert metrics == DashboardMetrics()

    def test_anomaly_count_covers_last_day(self, populated_index, anomaly_store):
        for hours_ago in (1, 23, 25):
            anomaly_store.save(
                AnomalyResult(
                    log_id=f"doc-{hours_ago}",
                    anomaly_score=0.9,
                    is_anomaly=True,
                    confidence=0.8,
                    detected_at=NOW - timedelta(hours=hours_ago),
                )
            )
        metrics = QueryService(populated_index, anomaly_store, clock=lambda: NOW).dashboard_metrics()
        assert metrics.anomaly_count == 2


class TestAggregations:
    """Test aggregation-backed views."""

    def test_level_distribution(self):
        index = InMemoryIndexStore()
        index.aggregates["level_distribution"] = AggregateResult(
            total=8,
            aggregate=StringTermsAggregate(
                buckets=[{"key": "INFO", "doc_count": 6}, {"key": "ERROR", "doc_count": 2}]
            ),
        )
        entries = QueryService(index).level_distribution()

        assert [(e.level, e.count) for e in entries] == [("INFO", 6), ("ERROR", 2)]
        assert entries[0].percentage == pytest.approx(75.0)
        assert entries[1].percentage == pytest.approx(25.0)

    def test_level_distribution_with_zero_total(self):
        index = InMemoryIndexStore()
        index.aggregates["level_distribution"] = AggregateResult(
            total=0,
            aggregate=StringTermsAggregate(buckets=[{"key": "INFO", "doc_count": 0}]),
        )
        assert QueryService(index).level_distribution()[0].percentage == 0.0

    def test_top_services_with_numeric_keys(self):
        index = InMemoryIndexStore()
        index.aggregates["top_services"] = AggregateResult(
            total=5,
            aggregate=LongTermsAggregate(buckets=[{"key": 100, "doc_count": 3}, {"key": 200, "doc_count": 2}]),
        )
        services = QueryService(index).top_services(limit=5)
        assert [(s.service, s.count) for s in services] == [("100", 3), ("200", 2)]

    def test_wrong_shape_yields_empty_list(self):
        index = InMemoryIndexStore()
        index.aggregates["top_services"] = AggregateResult(total=5, aggregate=OtherAggregate(kind="avg"))
        assert QueryService(index).top_services() == []

    def test_log_volume(self):
        index = InMemoryIndexStore()
        index.aggregates["volume_over_time"] = AggregateResult(
            total=4,
            aggregate=DateHistogramAggregate(
                buckets=[
                    {"key_as_string": "2024-01-15T10:00:00.000Z", "doc_count": 4},
                    {"key": 1705320000000, "doc_count": 0},
                ]
            ),
        )
        points = QueryService(index, clock=lambda: NOW).log_volume_for_hours(2)

        assert [p.count for p in points] == [4, 0]
        assert points[1].timestamp == NOW
        assert points[0].to_wire()["timestamp"] == "2024-01-15T10:00:00.000Z"

    def test_failures_yield_empty_lists(self):
        service = QueryService(InMemoryIndexStore(fail=True), clock=lambda: NOW)
        assert service.level_distribution() == []
        assert service.top_services() == []
        assert service.log_volume_for_hours(24) == []


class TestSearch:
    """Test search and anomaly listing."""

    def test_search_pages(self, populated_index):
        response = QueryService(populated_index).search(SearchRequest(page=1, size=4))
        assert response.total == 10
        assert len(response.logs) == 4
        assert response.page == 1
        assert response.size == 4

    def test_search_failure_is_empty(self):
        response = QueryService(InMemoryIndexStore(fail=True)).search(SearchRequest(page=3, size=7))
        assert response.logs == []
        assert response.total == 0
        assert response.page == 3
        assert response.size == 7

    def test_anomalies_window(self, anomaly_store):
        anomaly_store.save(
            AnomalyResult(log_id="recent", anomaly_score=0.9, is_anomaly=True, detected_at=NOW - timedelta(hours=1))
        )
        anomaly_store.save(
            AnomalyResult(log_id="stale", anomaly_score=0.9, is_anomaly=True, detected_at=NOW - timedelta(hours=30))
        )
        service = QueryService(InMemoryIndexStore(), anomaly_store, clock=lambda: NOW)
        assert [a.log_id for a in service.anomalies(hours=24)] == ["recent"]

    def test_anomalies_without_store(self):
        assert QueryService(InMemoryIndexStore()).anomalies() == []
