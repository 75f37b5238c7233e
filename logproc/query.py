"""Dashboard and search read views over the index and anomaly stores.

Every view degrades to an empty or zero-valued result when a store fails;
the failure is only visible in the logs.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from logproc import schema
from logproc.backends import AnomalyStore, IndexStore
from logproc.backends.aggregations import histogram_buckets, term_buckets
from logproc.models import (
    AnomalyResult,
    DashboardMetrics,
    LevelDistributionEntry,
    LogVolumePoint,
    SearchRequest,
    SearchResponse,
    ServiceCount,
)
from logproc.utils import format_instant, utcnow

logger = logging.getLogger(__name__)

# logsPerMinute assumes the whole index spans one day
MINUTES_PER_DAY = 24 * 60


def _percentage(count: int, total: int) -> float:
    return count * 100.0 / total if total > 0 else 0.0


class QueryService:
    """Builds read-side queries and flattens their results into DTOs."""

    def __init__(
        self,
        index_store: IndexStore,
        anomaly_store: Optional[AnomalyStore] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._index_store = index_store
        self._anomaly_store = anomaly_store
        self._clock = clock

    def dashboard_metrics(self) -> DashboardMetrics:
        """Total, error and warning counts with derived rates."""
        try:
            total = self._index_store.count()
            errors = self._index_store.count({"term": {schema.FIELD_LEVEL: schema.LEVEL_ERROR}})
            warnings = self._index_store.count({"term": {schema.FIELD_LEVEL: schema.LEVEL_WARN}})
        except Exception as e:
            logger.warning("Failed to get dashboard metrics: %s", e)
            return DashboardMetrics()

        return DashboardMetrics(
            total_logs=total,
            error_count=errors,
            warning_count=warnings,
            anomaly_count=self._recent_anomaly_count(),
            logs_per_minute=total / MINUTES_PER_DAY,
            error_rate=_percentage(errors, total),
        )

    def _recent_anomaly_count(self) -> int:
        if self._anomaly_store is None:
            return 0
        end = self._clock()
        try:
            return self._anomaly_store.count_between(end - timedelta(hours=24), end)
        except Exception as e:
            logger.warning("Failed to count recent anomalies: %s", e)
            return 0

    def log_volume(self, start: datetime, end: datetime) -> List[LogVolumePoint]:
        """Hourly document counts across [start, end], empty hours included."""
        query = {
            "range": {
                schema.FIELD_TIMESTAMP: {
                    "gte": format_instant(start),
                    "lte": format_instant(end),
                }
            }
        }
        aggregation = {
            "date_histogram": {
                "field": schema.FIELD_TIMESTAMP,
                "fixed_interval": schema.VOLUME_INTERVAL,
                "min_doc_count": 0,
                "extended_bounds": {
                    "min": format_instant(start),
                    "max": format_instant(end),
                },
            }
        }
        try:
            result = self._index_store.aggregate(schema.AGG_VOLUME_OVER_TIME, aggregation, query)
            buckets = histogram_buckets(result.aggregate, schema.AGG_VOLUME_OVER_TIME)
        except Exception as e:
            logger.warning("Failed to get log volume: %s", e)
            return []
        return [LogVolumePoint(timestamp=b.timestamp, count=b.count) for b in buckets]

    def log_volume_for_hours(self, hours: int) -> List[LogVolumePoint]:
        end = self._clock()
        try:
            start = end - timedelta(hours=hours)
        except (OverflowError, ValueError) as e:
            logger.warning("Invalid log volume window of %s hours: %s", hours, e)
            return []
        return self.log_volume(start, end)

    def level_distribution(self) -> List[LevelDistributionEntry]:
        """Count and share of each level, in the store's bucket order."""
        try:
            result = self._index_store.aggregate(
                schema.AGG_LEVEL_DISTRIBUTION,
                {"terms": {"field": schema.FIELD_LEVEL}},
            )
            buckets = term_buckets(result.aggregate, schema.AGG_LEVEL_DISTRIBUTION)
        except Exception as e:
            logger.warning("Failed to get log level distribution: %s", e)
            return []
        logger.debug("Total logs for level distribution: %d", result.total)
        return [
            LevelDistributionEntry(
                level=b.key,
                count=b.count,
                percentage=_percentage(b.count, result.total),
            )
            for b in buckets
        ]

    def top_services(self, limit: int = 10) -> List[ServiceCount]:
        """Services with the most documents, most first."""
        try:
            result = self._index_store.aggregate(
                schema.AGG_TOP_SERVICES,
                {"terms": {"field": schema.FIELD_SERVICE, "size": limit}},
            )
            buckets = term_buckets(result.aggregate, schema.AGG_TOP_SERVICES)
        except Exception as e:
            logger.warning("Failed to get top services: %s", e)
            return []
        return [ServiceCount(service=b.key, count=b.count) for b in buckets]

    def search(self, request: SearchRequest) -> SearchResponse:
        """Filtered, paginated search."""
        try:
            logs, total = self._index_store.search(request)
        except Exception as e:
            logger.warning("Failed to search logs: %s", e)
            return SearchResponse(logs=[], total=0, page=request.page, size=request.size)
        return SearchResponse(logs=logs, total=total, page=request.page, size=request.size)

    def anomalies(self, hours: int = 24) -> List[AnomalyResult]:
        """Anomalies detected in the last ``hours`` hours, newest first."""
        if self._anomaly_store is None:
            return []
        try:
            start = self._clock() - timedelta(hours=hours)
            return self._anomaly_store.find_detected_after(start)
        except Exception as e:
            logger.warning("Failed to get anomalies: %s", e)
            return []
