"""Backend protocols and implementations for logproc."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from logproc.backends.aggregations import AggregateResult
from logproc.models import AnomalyResult, LogRecord, SearchRequest


class IndexStoreError(RuntimeError):
    """Raised when the search index cannot complete an operation."""


@runtime_checkable
class IndexStore(Protocol):
    """Protocol defining the searchable log index."""

    def init_index(self) -> bool:
        """Create the index if missing. Never raises; returns readiness."""
        ...

    def index_log(self, record: LogRecord) -> str:
        """Persist a record. Returns the document ID."""
        ...

    def search(self, request: SearchRequest) -> Tuple[List[LogRecord], int]:
        """Run a filtered, paginated search. Returns (records, total)."""
        ...

    def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        """Count documents matching a query (all documents if None)."""
        ...

    def aggregate(
        self,
        name: str,
        aggregation: Dict[str, Any],
        query: Optional[Dict[str, Any]] = None,
    ) -> AggregateResult:
        """Run a single named aggregation."""
        ...

    def ping(self) -> bool:
        """Check whether the index engine is reachable."""
        ...


@runtime_checkable
class AnomalyStore(Protocol):
    """Protocol defining storage for anomaly scoring outcomes."""

    def save(self, result: AnomalyResult) -> str:
        """Append a result. Returns the result ID."""
        ...

    def find_by_log_id(self, log_id: str) -> Optional[AnomalyResult]:
        """Get the result recorded for a log document, if any."""
        ...

    def find_between(self, start: datetime, end: datetime) -> List[AnomalyResult]:
        """Anomalies detected within [start, end], newest first."""
        ...

    def find_recent(self, limit: Optional[int] = None) -> List[AnomalyResult]:
        """Most recent anomalies, newest first."""
        ...

    def count_between(self, start: datetime, end: datetime) -> int:
        """Count anomalies detected within [start, end]."""
        ...

    def find_high_confidence(self, threshold: float) -> List[AnomalyResult]:
        """Anomalies with confidence strictly above threshold."""
        ...

    def find_detected_after(self, start: datetime) -> List[AnomalyResult]:
        """Anomalies detected strictly after start, newest first."""
        ...

    def init_schema(self) -> None:
        """Create tables if they don't exist."""
        ...
