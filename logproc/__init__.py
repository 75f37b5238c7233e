"""logproc - log ingestion, indexing and anomaly scoring pipeline.

Consumes structured log records from a queue, normalizes and enriches them,
indexes them for search, and scores each one against a remote anomaly
prediction service in the background. A read API serves dashboard metrics
and search over the index.

Example usage:

    from logproc import configure, load_settings, LogRecord

    # Configure once at startup
    runtime = configure(load_settings("logproc.yaml"))

    # Push a record through the pipeline
    doc_id = runtime.processor.process(
        LogRecord(level="error", message="connection refused", service="api")
    )

    # Read views
    metrics = runtime.query.dashboard_metrics()
    recent = runtime.query.anomalies(hours=24)
"""

from logproc.config import Runtime, Settings, configure, get_runtime, load_settings
from logproc.models import (
    AnomalyResult,
    DashboardMetrics,
    LogRecord,
    SearchRequest,
    SearchResponse,
)
from logproc.processor import LogProcessingError, LogProcessor
from logproc.query import QueryService

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "configure",
    "get_runtime",
    "load_settings",
    "Runtime",
    "Settings",
    # Pipeline
    "LogProcessor",
    "LogProcessingError",
    "QueryService",
    # Models
    "LogRecord",
    "AnomalyResult",
    "SearchRequest",
    "SearchResponse",
    "DashboardMetrics",
]
