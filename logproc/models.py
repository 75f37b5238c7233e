"""Pydantic models for logproc.

Attributes are snake_case in Python; on the wire (queue payloads, index
documents, HTTP bodies) they are camelCase. Both spellings are accepted
when validating.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from logproc.utils import format_instant, generate_ulid, utcnow


class _WireModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    def to_wire(self) -> Dict[str, Any]:
        """Dump as a JSON-compatible dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class LogRecord(_WireModel):
    """A single structured log record, mutated in place by the pipeline."""

    timestamp: Optional[datetime] = None
    level: Optional[str] = None
    message: Optional[str] = None
    service: Optional[str] = None
    host: Optional[str] = None
    environment: Optional[str] = None
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return format_instant(value)


class AnomalyResult(_WireModel):
    """Outcome of one successful scoring call. Never updated once stored."""

    # Identity
    id: str = Field(default_factory=generate_ulid)
    model_id: Optional[int] = None

    # Join key into the log index
    log_id: str

    # Scoring output
    anomaly_score: float
    is_anomaly: bool
    confidence: Optional[float] = None
    model_version: Optional[str] = None

    # JSON snapshot of the features sent for scoring
    features: Optional[str] = None

    detected_at: datetime = Field(default_factory=utcnow)

    @field_serializer("detected_at")
    def _serialize_detected_at(self, value: datetime) -> Optional[str]:
        return format_instant(value)


# =============================================================================
# Prediction service wire format
# =============================================================================


class PredictionFeatures(_WireModel):
    message_length: int
    level: str
    service: str
    has_exception: bool
    has_timeout: bool
    has_connection_error: bool


class PredictionRequest(_WireModel):
    log_id: str
    features: PredictionFeatures


class PredictionResponse(_WireModel):
    log_id: Optional[str] = None
    is_anomaly: bool
    anomaly_score: float
    confidence: float = 0.0
    timestamp: Optional[str] = None
    model_version: Optional[str] = None


# =============================================================================
# Search and dashboard projections
# =============================================================================


class SearchRequest(_WireModel):
    """Filtered, paginated log search parameters."""

    query: Optional[str] = None
    levels: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    hosts: List[str] = Field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    page: int = 0
    size: int = 20
    sort_by: str = "timestamp"
    sort_order: str = "desc"


class SearchResponse(_WireModel):
    logs: List[LogRecord] = Field(default_factory=list)
    total: int = 0
    page: int = 0
    size: int = 0


class DashboardMetrics(_WireModel):
    """Summary counters. All fields default to zero."""

    total_logs: int = 0
    error_count: int = 0
    warning_count: int = 0
    active_alerts: int = 0
    anomaly_count: int = 0
    logs_per_minute: float = 0.0
    error_rate: float = 0.0


class LogVolumePoint(_WireModel):
    timestamp: datetime
    count: int

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> Optional[str]:
        return format_instant(value)


class LevelDistributionEntry(_WireModel):
    level: str
    count: int
    percentage: float


class ServiceCount(_WireModel):
    service: str
    count: int
