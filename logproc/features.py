"""Heuristic signals extracted from log messages.

Shared by enrichment (stored in record metadata) and scoring (sent to the
prediction service) so the two never disagree.
"""

from typing import Any, Dict, Optional

from logproc import schema
from logproc.models import LogRecord, PredictionFeatures

DEFAULT_FEATURE_LEVEL = "INFO"
DEFAULT_FEATURE_SERVICE = "unknown"


def message_signals(message: Optional[str]) -> Dict[str, bool]:
    """Case-insensitive keyword scan of a message.

    Returns:
        ``{"hasException": ..., "hasTimeout": ..., "hasConnection": ...}``;
        all False for a missing message.
    """
    text = (message or "").lower()
    return {
        schema.META_HAS_EXCEPTION: "exception" in text or "error" in text,
        schema.META_HAS_TIMEOUT: "timeout" in text,
        schema.META_HAS_CONNECTION: "connection" in text or "connect" in text,
    }


def extract_features(record: LogRecord) -> PredictionFeatures:
    """Build the feature vector sent to the prediction service."""
    message = record.message or ""
    signals = message_signals(message)
    return PredictionFeatures(
        message_length=len(message),
        level=record.level.upper() if record.level else DEFAULT_FEATURE_LEVEL,
        service=record.service or DEFAULT_FEATURE_SERVICE,
        has_exception=signals[schema.META_HAS_EXCEPTION],
        has_timeout=signals[schema.META_HAS_TIMEOUT],
        has_connection_error=signals[schema.META_HAS_CONNECTION],
    )


def feature_snapshot(record: LogRecord) -> Dict[str, Any]:
    """Features as stored beside an anomaly result.

    Unlike ``extract_features`` this keeps the record's own level and service
    (``None`` included) and reads the signal flags back from enrichment
    metadata, so the snapshot reflects exactly what was indexed.
    """
    metadata = record.metadata or {}
    return {
        schema.META_MESSAGE_LENGTH: len(record.message) if record.message is not None else 0,
        schema.FIELD_LEVEL: record.level,
        schema.FIELD_SERVICE: record.service,
        schema.META_HAS_EXCEPTION: metadata.get(schema.META_HAS_EXCEPTION) is True,
        schema.META_HAS_TIMEOUT: metadata.get(schema.META_HAS_TIMEOUT) is True,
        schema.META_HAS_CONNECTION: metadata.get(schema.META_HAS_CONNECTION) is True,
    }
