"""Log ingestion pipeline: normalize, enrich, index, then score in the background."""

import json
import logging
from datetime import datetime
from typing import Callable, Optional

from logproc import schema
from logproc.backends import AnomalyStore, IndexStore
from logproc.dispatch import ScoringDispatcher
from logproc.features import feature_snapshot, message_signals
from logproc.models import AnomalyResult, LogRecord, PredictionResponse
from logproc.prediction import PredictionClient
from logproc.utils import format_instant, utcnow

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 10_000
TRUNCATION_SUFFIX = "... [truncated]"
UNKNOWN_ENVIRONMENT = "unknown"
ALERT_CONFIDENCE_THRESHOLD = 0.7

AlertHandler = Callable[[AnomalyResult], None]


class LogProcessingError(RuntimeError):
    """Raised when a record cannot be normalized, enriched or indexed."""


def normalize(record: LogRecord, now: Optional[datetime] = None) -> LogRecord:
    """Fill defaults and clean up a record in place.

    A missing level is left as None; only environment gets a default.
    """
    if record.timestamp is None:
        record.timestamp = now or utcnow()
    if record.level is not None:
        record.level = record.level.upper()
    if record.message is not None and len(record.message) > MAX_MESSAGE_LENGTH:
        record.message = record.message[:MAX_MESSAGE_LENGTH] + TRUNCATION_SUFFIX
    if not record.environment:
        record.environment = UNKNOWN_ENVIRONMENT
    return record


def enrich(record: LogRecord, now: Optional[datetime] = None) -> LogRecord:
    """Stamp processing metadata and message signals into the record in place."""
    if record.metadata is None:
        record.metadata = {}
    metadata = record.metadata
    metadata[schema.META_PROCESSED_AT] = format_instant(now or utcnow())
    metadata[schema.META_PROCESSOR] = schema.PROCESSOR_NAME
    metadata[schema.META_MESSAGE_LENGTH] = len(record.message or "")
    metadata.update(message_signals(record.message))
    return record


def is_high_confidence(
    prediction: PredictionResponse,
    threshold: float = ALERT_CONFIDENCE_THRESHOLD,
) -> bool:
    """True only for anomalies whose confidence is strictly above threshold."""
    return bool(prediction.is_anomaly) and prediction.confidence is not None and prediction.confidence > threshold


def _preview(message: Optional[str], limit: int = 100) -> Optional[str]:
    if message is None:
        return None
    return message[:limit] + "..." if len(message) > limit else message


def _log_alert(result: AnomalyResult) -> None:
    logger.info(
        "High-confidence anomaly detected for log %s (confidence=%s), alert should be triggered",
        result.log_id,
        result.confidence,
    )


class LogProcessor:
    """Processes one record at a time and hands scoring to a worker pool."""

    def __init__(
        self,
        index_store: IndexStore,
        anomaly_store: AnomalyStore,
        prediction_client: PredictionClient,
        dispatcher: Optional[ScoringDispatcher] = None,
        alert_handler: Optional[AlertHandler] = None,
        alert_threshold: float = ALERT_CONFIDENCE_THRESHOLD,
    ):
        """Initialize the processor.

        Args:
            index_store: Where enriched records are indexed.
            anomaly_store: Where scoring outcomes are appended.
            prediction_client: Remote anomaly scorer.
            dispatcher: Worker pool for scoring. A default pool is created if omitted.
            alert_handler: Called with each high-confidence anomaly.
            alert_threshold: Confidence above which an anomaly raises an alert.
        """
        self._index_store = index_store
        self._anomaly_store = anomaly_store
        self._client = prediction_client
        self._dispatcher = dispatcher or ScoringDispatcher()
        self._alert_handler = alert_handler or _log_alert
        self._alert_threshold = alert_threshold

    @property
    def dispatcher(self) -> ScoringDispatcher:
        return self._dispatcher

    def process(self, record: LogRecord) -> str:
        """Normalize, enrich and index a record, then schedule scoring.

        Returns:
            The document ID assigned by the index store.

        Raises:
            LogProcessingError: If any step before scoring fails.
        """
        try:
            logger.debug(
                "Processing log: service=%s, level=%s, message=%s",
                record.service,
                record.level,
                _preview(record.message),
            )
            normalize(record)
            enrich(record)
            document_id = self._index_store.index_log(record)
            logger.debug("Log processed successfully: documentId=%s", document_id)
        except Exception as e:
            logger.error("Failed to process log: %s", e)
            raise LogProcessingError("Failed to process log entry") from e

        self._dispatcher.submit(self.score, document_id, record)
        return document_id

    def score(self, log_id: str, record: LogRecord) -> Optional[AnomalyResult]:
        """Score an indexed record and append the outcome.

        Runs on a worker thread. Never raises.

        Returns:
            The AnomalyResult built from the prediction, or None when the
            prediction service gave no answer.
        """
        try:
            return self._score(log_id, record)
        except Exception:
            logger.exception("Error in anomaly detection for log %s", log_id)
            return None

    def _score(self, log_id: str, record: LogRecord) -> Optional[AnomalyResult]:
        logger.debug("Starting anomaly detection for log: %s", log_id)
        prediction = self._client.predict(log_id, record)
        if prediction is None:
            logger.debug("Prediction unavailable, skipping anomaly detection for log: %s", log_id)
            return None

        if record.metadata is None:
            record.metadata = {}
        record.metadata.update(
            {
                schema.META_ANOMALY_DETECTED: prediction.is_anomaly,
                schema.META_ANOMALY_SCORE: prediction.anomaly_score,
                schema.META_ANOMALY_CONFIDENCE: prediction.confidence,
                schema.META_MODEL_VERSION: prediction.model_version,
            }
        )

        result = AnomalyResult(
            log_id=log_id,
            anomaly_score=prediction.anomaly_score,
            is_anomaly=prediction.is_anomaly,
            confidence=prediction.confidence,
            model_version=prediction.model_version,
        )
        try:
            result.features = json.dumps(feature_snapshot(record), sort_keys=True)
        except (TypeError, ValueError) as e:
            logger.error("Error serializing features for log %s: %s", log_id, e)
        else:
            self._persist(result)

        if prediction.is_anomaly:
            logger.warning(
                "Anomaly detected in log %s: score=%s, confidence=%s",
                log_id,
                prediction.anomaly_score,
                prediction.confidence,
            )
            if is_high_confidence(prediction, self._alert_threshold):
                self._alert_handler(result)
        return result

    def _persist(self, result: AnomalyResult) -> None:
        try:
            self._anomaly_store.save(result)
            logger.debug("Anomaly result saved for log: %s", result.log_id)
        except Exception:
            logger.exception("Error saving anomaly result for log %s", result.log_id)
