"""HTTP client for the external anomaly prediction service.

The client is fail-open: every failure mode resolves to ``None`` so that
scoring can never break ingestion.
"""

import logging
import time
from typing import Callable, Optional

import requests

from logproc.features import extract_features
from logproc.models import LogRecord, PredictionRequest, PredictionResponse

logger = logging.getLogger(__name__)

PREDICT_PATH = "/api/v1/predict"
HEALTH_PATH = "/api/v1/health"


class PredictionClient:
    """Calls ``POST <base>/api/v1/predict`` with bounded retry."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 5.0,
        max_retries: int = 3,
        backoff: float = 0.1,
        max_backoff: float = 2.0,
        health_timeout: float = 2.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the prediction service.
            timeout: Per-attempt request timeout in seconds.
            max_retries: Retries after the first attempt (0 disables retry).
            backoff: Delay before the first retry; doubles on each retry.
            max_backoff: Upper bound on a single retry delay.
            health_timeout: Timeout for the health probe in seconds.
            session: Optional requests session (injected in tests).
            sleep: Sleep function used between retries.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._backoff = backoff
        self._max_backoff = max_backoff
        self._health_timeout = health_timeout
        self._session = session or requests.Session()
        self._sleep = sleep

    def predict(self, log_id: str, record: LogRecord) -> Optional[PredictionResponse]:
        """Score a record.

        Args:
            log_id: Document ID the record was indexed under.
            record: The enriched record.

        Returns:
            The prediction, or None if the service is unavailable, returned
            404, or kept failing past the retry budget.
        """
        try:
            request = PredictionRequest(log_id=log_id, features=extract_features(record))
            return self._post_with_retry(log_id, request)
        except Exception:
            logger.exception("Unexpected error in prediction for log %s", log_id)
            return None

    def _post_with_retry(self, log_id: str, request: PredictionRequest) -> Optional[PredictionResponse]:
        url = f"{self._base_url}{PREDICT_PATH}"
        attempts = self._max_retries + 1
        last_err: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                resp = self._session.post(url, json=request.to_wire(), timeout=self._timeout)
                if resp.status_code == 404:
                    # Definitive "no opinion"; not retried
                    logger.debug("Prediction service returned 404 for log %s", log_id)
                    return None
                resp.raise_for_status()
                prediction = PredictionResponse.model_validate(resp.json())
                logger.debug(
                    "Prediction for log %s: isAnomaly=%s, score=%s",
                    log_id,
                    prediction.is_anomaly,
                    prediction.anomaly_score,
                )
                return prediction
            except (requests.RequestException, ValueError) as e:
                last_err = e
                if attempt >= attempts:
                    break
                delay = min(self._max_backoff, self._backoff * 2 ** (attempt - 1))
                logger.debug(
                    "Prediction call failed for log %s (attempt %s/%s): %s",
                    log_id,
                    attempt,
                    attempts,
                    e,
                )
                self._sleep(delay)

        logger.warning(
            "Prediction service unavailable for log %s after %s attempts: %s",
            log_id,
            attempts,
            last_err,
        )
        return None

    def is_available(self) -> bool:
        """Probe ``GET <base>/api/v1/health``; any failure means False."""
        try:
            resp = self._session.get(f"{self._base_url}{HEALTH_PATH}", timeout=self._health_timeout)
            if not resp.ok:
                return False
            try:
                body = resp.json()
            except ValueError:
                return '"status":"UP"' in resp.text
            return isinstance(body, dict) and body.get("status") == "UP"
        except requests.RequestException as e:
            logger.debug("Prediction service health check failed: %s", e)
            return False

    def close(self) -> None:
        self._session.close()
