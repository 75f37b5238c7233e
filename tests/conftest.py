"""Shared fixtures and fakes for logproc tests."""

import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

from logproc.backends import IndexStoreError
from logproc.backends.aggregations import AggregateResult
from logproc.backends.sql import SQLAnomalyStore
from logproc.models import PredictionResponse


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, json_data: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._json = json_data
        self.text = text if text is not None else ""

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Replays queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise requests.ConnectionError("no response queued")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        return self._next(method, url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)

    def head(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("HEAD", url, **kwargs)

    def close(self) -> None:
        self.closed = True


class InMemoryIndexStore:
    """Index store that keeps records in a list."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.records = []
        self.counts: Dict[str, int] = {}
        self.aggregates: Dict[str, AggregateResult] = {}
        self.reachable = True

    def init_index(self) -> bool:
        return not self.fail

    def index_log(self, record) -> str:
        if self.fail:
            raise IndexStoreError("index unavailable")
        self.records.append(record)
        return f"doc-{len(self.records)}"

    def search(self, request):
        if self.fail:
            raise IndexStoreError("index unavailable")
        start = request.page * request.size
        return self.records[start:start + request.size], len(self.records)

    def count(self, query=None) -> int:
        if self.fail:
            raise IndexStoreError("index unavailable")
        if query is None:
            return len(self.records)
        level = query.get("term", {}).get("level")
        return sum(1 for r in self.records if r.level == level)

    def aggregate(self, name, aggregation, query=None) -> AggregateResult:
        if self.fail:
            raise IndexStoreError("index unavailable")
        return self.aggregates.get(name, AggregateResult(total=0))

    def ping(self) -> bool:
        return self.reachable


class StubPredictionClient:
    """Returns a fixed prediction (or None) and records calls."""

    def __init__(self, prediction: Optional[PredictionResponse] = None, available: bool = True):
        self.prediction = prediction
        self.available = available
        self.calls = []

    def predict(self, log_id, record):
        self.calls.append((log_id, record))
        return self.prediction

    def is_available(self) -> bool:
        return self.available


class RecordingChannel:
    def __init__(self):
        self.acked = []
        self.rejected = []

    def ack(self, delivery_tag: int) -> None:
        self.acked.append(delivery_tag)

    def reject(self, delivery_tag: int) -> None:
        self.rejected.append(delivery_tag)


@pytest.fixture
def temp_db():
    """Create a temporary SQLite database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield f"sqlite:///{db_path}"
    # Cleanup
    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def anomaly_store(temp_db):
    store = SQLAnomalyStore(temp_db)
    yield store
    store.close()


@pytest.fixture
def index_store():
    return InMemoryIndexStore()
