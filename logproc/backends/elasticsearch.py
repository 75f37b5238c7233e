"""Elasticsearch index store over the REST API."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from logproc import schema
from logproc.backends import IndexStoreError
from logproc.backends.aggregations import AggregateResult, decode_aggregations
from logproc.models import LogRecord, SearchRequest
from logproc.utils import format_instant, parse_instant

logger = logging.getLogger(__name__)


def build_search_body(request: SearchRequest) -> Dict[str, Any]:
    """Translate a SearchRequest into a search body.

    Args:
        request: The search parameters.

    Returns:
        A dict suitable for ``POST /<index>/_search``.
    """
    order = "asc" if (request.sort_order or "").lower() == "asc" else "desc"
    return {
        "from": request.page * request.size,
        "size": request.size,
        "sort": [{request.sort_by: {"order": order}}],
        "track_total_hits": True,
        "query": build_filter_query(request),
    }


def build_filter_query(request: SearchRequest) -> Dict[str, Any]:
    """Build the bool query for a SearchRequest's filters.

    A bool query with no clauses matches every document.
    """
    must: List[Dict[str, Any]] = []
    filters: List[Dict[str, Any]] = []

    if request.query:
        must.append({"match": {schema.FIELD_MESSAGE: request.query}})
    if request.levels:
        filters.append({"terms": {schema.FIELD_LEVEL: list(request.levels)}})
    if request.services:
        filters.append({"terms": {schema.FIELD_SERVICE: list(request.services)}})
    if request.hosts:
        filters.append({"terms": {schema.FIELD_HOST: list(request.hosts)}})
    if request.start_time is not None or request.end_time is not None:
        bounds: Dict[str, str] = {}
        if request.start_time is not None:
            bounds["gte"] = format_instant(request.start_time)
        if request.end_time is not None:
            bounds["lte"] = format_instant(request.end_time)
        filters.append({"range": {schema.FIELD_TIMESTAMP: bounds}})

    bool_query: Dict[str, Any] = {}
    if must:
        bool_query["must"] = must
    if filters:
        bool_query["filter"] = filters
    return {"bool": bool_query}


def record_to_document(record: LogRecord) -> Dict[str, Any]:
    """Convert a LogRecord into an index document."""
    document: Dict[str, Any] = {
        schema.FIELD_TIMESTAMP: format_instant(record.timestamp),
        schema.FIELD_LEVEL: record.level,
        schema.FIELD_MESSAGE: record.message,
        schema.FIELD_SERVICE: record.service,
        schema.FIELD_HOST: record.host,
        schema.FIELD_ENVIRONMENT: record.environment,
        schema.FIELD_TRACE_ID: record.trace_id,
        schema.FIELD_SPAN_ID: record.span_id,
    }
    if record.metadata is not None:
        document[schema.FIELD_METADATA] = dict(record.metadata)
    return document


def document_to_record(document: Dict[str, Any]) -> LogRecord:
    """Convert a stored document back into a LogRecord."""

    def _str(field: str) -> Optional[str]:
        value = document.get(field)
        return str(value) if value is not None else None

    timestamp = None
    raw_ts = document.get(schema.FIELD_TIMESTAMP)
    if raw_ts is not None:
        try:
            timestamp = parse_instant(str(raw_ts))
        except ValueError:
            logger.debug("Unparseable document timestamp: %r", raw_ts)

    metadata = document.get(schema.FIELD_METADATA)
    return LogRecord(
        timestamp=timestamp,
        level=_str(schema.FIELD_LEVEL),
        message=_str(schema.FIELD_MESSAGE),
        service=_str(schema.FIELD_SERVICE),
        host=_str(schema.FIELD_HOST),
        environment=_str(schema.FIELD_ENVIRONMENT),
        trace_id=_str(schema.FIELD_TRACE_ID),
        span_id=_str(schema.FIELD_SPAN_ID),
        metadata=metadata if isinstance(metadata, dict) else None,
    )


def _total_hits(body: Dict[str, Any]) -> int:
    total = body.get("hits", {}).get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


class ElasticsearchIndexStore:
    """Index store backed by an Elasticsearch cluster."""

    def __init__(
        self,
        url: str = "http://localhost:9200",
        index_name: str = "logs",
        shards: int = 1,
        replicas: int = 0,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the index store.

        Args:
            url: Base URL of the cluster (e.g. http://localhost:9200).
            index_name: Name of the log index.
            shards: Primary shard count used when creating the index.
            replicas: Replica count used when creating the index.
            timeout: Per-request timeout in seconds.
            session: Optional requests session (injected in tests).
        """
        self._url = url.rstrip("/")
        self._index = index_name
        self._shards = shards
        self._replicas = replicas
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def index_name(self) -> str:
        return self._index

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Raises:
            IndexStoreError: On transport errors, non-2xx status or bad JSON.
        """
        kwargs.setdefault("timeout", self._timeout)
        try:
            resp = self._session.request(method, f"{self._url}{path}", **kwargs)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            raise IndexStoreError(f"{method} {path} failed: {e}") from e

    def init_index(self) -> bool:
        """Create the index with its mapping if it does not exist.

        Failures are logged and swallowed so the service can start degraded.

        Returns:
            True if the index exists or was created.
        """
        try:
            resp = self._session.head(f"{self._url}/{self._index}", timeout=self._timeout)
            if resp.status_code == 200:
                logger.info("Index already exists: %s", self._index)
                return True
            if resp.status_code != 404:
                resp.raise_for_status()

            logger.info("Creating index: %s", self._index)
            body = self._request(
                "PUT",
                f"/{self._index}",
                json=schema.index_mapping(self._shards, self._replicas),
            )
            logger.info("Index created: %s, acknowledged: %s", self._index, body.get("acknowledged"))
            return True
        except (requests.RequestException, IndexStoreError) as e:
            logger.error("Failed to initialize index %s: %s", self._index, e)
            return False

    def index_log(self, record: LogRecord) -> str:
        """Index a record and return the generated document ID."""
        body = self._request("POST", f"/{self._index}/_doc", json=record_to_document(record))
        result = body.get("result")
        if result not in ("created", "updated") or not body.get("_id"):
            raise IndexStoreError(f"Unexpected index result: {result}")
        logger.debug("Log indexed: %s", body["_id"])
        return body["_id"]

    def search(self, request: SearchRequest) -> Tuple[List[LogRecord], int]:
        """Run a filtered, paginated search."""
        body = self._request("POST", f"/{self._index}/_search", json=build_search_body(request))
        hits = body.get("hits", {}).get("hits", [])
        records = [document_to_record(hit.get("_source") or {}) for hit in hits]
        return records, _total_hits(body)

    def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        """Count documents matching a query."""
        payload: Dict[str, Any] = {
            "size": 0,
            "track_total_hits": True,
            "query": query or {"match_all": {}},
        }
        body = self._request("POST", f"/{self._index}/_search", json=payload)
        return _total_hits(body)

    def aggregate(
        self,
        name: str,
        aggregation: Dict[str, Any],
        query: Optional[Dict[str, Any]] = None,
    ) -> AggregateResult:
        """Run one named aggregation and decode its result."""
        payload: Dict[str, Any] = {
            "size": 0,
            "track_total_hits": True,
            "aggs": {name: aggregation},
        }
        if query is not None:
            payload["query"] = query
        body = self._request(
            "POST",
            f"/{self._index}/_search",
            params={"typed_keys": "true"},
            json=payload,
        )
        decoded = decode_aggregations(body.get("aggregations"))
        return AggregateResult(total=_total_hits(body), aggregate=decoded.get(name))

    def ping(self) -> bool:
        """Check whether the cluster answers."""
        try:
            resp = self._session.head(f"{self._url}/", timeout=self._timeout)
            return resp.status_code == 200
        except requests.RequestException as e:
            logger.error("Elasticsearch ping failed: %s", e)
            return False

    def close(self) -> None:
        self._session.close()
