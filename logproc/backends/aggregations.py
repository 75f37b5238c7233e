"""Decoding of typed aggregation payloads.

Search responses are requested with ``typed_keys=true``, so every
aggregation arrives keyed as ``"<kind>#<name>"``. A terms aggregation on a
keyword field comes back as ``sterms`` (string keys); the same aggregation on
a numeric field comes back as ``lterms`` (integer keys). Both collapse to
``TermBucket(key: str, count: int)``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from logproc.utils import from_epoch_millis, parse_instant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TermBucket:
    key: str
    count: int


@dataclass(frozen=True)
class HistogramBucket:
    timestamp: datetime
    count: int


@dataclass(frozen=True)
class StringTermsAggregate:
    buckets: List[Dict[str, Any]] = field(default_factory=list)
    kind: str = "sterms"


@dataclass(frozen=True)
class LongTermsAggregate:
    buckets: List[Dict[str, Any]] = field(default_factory=list)
    kind: str = "lterms"


@dataclass(frozen=True)
class DateHistogramAggregate:
    buckets: List[Dict[str, Any]] = field(default_factory=list)
    kind: str = "date_histogram"


@dataclass(frozen=True)
class OtherAggregate:
    """Any aggregation shape this module does not interpret."""

    kind: str
    payload: Any = None


Aggregate = Union[StringTermsAggregate, LongTermsAggregate, DateHistogramAggregate, OtherAggregate]

_BUCKETED = {
    "sterms": StringTermsAggregate,
    "lterms": LongTermsAggregate,
    "date_histogram": DateHistogramAggregate,
}


@dataclass(frozen=True)
class AggregateResult:
    """Total hit count plus the decoded aggregation (None when absent)."""

    total: int
    aggregate: Optional[Aggregate] = None


def decode_aggregate(kind: str, payload: Any) -> Optional[Aggregate]:
    """Decode one aggregation payload into its variant."""
    if payload is None:
        return None
    cls = _BUCKETED.get(kind)
    if cls is None or not isinstance(payload, dict):
        return OtherAggregate(kind=kind, payload=payload)
    buckets = payload.get("buckets")
    if not isinstance(buckets, list):
        return OtherAggregate(kind=kind, payload=payload)
    return cls(buckets=buckets)


def decode_aggregations(raw: Optional[Dict[str, Any]]) -> Dict[str, Optional[Aggregate]]:
    """Decode a ``typed_keys`` aggregations object into ``{name: variant}``."""
    decoded: Dict[str, Optional[Aggregate]] = {}
    if not raw:
        return decoded
    for typed_key, payload in raw.items():
        kind, sep, name = typed_key.partition("#")
        if not sep:
            # Untyped key; shape unknown
            kind, name = "", typed_key
        decoded[name] = decode_aggregate(kind, payload)
    return decoded


def term_buckets(aggregate: Optional[Aggregate], name: str = "") -> List[TermBucket]:
    """Flatten a terms aggregation into (key, count) pairs.

    Preserves the store's bucket order. Returns an empty list for a missing
    aggregation or any shape other than string/long terms.
    """
    if aggregate is None:
        logger.warning("Aggregation %s missing or null", name or "<unnamed>")
        return []
    if isinstance(aggregate, StringTermsAggregate):
        logger.debug("Found %d %s buckets (sterms)", len(aggregate.buckets), name)
        return [TermBucket(key=str(b.get("key")), count=int(b.get("doc_count", 0))) for b in aggregate.buckets]
    if isinstance(aggregate, LongTermsAggregate):
        logger.debug("Found %d %s buckets (lterms)", len(aggregate.buckets), name)
        return [TermBucket(key=str(int(b.get("key"))), count=int(b.get("doc_count", 0))) for b in aggregate.buckets]
    logger.warning("Aggregation %s is not a terms aggregation (kind=%s)", name, aggregate.kind)
    return []


def histogram_buckets(aggregate: Optional[Aggregate], name: str = "") -> List[HistogramBucket]:
    """Flatten a date histogram into (timestamp, count) pairs.

    Uses ``key_as_string`` when present, otherwise reads ``key`` as epoch
    milliseconds.
    """
    if aggregate is None:
        logger.warning("Aggregation %s missing or null", name or "<unnamed>")
        return []
    if not isinstance(aggregate, DateHistogramAggregate):
        logger.warning("Aggregation %s is not a date histogram (kind=%s)", name, aggregate.kind)
        return []

    points = []
    for bucket in aggregate.buckets:
        key_str = bucket.get("key_as_string")
        if key_str:
            timestamp = parse_instant(key_str)
        else:
            timestamp = from_epoch_millis(int(bucket["key"]))
        points.append(HistogramBucket(timestamp=timestamp, count=int(bucket.get("doc_count", 0))))
    logger.debug("Found %d %s buckets", len(points), name)
    return points
