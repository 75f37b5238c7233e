"""SQLAlchemy-based anomaly store."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    insert,
    select,
)
from sqlalchemy.engine import Engine

from logproc.models import AnomalyResult


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SQLAnomalyStore:
    """SQLAlchemy Core anomaly store supporting SQLite and PostgreSQL.

    Writes are single-row inserts in their own transaction, so concurrent
    scoring tasks can append without coordinating.
    """

    def __init__(
        self,
        connection_string: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        schema: Optional[str] = None,
    ):
        """Initialize the SQL store.

        Args:
            connection_string: Database connection string (sqlite:/// or postgresql://)
            pool_size: Connection pool size (ignored for SQLite)
            max_overflow: Max overflow connections (ignored for SQLite)
            schema: Optional database schema for the table (PostgreSQL)
        """
        self._connection_string = connection_string
        self._is_sqlite = connection_string.startswith("sqlite")

        # For SQLite, ensure parent directories exist
        if self._is_sqlite:
            db_path = connection_string.replace("sqlite:///", "")
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        if self._is_sqlite:
            self._engine: Engine = create_engine(
                connection_string,
                connect_args={"check_same_thread": False},
            )
        else:
            self._engine = create_engine(
                connection_string,
                pool_size=pool_size,
                max_overflow=max_overflow,
            )

        self._metadata = MetaData(schema=schema)
        self._anomalies = Table(
            "anomaly_detections",
            self._metadata,
            Column("id", String(26), primary_key=True),
            Column("model_id", Integer, nullable=True),
            Column("log_id", String(255), nullable=False),
            Column("anomaly_score", Float, nullable=False),
            Column("is_anomaly", Boolean, nullable=False),
            Column("confidence", Float, nullable=True),
            Column("features", Text, nullable=True),
            Column("detected_at", DateTime(timezone=True), nullable=False),
            Column("model_version", String(255), nullable=True),
        )
        Index("idx_anomaly_log_id", self._anomalies.c.log_id)
        Index("idx_anomaly_detected", self._anomalies.c.detected_at)
        # Partial index for anomalies only (PostgreSQL only; ignored elsewhere)
        Index(
            "idx_anomaly_flagged",
            self._anomalies.c.detected_at,
            postgresql_where=self._anomalies.c.is_anomaly.is_(True),
        )

        self.init_schema()

    def init_schema(self) -> None:
        """Create the table and its indexes if they don't exist."""
        self._metadata.create_all(self._engine)

    def save(self, result: AnomalyResult) -> str:
        """Append a result. Returns the result ID."""
        with self._engine.begin() as conn:
            conn.execute(insert(self._anomalies).values(**self._result_to_row(result)))
        return result.id

    def find_by_log_id(self, log_id: str) -> Optional[AnomalyResult]:
        """Get the most recent result for a log document."""
        stmt = (
            select(self._anomalies)
            .where(self._anomalies.c.log_id == log_id)
            .order_by(self._anomalies.c.detected_at.desc())
            .limit(1)
        )
        rows = self._fetch(stmt)
        return rows[0] if rows else None

    def find_between(self, start: datetime, end: datetime) -> List[AnomalyResult]:
        """Anomalies detected within [start, end], newest first."""
        stmt = (
            select(self._anomalies)
            .where(self._anomalies.c.is_anomaly.is_(True))
            .where(self._anomalies.c.detected_at.between(_as_utc(start), _as_utc(end)))
            .order_by(self._anomalies.c.detected_at.desc())
        )
        return self._fetch(stmt)

    def find_recent(self, limit: Optional[int] = None) -> List[AnomalyResult]:
        """Most recent anomalies, newest first."""
        stmt = (
            select(self._anomalies)
            .where(self._anomalies.c.is_anomaly.is_(True))
            .order_by(self._anomalies.c.detected_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._fetch(stmt)

    def count_between(self, start: datetime, end: datetime) -> int:
        """Count anomalies detected within [start, end]."""
        stmt = (
            select(func.count())
            .select_from(self._anomalies)
            .where(self._anomalies.c.is_anomaly.is_(True))
            .where(self._anomalies.c.detected_at.between(_as_utc(start), _as_utc(end)))
        )
        with self._engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    def find_high_confidence(self, threshold: float) -> List[AnomalyResult]:
        """Anomalies with confidence strictly above threshold."""
        stmt = (
            select(self._anomalies)
            .where(self._anomalies.c.is_anomaly.is_(True))
            .where(self._anomalies.c.confidence > threshold)
            .order_by(
                self._anomalies.c.confidence.desc(),
                self._anomalies.c.detected_at.desc(),
            )
        )
        return self._fetch(stmt)

    def find_detected_after(self, start: datetime) -> List[AnomalyResult]:
        """Anomalies detected strictly after start, newest first."""
        stmt = (
            select(self._anomalies)
            .where(self._anomalies.c.is_anomaly.is_(True))
            .where(self._anomalies.c.detected_at > _as_utc(start))
            .order_by(self._anomalies.c.detected_at.desc())
        )
        return self._fetch(stmt)

    def close(self) -> None:
        self._engine.dispose()

    def _fetch(self, stmt) -> List[AnomalyResult]:
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [self._row_to_result(row._mapping) for row in rows]

    def _result_to_row(self, result: AnomalyResult) -> Dict[str, Any]:
        """Convert an AnomalyResult to a database row dict."""
        return {
            "id": result.id,
            "model_id": result.model_id,
            "log_id": result.log_id,
            "anomaly_score": result.anomaly_score,
            "is_anomaly": result.is_anomaly,
            "confidence": result.confidence,
            "features": result.features,
            "detected_at": _as_utc(result.detected_at),
            "model_version": result.model_version,
        }

    def _row_to_result(self, row: Dict[str, Any]) -> AnomalyResult:
        """Convert a database row to an AnomalyResult."""
        return AnomalyResult(
            id=row["id"],
            model_id=row["model_id"],
            log_id=row["log_id"],
            anomaly_score=row["anomaly_score"],
            is_anomaly=row["is_anomaly"],
            confidence=row["confidence"],
            features=row["features"],
            detected_at=_as_utc(row["detected_at"]),
            model_version=row["model_version"],
        )
