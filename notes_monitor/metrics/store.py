"""Append-only metric store on SQLAlchemy.

Every collector run only INSERTs, so independent processes never contend for
a lock; "latest" is computed at read time, never by overwriting rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .models import MetricSample, parse_labels, to_decimal

logger = logging.getLogger(__name__)

PERIOD_SECONDS = {
    "hour": 3600,
    "day": 86400,
    "week": 604800,
}

_INSERT = text(
    """
    INSERT INTO metrics (component, metric_name, metric_value, metric_unit, timestamp, labels)
    VALUES (:component, :metric_name, :metric_value, :metric_unit, :timestamp, :labels)
    """
)


class MetricStoreError(RuntimeError):
    """The metric store could not be written."""


@dataclass(frozen=True)
class MetricSummary:
    metric_name: str
    avg_value: Decimal
    min_value: Decimal
    max_value: Decimal
    sample_count: int


@dataclass(frozen=True)
class MetricBucket:
    period_start: int
    avg_value: Decimal
    min_value: Decimal
    max_value: Decimal
    sample_count: int


def _row_params(sample: MetricSample) -> dict:
    return {
        "component": sample.component,
        "metric_name": sample.metric_name,
        "metric_value": str(sample.value),
        "metric_unit": sample.unit,
        "timestamp": sample.timestamp,
        "labels": sample.labels_text,
    }


def _decimal_or_zero(value) -> Decimal:
    if value is None:
        return Decimal(0)
    return to_decimal(value)


class MetricStore:
    """Time-series sink for ``MetricSample`` rows."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def append(self, sample: MetricSample) -> None:
        self.append_many([sample])

    def append_many(self, samples: Iterable[MetricSample]) -> int:
        """Insert samples in one short transaction.

        Raises:
            MetricStoreError: the database rejected or could not take the write.
        """
        params = [_row_params(s) for s in samples]
        if not params:
            return 0
        try:
            with self._engine.begin() as conn:
                conn.execute(_INSERT, params)
        except SQLAlchemyError as e:
            logger.error("metric_append_failed count=%d err=%s", len(params), e)
            raise MetricStoreError(str(e)) from e
        logger.debug("metric_append count=%d", len(params))
        return len(params)

    def latest(self, component: str, metric_name: str) -> Optional[Decimal]:
        """Most recent value, or None if there is none or the read failed."""
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    text(
                        """
                        SELECT metric_value
                        FROM metrics
                        WHERE component = :component
                          AND metric_name = :metric_name
                        ORDER BY timestamp DESC, id DESC
                        LIMIT 1
                        """
                    ),
                    {"component": component, "metric_name": metric_name},
                ).fetchone()
        except SQLAlchemyError as e:
            logger.warning("metric_read_failed component=%s metric=%s err=%s", component, metric_name, e)
            return None
        return to_decimal(row[0]) if row else None

    def windowed(self, component: str, metric_name: str, since: float) -> list[MetricSample]:
        """Samples with ``timestamp >= since``, oldest first."""
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(
                    text(
                        """
                        SELECT component, metric_name, metric_value, metric_unit, timestamp, labels
                        FROM metrics
                        WHERE component = :component
                          AND metric_name = :metric_name
                          AND timestamp >= :since
                        ORDER BY timestamp ASC, id ASC
                        """
                    ),
                    {"component": component, "metric_name": metric_name, "since": since},
                ).fetchall()
        except SQLAlchemyError as e:
            logger.warning("metric_read_failed component=%s metric=%s err=%s", component, metric_name, e)
            return []

        return [
            MetricSample(
                component=r.component,
                metric_name=r.metric_name,
                value=to_decimal(r.metric_value),
                timestamp=float(r.timestamp),
                labels=parse_labels(r.labels),
                unit=r.metric_unit,
            )
            for r in rows
        ]

    def summary(self, component: str, since: float) -> list[MetricSummary]:
        """avg/min/max/count per metric name for a component since ``since``."""
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(
                    text(
                        """
                        SELECT metric_name,
                               AVG(CAST(metric_value AS NUMERIC)) AS avg_value,
                               MIN(CAST(metric_value AS NUMERIC)) AS min_value,
                               MAX(CAST(metric_value AS NUMERIC)) AS max_value,
                               COUNT(*) AS sample_count
                        FROM metrics
                        WHERE component = :component
                          AND timestamp >= :since
                        GROUP BY metric_name
                        ORDER BY metric_name
                        """
                    ),
                    {"component": component, "since": since},
                ).fetchall()
        except SQLAlchemyError as e:
            logger.warning("metric_summary_failed component=%s err=%s", component, e)
            return []

        return [
            MetricSummary(
                metric_name=r.metric_name,
                avg_value=_decimal_or_zero(r.avg_value),
                min_value=_decimal_or_zero(r.min_value),
                max_value=_decimal_or_zero(r.max_value),
                sample_count=int(r.sample_count),
            )
            for r in rows
        ]

    def aggregate(
        self,
        component: str,
        metric_name: str,
        period: str = "hour",
        since: Optional[float] = None,
    ) -> list[MetricBucket]:
        """Bucket a metric by hour, day or week (epoch-aligned), newest bucket first.

        Buckets are formed client-side so the arithmetic is the same on every
        backend (PostgreSQL rounds float casts, SQLite truncates).
        """
        if period not in PERIOD_SECONDS:
            raise ValueError(f"invalid period: {period}")
        size = PERIOD_SECONDS[period]

        samples = self.windowed(component, metric_name, since if since is not None else 0.0)
        buckets: dict[int, list[Decimal]] = {}
        for sample in samples:
            start = int(sample.timestamp // size) * size
            buckets.setdefault(start, []).append(sample.value)

        return [
            MetricBucket(
                period_start=start,
                avg_value=sum(values, Decimal(0)) / len(values),
                min_value=min(values),
                max_value=max(values),
                sample_count=len(values),
            )
            for start, values in sorted(buckets.items(), reverse=True)
        ]
