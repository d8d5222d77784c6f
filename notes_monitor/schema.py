"""Tables shared by the metric store and the alert repository.

Timestamps are stored as epoch seconds (double precision) so the same SQL runs
on PostgreSQL in production and SQLite in tests.
"""

from __future__ import annotations

import logging

from sqlalchemy import Column, Float, Index, Integer, MetaData, String, Table, Text, text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()

metrics_table = Table(
    "metrics",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("component", String(50), nullable=False),
    Column("metric_name", String(100), nullable=False),
    # Decimal text, never float.
    Column("metric_value", String(64), nullable=False),
    Column("metric_unit", String(20), nullable=True),
    Column("timestamp", Float, nullable=False),
    Column("labels", Text, nullable=False, server_default=""),
    Index("idx_metrics_component_name_ts", "component", "metric_name", "timestamp"),
)

alerts_table = Table(
    "alerts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("component", String(50), nullable=False),
    Column("alert_type", String(100), nullable=False),
    Column("dedup_key", String(200), nullable=False),
    Column("severity", String(20), nullable=False),
    Column("message", Text, nullable=False),
    Column("first_seen", Float, nullable=False),
    Column("last_seen", Float, nullable=False),
    Column("last_notified_at", Float, nullable=False),
    Column("occurrence_count", Integer, nullable=False, server_default="1"),
    Column("notification_count", Integer, nullable=False, server_default="1"),
    Column("state", String(20), nullable=False, server_default="open"),
    # opened, suppressed or renotified; set by the breach upsert from the pre-update row.
    Column("last_transition", String(20), nullable=False, server_default="opened"),
    Column("resolved_at", Float, nullable=True),
    # One open alert per key; the upsert's ON CONFLICT target.
    Index(
        "uq_alerts_open_dedup_key",
        "dedup_key",
        unique=True,
        postgresql_where=text("state = 'open'"),
        sqlite_where=text("state = 'open'"),
    ),
    Index("idx_alerts_component_state", "component", "state"),
)


def ensure_schema(engine: Engine) -> None:
    """Create missing tables and indexes. Safe to call on every run."""
    metadata.create_all(engine, checkfirst=True)
    logger.debug("[DB] schema ensured tables=%s", ",".join(sorted(metadata.tables)))
