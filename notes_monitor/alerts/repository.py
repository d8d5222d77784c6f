"""Alert persistence.

One open alert per dedup_key is enforced by a partial unique index; every
state transition is a single statement so concurrent collectors cannot both
decide to notify.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, component, alert_type, dedup_key, severity, message,
    first_seen, last_seen, last_notified_at, occurrence_count,
    notification_count, state, last_transition, resolved_at
"""

_RECORD_BREACH = text(
    f"""
    INSERT INTO alerts (
        component, alert_type, dedup_key, severity, message,
        first_seen, last_seen, last_notified_at,
        occurrence_count, notification_count, state, last_transition
    )
    VALUES (
        :component, :alert_type, :dedup_key, :severity, :message,
        :now, :now, :now,
        1, 1, 'open', 'opened'
    )
    ON CONFLICT (dedup_key) WHERE state = 'open' DO UPDATE SET
        severity = excluded.severity,
        message = excluded.message,
        last_seen = excluded.last_seen,
        occurrence_count = CASE
            WHEN :dedup_enabled = 1 AND alerts.last_notified_at <= :cutoff THEN 1
            ELSE alerts.occurrence_count + 1
        END,
        first_seen = CASE
            WHEN :dedup_enabled = 1 AND alerts.last_notified_at <= :cutoff THEN excluded.first_seen
            ELSE alerts.first_seen
        END,
        notification_count = CASE
            WHEN alerts.last_notified_at <= :cutoff THEN alerts.notification_count + 1
            ELSE alerts.notification_count
        END,
        last_notified_at = CASE
            WHEN alerts.last_notified_at <= :cutoff THEN excluded.last_notified_at
            ELSE alerts.last_notified_at
        END,
        last_transition = CASE
            WHEN alerts.last_notified_at <= :cutoff THEN 'renotified'
            ELSE 'suppressed'
        END
    RETURNING {_COLUMNS}
    """
)


class AlertStoreError(RuntimeError):
    """The alert store could not be read or written."""


@dataclass(frozen=True)
class AlertRecord:
    id: int
    component: str
    alert_type: str
    dedup_key: str
    severity: str
    message: str
    first_seen: float
    last_seen: float
    last_notified_at: float
    occurrence_count: int
    notification_count: int
    state: str
    last_transition: str = "opened"
    resolved_at: Optional[float] = None

    @classmethod
    def from_row(cls, row) -> "AlertRecord":
        return cls(
            id=int(row.id),
            component=row.component,
            alert_type=row.alert_type,
            dedup_key=row.dedup_key,
            severity=row.severity,
            message=row.message,
            first_seen=float(row.first_seen),
            last_seen=float(row.last_seen),
            last_notified_at=float(row.last_notified_at),
            occurrence_count=int(row.occurrence_count),
            notification_count=int(row.notification_count),
            state=row.state,
            last_transition=row.last_transition,
            resolved_at=float(row.resolved_at) if row.resolved_at is not None else None,
        )

    @property
    def is_open(self) -> bool:
        return self.state == "open"


def make_dedup_key(component: str, alert_type: str) -> str:
    return f"{component}:{alert_type}"


class AlertRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    def record_breach(
        self,
        component: str,
        alert_type: str,
        severity: str,
        message: str,
        now: float,
        notify_cutoff: float,
        dedup_enabled: bool = True,
    ) -> AlertRecord:
        """Open, bump or re-arm the alert for ``component:alert_type``.

        Args:
            now: Breach time; becomes ``last_notified_at`` when a notification is due.
            notify_cutoff: An open alert last notified at or before this epoch
                is due for a new notification.
            dedup_enabled: When False the occurrence count keeps growing across
                notifications instead of restarting.

        Returns:
            The alert row after the transition. ``last_transition`` is
            ``opened`` or ``renotified`` when a notification is due and
            ``suppressed`` otherwise.
        """
        params = {
            "component": component,
            "alert_type": alert_type,
            "dedup_key": make_dedup_key(component, alert_type),
            "severity": severity,
            "message": message,
            "now": now,
            "cutoff": notify_cutoff,
            "dedup_enabled": 1 if dedup_enabled else 0,
        }
        try:
            with self._engine.begin() as conn:
                row = conn.execute(_RECORD_BREACH, params).fetchone()
        except SQLAlchemyError as e:
            logger.error("alert_upsert_failed dedup_key=%s err=%s", params["dedup_key"], e)
            raise AlertStoreError(str(e)) from e
        return AlertRecord.from_row(row)

    def close(self, dedup_key: str, now: float) -> bool:
        """Close the open alert for ``dedup_key``; False if none was open."""
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    text(
                        """
                        UPDATE alerts
                        SET state = 'closed', resolved_at = :now
                        WHERE dedup_key = :dedup_key AND state = 'open'
                        """
                    ),
                    {"dedup_key": dedup_key, "now": now},
                )
        except SQLAlchemyError as e:
            logger.error("alert_close_failed dedup_key=%s err=%s", dedup_key, e)
            raise AlertStoreError(str(e)) from e
        return result.rowcount > 0

    def get_open(self, dedup_key: str) -> Optional[AlertRecord]:
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    text(f"SELECT {_COLUMNS} FROM alerts WHERE dedup_key = :dedup_key AND state = 'open'"),
                    {"dedup_key": dedup_key},
                ).fetchone()
        except SQLAlchemyError as e:
            raise AlertStoreError(str(e)) from e
        return AlertRecord.from_row(row) if row else None

    def list_open(self, component: Optional[str] = None) -> list[AlertRecord]:
        """Open alerts, most recently seen first."""
        sql = f"SELECT {_COLUMNS} FROM alerts WHERE state = 'open'"
        params: dict = {}
        if component is not None:
            sql += " AND component = :component"
            params["component"] = component
        sql += " ORDER BY last_seen DESC, id DESC"
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(text(sql), params).fetchall()
        except SQLAlchemyError as e:
            raise AlertStoreError(str(e)) from e
        return [AlertRecord.from_row(r) for r in rows]
