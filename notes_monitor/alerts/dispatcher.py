"""Deduplicating alert dispatcher.

Per dedup_key (``component:alert_type``):

    ABSENT  --breach-->  OPEN        notify
    OPEN    --breach-->  OPEN        suppressed while inside the window
    OPEN    --breach-->  OPEN        notify again once the window has elapsed
    OPEN    --clear--->  CLOSED      next breach starts from ABSENT

With deduplication disabled every breach notifies.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from common.config import Settings

from .notification_service import Notifier
from .repository import AlertRecord, AlertRepository, make_dedup_key

logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    OPENED = "opened"
    SUPPRESSED = "suppressed"
    RENOTIFIED = "renotified"


@dataclass(frozen=True)
class DispatchConfig:
    dedup_enabled: bool = True
    dedup_window_seconds: int = 3600

    @classmethod
    def from_settings(cls, settings: Settings) -> "DispatchConfig":
        return cls(
            dedup_enabled=settings.dedup_enabled,
            dedup_window_seconds=settings.dedup_window_minutes * 60,
        )


@dataclass(frozen=True)
class DispatchResult:
    outcome: DispatchOutcome
    record: AlertRecord
    delivered: Optional[bool] = None

    @property
    def notified(self) -> bool:
        return self.outcome is not DispatchOutcome.SUPPRESSED


class AlertDispatcher:
    def __init__(
        self,
        repository: AlertRepository,
        notifier: Notifier,
        config: Optional[DispatchConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._repository = repository
        self._notifier = notifier
        self._config = config or DispatchConfig()
        self._clock = clock

    def report_breach(self, component: str, alert_type: str, severity: str, message: str) -> DispatchResult:
        """Persist a breach and notify unless it is a duplicate.

        Raises:
            AlertStoreError: the alert state could not be recorded; nothing was sent.
        """
        now = self._clock()
        if self._config.dedup_enabled:
            cutoff = now - self._config.dedup_window_seconds
        else:
            cutoff = now

        record = self._repository.record_breach(
            component=component,
            alert_type=alert_type,
            severity=severity,
            message=message,
            now=now,
            notify_cutoff=cutoff,
            dedup_enabled=self._config.dedup_enabled,
        )

        if record.last_transition == DispatchOutcome.SUPPRESSED.value:
            logger.debug(
                "alert_suppressed dedup_key=%s occurrences=%d",
                record.dedup_key,
                record.occurrence_count,
            )
            return DispatchResult(DispatchOutcome.SUPPRESSED, record)

        outcome = DispatchOutcome(record.last_transition)
        logger.info(
            "alert_%s dedup_key=%s severity=%s occurrences=%d",
            outcome.value,
            record.dedup_key,
            severity,
            record.occurrence_count,
        )
        return DispatchResult(outcome, record, self._send(component, severity, alert_type, message))

    def _send(self, component: str, severity: str, alert_type: str, message: str) -> bool:
        try:
            return bool(self._notifier.notify(component, severity, alert_type, message))
        except Exception as e:
            # State is already committed; delivery is best effort.
            logger.error("alert_notify_failed component=%s alert_type=%s err=%s", component, alert_type, e)
            return False

    def report_clear(self, component: str, alert_type: str) -> bool:
        """Close the open alert for the key, if any."""
        dedup_key = make_dedup_key(component, alert_type)
        closed = self._repository.close(dedup_key, self._clock())
        if closed:
            logger.info("alert_closed dedup_key=%s", dedup_key)
        return closed
