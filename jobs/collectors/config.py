"""Collector configuration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Optional

from common.config import Settings


@dataclass(frozen=True)
class CollectorConfig:
    """One monitored component: which log to read and how to read it."""
    component: str
    profile_name: str
    log_file: str
    max_lines: int
    window_seconds: int
    tz: tzinfo
    lock_file: Optional[str] = None


def collectors_from_settings(settings: Settings) -> list[CollectorConfig]:
    tz = settings.log_tzinfo
    return [
        CollectorConfig(
            component="ingestion",
            profile_name="daemon",
            log_file=settings.daemon_log_file,
            lock_file=settings.daemon_lock_file,
            max_lines=settings.log_scan_max_lines,
            window_seconds=settings.cycle_rate_window_seconds,
            tz=tz,
        ),
        CollectorConfig(
            component="analytics",
            profile_name="etl",
            log_file=settings.etl_log_file,
            max_lines=settings.log_scan_max_lines,
            window_seconds=settings.cycle_rate_window_seconds,
            tz=tz,
        ),
    ]
