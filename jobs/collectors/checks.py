"""Individual collector checks.

Each check reads one source and returns the samples it produced; it never
writes. Missing evidence yields an empty list.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from notes_monitor.extraction import PROFILES, extract, to_samples
from notes_monitor.logs import read_tail
from notes_monitor.metrics import MetricSample

from .config import CollectorConfig

logger = logging.getLogger(__name__)


def check_log_cycles(cfg: CollectorConfig, now: float) -> list[MetricSample]:
    """Cycle, duration, processing and stage metrics from the component's log tail."""
    profile = PROFILES[cfg.profile_name]
    lines = read_tail(cfg.log_file, cfg.max_lines)
    if not lines:
        logger.debug("log_empty_or_missing component=%s path=%s", cfg.component, cfg.log_file)
        return []

    result = extract(profile, lines, now=now, window_seconds=cfg.window_seconds, tz=cfg.tz)
    if not result.found_any:
        return []

    logger.debug(
        "log_cycles component=%s cycles=%d stages=%d in_window=%d basis=%s",
        cfg.component,
        len(result.cycles),
        len(result.stages),
        result.window.cycles_in_window,
        result.window.rate_basis.value,
    )
    return to_samples(profile, result, cfg.component, timestamp=now)


def check_lock_file(cfg: CollectorConfig, now: float) -> list[MetricSample]:
    """``<profile>_lock_status`` (1 present, 0 absent) and the lock's age."""
    if not cfg.lock_file:
        return []

    profile = PROFILES[cfg.profile_name]
    age: Optional[int] = None
    try:
        age = max(int(now - os.stat(cfg.lock_file).st_mtime), 0)
    except FileNotFoundError:
        logger.debug("lock_file_not_found component=%s path=%s", cfg.component, cfg.lock_file)

    samples = [
        MetricSample.create(
            cfg.component,
            profile.metric("lock_status"),
            1 if age is not None else 0,
            labels=profile.labels,
            timestamp=now,
        )
    ]
    if age is not None:
        samples.append(
            MetricSample.create(
                cfg.component,
                profile.metric("lock_age_seconds"),
                age,
                labels=profile.labels,
                timestamp=now,
                unit="seconds",
            )
        )
    return samples
