"""Collector runner: one monitoring pass over every configured component.

Checks fan out on a thread pool; a failing check is logged and counted but
never aborts its siblings. Samples are persisted per check, then every
configured threshold for the component is evaluated against the values
stored by this pass and routed through the alert dispatcher. A metric the
pass did not produce is skipped, so its open alert neither fires nor clears.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Iterable, Optional

from notes_monitor.alerts import AlertDispatcher, AlertStoreError, DispatchResult
from notes_monitor.metrics import MetricSample, MetricStore, MetricStoreError
from notes_monitor.thresholds import Severity, ThresholdConfig, ThresholdProvider, evaluate

from .checks import check_lock_file, check_log_cycles
from .config import CollectorConfig

logger = logging.getLogger(__name__)

_DEFAULT_WORKERS = 4

Check = Callable[[CollectorConfig, float], list[MetricSample]]

CHECKS: tuple[tuple[str, Check], ...] = (
    ("log_cycles", check_log_cycles),
    ("lock_file", check_lock_file),
)


@dataclass
class RunResult:
    samples_written: int = 0
    failed_checks: list[str] = field(default_factory=list)
    alerts: list[DispatchResult] = field(default_factory=list)
    store_failed: bool = False

    @property
    def exit_code(self) -> int:
        # Alerts are a side effect, not a collector failure.
        return 1 if self.store_failed else 0


def _run_checks(
    collectors: Iterable[CollectorConfig],
    now: float,
    workers: int,
) -> tuple[dict[str, list[MetricSample]], list[str]]:
    samples: dict[str, list[MetricSample]] = {}
    failed: list[str] = []

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        futures = {
            pool.submit(check, cfg, now): (cfg.component, name)
            for cfg in collectors
            for name, check in CHECKS
        }
        for fut in as_completed(futures):
            component, name = futures[fut]
            try:
                samples.setdefault(component, []).extend(fut.result())
            except Exception as exc:
                failed.append(f"{component}.{name}")
                logger.warning("collector_check_failed component=%s check=%s err=%s", component, name, exc)

    return samples, failed


def _current_severity(
    config: ThresholdConfig, samples: list[MetricSample]
) -> tuple[Optional[Severity], Decimal]:
    """Worst severity across this pass's samples of one metric, with its value."""
    worst, worst_value = None, samples[-1].value
    for sample in samples:
        severity = evaluate(config, sample.value)
        if severity is Severity.CRITICAL:
            return severity, sample.value
        if severity is not None and worst is None:
            worst, worst_value = severity, sample.value
    return worst, worst_value


def _evaluate_component(
    component: str,
    store: MetricStore,
    thresholds: ThresholdProvider,
    dispatcher: AlertDispatcher,
    now: float,
) -> list[DispatchResult]:
    results: list[DispatchResult] = []
    for config in thresholds.for_component(component):
        # Only values written by this pass; a metric that was not produced is not evaluated.
        current = store.windowed(component, config.metric_name, since=now)
        if not current:
            logger.debug("threshold_no_sample component=%s metric=%s", component, config.metric_name)
            continue

        severity, value = _current_severity(config, current)
        try:
            if severity is None:
                dispatcher.report_clear(component, config.alert_type)
                continue
            results.append(
                dispatcher.report_breach(
                    component,
                    config.alert_type,
                    severity.value,
                    config.describe(severity, value),
                )
            )
        except AlertStoreError as e:
            logger.warning(
                "alert_dispatch_skipped component=%s metric=%s err=%s",
                component,
                config.metric_name,
                e,
            )
    return results


def run_once(
    collectors: list[CollectorConfig],
    store: MetricStore,
    thresholds: ThresholdProvider,
    dispatcher: AlertDispatcher,
    now: Optional[float] = None,
    workers: int = _DEFAULT_WORKERS,
) -> RunResult:
    """Collect, persist, evaluate and dispatch for every collector."""
    now = time.time() if now is None else now
    t0 = time.monotonic()
    result = RunResult()

    samples, result.failed_checks = _run_checks(collectors, now, workers)

    for cfg in collectors:
        component_samples = samples.get(cfg.component, [])
        try:
            result.samples_written += store.append_many(component_samples)
        except MetricStoreError as e:
            result.store_failed = True
            logger.warning("collector_store_failed component=%s err=%s", cfg.component, e)
            continue
        result.alerts.extend(_evaluate_component(cfg.component, store, thresholds, dispatcher, now))

    logger.info(
        "collector_run ms=%.1f components=%d samples=%d failed_checks=%d alerts=%d",
        (time.monotonic() - t0) * 1000,
        len(collectors),
        result.samples_written,
        len(result.failed_checks),
        sum(1 for a in result.alerts if a.notified),
    )
    return result
