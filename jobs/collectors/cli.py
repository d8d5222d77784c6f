"""CLI entry point for the log collectors."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from common.config import ConfigurationError, get_settings
from common.db import check_connection, get_engine
from notes_monitor.alerts import AlertDispatcher, AlertRepository, DispatchConfig, build_notifier
from notes_monitor.metrics import MetricStore
from notes_monitor.schema import ensure_schema
from notes_monitor.thresholds import EnvThresholdProvider

from .config import collectors_from_settings
from .runner import run_once

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STORE_UNAVAILABLE = 1
EXIT_CONFIG_INVALID = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Log-derived metrics collector (one pass per invocation)")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    p.add_argument(
        "--component",
        action="append",
        choices=("ingestion", "analytics"),
        help="only collect for this component (repeatable)",
    )
    return p


def run(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    try:
        settings = get_settings()
        thresholds = EnvThresholdProvider()
        collectors = collectors_from_settings(settings)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_CONFIG_INVALID

    if args.component:
        collectors = [c for c in collectors if c.component in args.component]

    try:
        engine = get_engine(settings)
    except (ArgumentError, ImportError) as e:
        # Unparseable DATABASE_URL, unknown dialect or missing driver.
        logger.error("Invalid database configuration: %s", e)
        return EXIT_CONFIG_INVALID

    if not check_connection(engine):
        return EXIT_STORE_UNAVAILABLE
    try:
        ensure_schema(engine)
    except SQLAlchemyError as e:
        logger.error("Metric store schema unavailable: %s", e)
        return EXIT_STORE_UNAVAILABLE

    dispatcher = AlertDispatcher(
        AlertRepository(engine),
        build_notifier(settings.webhook_url, settings.webhook_timeout_seconds),
        DispatchConfig.from_settings(settings),
    )

    logger.info(
        "Collector started components=%s dedup=%s window=%dmin",
        ",".join(c.component for c in collectors),
        settings.dedup_enabled,
        settings.dedup_window_minutes,
    )
    result = run_once(collectors, MetricStore(engine), thresholds, dispatcher)
    engine.dispose()
    return result.exit_code


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
