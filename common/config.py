from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timezone, tzinfo
from pathlib import Path
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv


class ConfigurationError(ValueError):
    """Raised when a setting cannot be parsed into a usable value."""


def _default_env_file() -> str:
    repo_root = Path(__file__).resolve().parents[1]
    return str(repo_root / ".env")


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_timeout_seconds: int

    daemon_log_file: str
    daemon_lock_file: str
    etl_log_file: str

    log_scan_max_lines: int
    cycle_rate_window_seconds: int
    log_timezone: str

    dedup_enabled: bool
    dedup_window_minutes: int

    webhook_url: Optional[str]
    webhook_timeout_seconds: float

    @property
    def log_tzinfo(self) -> tzinfo:
        return resolve_timezone(self.log_timezone)


def _get_int(env: Mapping[str, str], key: str, default: int, minimum: int = 0) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {value}")
    return value


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value}")
    return value


def _get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    normalized = raw.strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")


def resolve_timezone(name: str) -> tzinfo:
    """Zone used to read naive log timestamps (``UTC`` or an IANA name)."""
    if name.strip().upper() in ("UTC", "Z", ""):
        return timezone.utc
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"LOG_TIMEZONE is not a known time zone: {name!r}") from e


def get_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from the environment.

    When ``env`` is None the process environment is used, after loading the
    optional ``.env`` file (real environment variables always win).
    """
    if env is None:
        env_file = os.getenv("MONITOR_ENV_FILE", _default_env_file())
        if env_file and Path(env_file).exists():
            load_dotenv(env_file, override=False)
        env = os.environ

    log_dir = env.get("LOG_DIR", "/var/log/osm-notes-ingestion")
    log_timezone = env.get("LOG_TIMEZONE", "UTC")
    resolve_timezone(log_timezone)

    return Settings(
        database_url=env.get("DATABASE_URL", "postgresql+psycopg2://postgres@localhost:5432/notes_monitoring"),
        db_timeout_seconds=_get_int(env, "DB_TIMEOUT_SECONDS", 10, minimum=1),
        daemon_log_file=env.get("DAEMON_LOG_FILE", f"{log_dir}/daemon/processAPINotesDaemon.log"),
        daemon_lock_file=env.get("DAEMON_LOCK_FILE", "/tmp/osm-notes-ingestion/locks/processAPINotesDaemon.lock"),
        etl_log_file=env.get("ETL_LOG_FILE", "/var/log/osm-notes-analytics/ETL.log"),
        log_scan_max_lines=_get_int(env, "LOG_SCAN_MAX_LINES", 5000, minimum=1),
        cycle_rate_window_seconds=_get_int(env, "CYCLE_RATE_WINDOW_SECONDS", 3600, minimum=1),
        log_timezone=log_timezone,
        dedup_enabled=_get_bool(env, "ALERT_DEDUPLICATION_ENABLED", True),
        dedup_window_minutes=_get_int(env, "ALERT_DEDUPLICATION_WINDOW_MINUTES", 60),
        webhook_url=env.get("ALERT_WEBHOOK_URL") or None,
        webhook_timeout_seconds=_get_float(env, "ALERT_WEBHOOK_TIMEOUT_SECONDS", 5.0),
    )
