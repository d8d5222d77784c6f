from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, get_settings


logger = logging.getLogger(__name__)


def _connect_args(url: str, timeout_seconds: int) -> dict:
    # Timeouts are enforced by the driver; SQLite gets a busy timeout only.
    backend = make_url(url).get_backend_name()
    if backend == "postgresql":
        return {
            "connect_timeout": timeout_seconds,
            "options": f"-c statement_timeout={timeout_seconds * 1000}",
        }
    if backend == "sqlite":
        return {"timeout": timeout_seconds}
    return {}


def get_engine(settings: Optional[Settings] = None) -> Engine:
    settings = settings or get_settings()
    url = make_url(settings.database_url)

    logger.info(
        "[DB] create engine backend=%s host=%s db=%s user=%s timeout=%ss",
        url.get_backend_name(),
        url.host,
        url.database,
        url.username,
        settings.db_timeout_seconds,
    )

    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        future=True,
        connect_args=_connect_args(settings.database_url, settings.db_timeout_seconds),
    )


def check_connection(engine: Engine) -> bool:
    """Return True when the database answers ``SELECT 1``."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.debug("[DB] connection test OK")
        return True
    except SQLAlchemyError:
        logger.exception("[DB] connection test FAILED")
        return False
