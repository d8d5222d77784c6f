"""Shared fixtures: in-memory SQLite stores and a controllable clock."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from notes_monitor.alerts import AlertDispatcher, AlertRepository, DispatchConfig
from notes_monitor.metrics import MetricStore
from notes_monitor.schema import ensure_schema


class FakeClock:
    def __init__(self, now: float = 1_736_937_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def epoch(text: str) -> int:
    """``YYYY-mm-dd HH:MM:SS`` in UTC to epoch seconds."""
    return int(datetime.strptime(text, "%Y-%m-%d %H:%M:%S").replace(tzinfo=timezone.utc).timestamp())


def stamp(ts: float) -> str:
    return datetime.fromtimestamp(ts, timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    ensure_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine) -> MetricStore:
    return MetricStore(engine)


@pytest.fixture
def repository(engine) -> AlertRepository:
    return AlertRepository(engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier():
    mock = MagicMock()
    mock.notify = MagicMock(return_value=True)
    return mock


@pytest.fixture
def dispatcher(repository, notifier, clock) -> AlertDispatcher:
    return AlertDispatcher(
        repository,
        notifier,
        DispatchConfig(dedup_enabled=True, dedup_window_seconds=3600),
        clock=clock,
    )


@pytest.fixture
def file_engine(tmp_path):
    """SQLite on disk with a connection per thread, for concurrent writers."""
    eng = create_engine(
        f"sqlite:///{tmp_path / 'monitoring.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        pool_size=8,
        future=True,
    )
    ensure_schema(eng)
    yield eng
    eng.dispose()
