"""Append-only metric store on SQLite."""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from notes_monitor.metrics import MetricSample, MetricStore, MetricStoreError


def _sample(name, value, ts, component="ingestion", labels="component=ingestion"):
    return MetricSample.create(component, name, value, labels=labels, timestamp=ts)


@pytest.fixture
def broken_engine():
    engine = MagicMock()
    err = OperationalError("SELECT 1", {}, Exception("connection refused"))
    engine.begin.side_effect = err
    engine.connect.side_effect = err
    return engine


class TestAppendAndLatest:
    def test_latest_is_newest_by_timestamp(self, store):
        store.append_many([
            _sample("daemon_cycle_number", 41, 1000.0),
            _sample("daemon_cycle_number", 43, 3000.0),
            _sample("daemon_cycle_number", 42, 2000.0),
        ])
        assert store.latest("ingestion", "daemon_cycle_number") == Decimal(43)

    def test_same_timestamp_resolved_by_insert_order(self, store):
        store.append(_sample("daemon_cycle_number", 1, 1000.0))
        store.append(_sample("daemon_cycle_number", 2, 1000.0))
        assert store.latest("ingestion", "daemon_cycle_number") == Decimal(2)

    def test_all_samples_are_kept(self, store):
        for i in range(5):
            store.append(_sample("daemon_cycles_total", i, 1000.0 + i))
        assert len(store.windowed("ingestion", "daemon_cycles_total", 0)) == 5

    def test_decimal_precision_survives(self, store):
        store.append(_sample("daemon_cycle_success_rate_percent", Decimal("99.125"), 1000.0))
        assert store.latest("ingestion", "daemon_cycle_success_rate_percent") == Decimal("99.125")

    def test_unknown_metric(self, store):
        assert store.latest("ingestion", "nope") is None

    def test_empty_batch_is_noop(self, store):
        assert store.append_many([]) == 0

    def test_rejects_non_finite_values(self):
        with pytest.raises(ValueError):
            MetricSample.create("ingestion", "x", float("nan"))


class TestWindowed:
    def test_since_is_inclusive_and_ordered(self, store):
        store.append_many([
            _sample("daemon_cycle_duration_seconds", 30, 3000.0),
            _sample("daemon_cycle_duration_seconds", 10, 1000.0),
            _sample("daemon_cycle_duration_seconds", 20, 2000.0),
        ])
        samples = store.windowed("ingestion", "daemon_cycle_duration_seconds", 2000.0)

        assert [s.value for s in samples] == [Decimal(20), Decimal(30)]
        assert samples[0].labels == (("component", "ingestion"),)
        assert samples[0].timestamp == 2000.0

    def test_other_components_excluded(self, store):
        store.append(_sample("etl_executions_total", 1, 1000.0, component="analytics"))
        assert store.windowed("ingestion", "etl_executions_total", 0) == []


class TestSummaryAndAggregate:
    def test_summary_per_metric(self, store):
        store.append_many([
            _sample("a", 10, 1000.0),
            _sample("a", 20, 1100.0),
            _sample("b", 5, 1200.0),
            _sample("a", 999, 10.0),
        ])
        summary = {s.metric_name: s for s in store.summary("ingestion", since=500.0)}

        assert summary["a"].sample_count == 2
        assert summary["a"].avg_value == Decimal(15)
        assert summary["a"].min_value == Decimal(10)
        assert summary["a"].max_value == Decimal(20)
        assert summary["b"].sample_count == 1

    def test_hourly_buckets_newest_first(self, store):
        store.append_many([
            _sample("a", 2, 3600.0),
            _sample("a", 4, 7199.0),
            _sample("a", 10, 7200.0),
        ])
        buckets = store.aggregate("ingestion", "a", "hour")

        assert [b.period_start for b in buckets] == [7200, 3600]
        assert buckets[1].avg_value == Decimal(3)
        assert buckets[1].sample_count == 2

    def test_invalid_period(self, store):
        with pytest.raises(ValueError):
            store.aggregate("ingestion", "a", "fortnight")


class TestConcurrentWriters:
    def test_parallel_batches_all_land(self, file_engine):
        store = MetricStore(file_engine)

        def write_batch(worker):
            return store.append_many(
                [_sample("daemon_cycles_total", i, 1000.0 + worker * 100 + i) for i in range(50)]
            )

        with ThreadPoolExecutor(max_workers=8) as pool:
            written = list(pool.map(write_batch, range(8)))

        assert written == [50] * 8
        assert len(store.windowed("ingestion", "daemon_cycles_total", 0)) == 400
        assert store.summary("ingestion", 0)[0].sample_count == 400


class TestStoreUnavailable:
    def test_write_failure_raises(self, broken_engine):
        with pytest.raises(MetricStoreError):
            MetricStore(broken_engine).append(_sample("a", 1, 1.0))

    def test_read_failure_degrades_to_no_data(self, broken_engine):
        store = MetricStore(broken_engine)
        assert store.latest("ingestion", "a") is None
        assert store.windowed("ingestion", "a", 0) == []
        assert store.summary("ingestion", 0) == []
