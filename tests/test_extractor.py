"""Cycle/processing extractor: evidence precedence, reconciliation and the trailing rate."""

import logging

import pytest

from conftest import epoch, stamp
from notes_monitor.extraction import (
    DAEMON_PROFILE,
    ETL_PROFILE,
    CycleOutcome,
    RateBasis,
    collect_evidence,
    extract,
    to_samples,
)

NOW = epoch("2025-01-15 10:30:00")


def _values(samples):
    return {s.metric_name: s.value for s in samples}


# =============================================================================
# END TO END
# =============================================================================

class TestDaemonCycle:
    def test_completed_cycle_with_uploaded_notes(self):
        lines = [
            "2025-01-15 10:00:00 - INFO - Starting cycle 42",
            "  5 | Uploaded new notes",
            "2025-01-15 10:00:30 - INFO - Cycle 42 completed successfully in 30 seconds",
        ]
        result = extract(DAEMON_PROFILE, lines, now=NOW)
        values = _values(to_samples(DAEMON_PROFILE, result, "ingestion", timestamp=NOW))

        assert values["daemon_cycle_number"] == 42
        assert values["daemon_cycle_duration_seconds"] == 30
        assert values["daemon_notes_new_count"] == 5
        assert values["daemon_notes_processed_per_cycle"] == 5
        assert values["daemon_processing_rate_notes_per_second"] == 0

    def test_samples_carry_component_labels_and_timestamp(self):
        lines = ["2025-01-15 10:00:30 - INFO - Cycle 1 completed successfully in 3 seconds"]
        samples = to_samples(DAEMON_PROFILE, extract(DAEMON_PROFILE, lines, now=NOW), "ingestion", timestamp=NOW)

        assert samples
        assert all(s.component == "ingestion" for s in samples)
        assert all(s.labels == (("component", "ingestion"),) for s in samples)
        assert all(s.timestamp == NOW for s in samples)

    def test_no_lines_means_nothing_found(self):
        result = extract(DAEMON_PROFILE, [], now=NOW)

        assert result.found_any is False
        assert result.current is None
        assert result.window.count == 0
        assert result.window.success_rate == 100
        assert result.window.rate_basis is RateBasis.NONE

    def test_is_idempotent(self):
        lines = [
            "2025-01-15 10:00:00 - INFO - Processed 12 notes (7 new, 5 updated)",
            "2025-01-15 10:00:40 - INFO - Cycle 9 completed successfully in 40 seconds",
            "2025-01-15 10:10:00 - ERROR - Cycle 10 failed: connection reset",
        ]
        first = to_samples(DAEMON_PROFILE, extract(DAEMON_PROFILE, lines, now=NOW), "ingestion", timestamp=NOW)
        second = to_samples(DAEMON_PROFILE, extract(DAEMON_PROFILE, lines, now=NOW), "ingestion", timestamp=NOW)
        assert first == second


# =============================================================================
# EVIDENCE PRECEDENCE & RECONCILIATION
# =============================================================================

class TestEvidence:
    def test_uploaded_lines_accumulate(self):
        evidence = collect_evidence(DAEMON_PROFILE, ["3 | Uploaded new notes", "2 | Uploaded new notes"])
        assert evidence.new_items() == 5

    def test_uploaded_beats_snapshot(self):
        lines = [
            "current notes - before: 100",
            "  4 | Uploaded new notes",
            "current notes - after: 110",
        ]
        assert collect_evidence(DAEMON_PROFILE, lines).new_items() == 4

    def test_snapshot_delta_is_the_fallback(self):
        lines = ["current notes - before: 100", "current notes - after: 110"]
        assert collect_evidence(DAEMON_PROFILE, lines).new_items() == 10

    def test_negative_snapshot_delta_is_clamped(self):
        lines = ["current notes - before: 110", "current notes - after: 100"]
        assert collect_evidence(DAEMON_PROFILE, lines).new_items() == 0

    def test_comments_are_tracked_separately(self):
        lines = [
            "6 | Uploaded new comments",
            "2025-01-15 10:00:30 - INFO - Cycle 3 completed successfully in 10 seconds",
        ]
        current = extract(DAEMON_PROFILE, lines, now=NOW).current
        assert current.secondary_new == 6
        assert current.secondary_total == 6
        assert current.items_new == 0


class TestReconciliation:
    def test_total_recomputed_from_new_and_updated(self):
        lines = [
            "Processed 10 notes (3 new, 4 updated)",
            "2025-01-15 10:00:30 - INFO - Cycle 5 completed successfully in 7 seconds",
        ]
        current = extract(DAEMON_PROFILE, lines, now=NOW).current

        assert current.items_new == 3
        assert current.items_updated == 4
        assert current.items_total == 7
        assert current.processing_rate == 1

    def test_total_filled_from_new_when_missing(self):
        lines = [
            "  8 | Uploaded new notes",
            "2025-01-15 10:00:30 - INFO - Cycle 5 completed successfully in 4 seconds",
        ]
        current = extract(DAEMON_PROFILE, lines, now=NOW).current
        assert current.items_total == 8
        assert current.processing_rate == 2

    def test_total_kept_without_breakdown(self):
        lines = [
            "Processed 10 notes",
            "2025-01-15 10:00:30 - INFO - Cycle 5 completed successfully in 0 seconds",
        ]
        current = extract(DAEMON_PROFILE, lines, now=NOW).current
        assert current.items_total == 10
        # Zero duration yields rate 0, not an error.
        assert current.processing_rate == 0


# =============================================================================
# CYCLE BOUNDARIES & AGGREGATES
# =============================================================================

class TestCycleWindow:
    def test_evidence_does_not_leak_into_next_cycle(self):
        lines = [
            "  3 | Uploaded new notes",
            "2025-01-15 10:00:10 - INFO - Cycle 1 completed successfully in 10 seconds",
            "2025-01-15 10:01:30 - INFO - Cycle 2 completed successfully in 20 seconds",
        ]
        result = extract(DAEMON_PROFILE, lines, now=NOW)

        first, second = result.cycles
        assert first.items_new == 3
        assert second.items_new == 0
        assert result.current is second

    def test_aggregates_and_failures(self):
        lines = [
            "2025-01-15 10:00:10 - INFO - Cycle 1 completed successfully in 10 seconds",
            "2025-01-15 10:01:30 - INFO - Cycle 2 completed successfully in 21 seconds",
            "2025-01-15 10:02:00 - ERROR - Cycle 3 failed: timeout",
        ]
        result = extract(DAEMON_PROFILE, lines, now=NOW)
        window = result.window

        assert window.count == 2
        assert window.success_count == 2
        assert window.failure_count == 1
        assert (window.min_duration, window.max_duration, window.avg_duration) == (10, 21, 15)
        assert window.success_rate == 66
        assert result.cycles[-1].outcome is CycleOutcome.FAILURE
        assert result.current.cycle_number == 2

    def test_failure_only_log(self):
        result = extract(DAEMON_PROFILE, ["2025-01-15 10:02:00 - ERROR - Cycle 3 error"], now=NOW)

        assert result.found_any is True
        assert result.current is None
        assert result.window.success_rate == 0


# =============================================================================
# TRAILING RATE
# =============================================================================

def _cycle_lines(now, offsets):
    return [
        f"{stamp(now - offset)} - INFO - Cycle {i} completed successfully in 5 seconds"
        for i, offset in enumerate(offsets, start=1)
    ]


class TestTrailingRate:
    @pytest.mark.parametrize("now_text", ["2025-01-15 00:05:00", "2025-01-15 13:05:00", "2025-01-01 00:00:30"])
    def test_invariant_to_hour_boundaries(self, now_text):
        now = epoch(now_text)
        lines = _cycle_lines(now, [7200, 3000, 1800, 600])
        window = extract(DAEMON_PROFILE, lines, now=now).window

        assert window.cycles_in_window == 3
        assert window.rate_basis is RateBasis.ROLLING

    def test_window_edge_is_inclusive(self):
        lines = _cycle_lines(NOW, [3600, 3601])
        assert extract(DAEMON_PROFILE, lines, now=NOW, window_seconds=3600).window.cycles_in_window == 1

    def test_calendar_hour_fallback_is_observable(self, caplog):
        lines = [
            "[2025-01-15 09h] Cycle 7 completed successfully in 5 seconds",
            "[2025-01-15 10h] Cycle 8 completed successfully in 5 seconds",
        ]
        with caplog.at_level(logging.DEBUG, logger="notes_monitor.extraction.extractor"):
            window = extract(DAEMON_PROFILE, lines, now=NOW).window

        assert window.rate_basis is RateBasis.CALENDAR_HOUR
        assert window.cycles_in_window == 1
        assert "cycle_rate_fallback=calendar_hour" in caplog.text


# =============================================================================
# ETL PROFILE
# =============================================================================

class TestEtlProfile:
    def test_execution_number_and_facts(self):
        lines = [
            "2025-01-15 10:00:00 INFO ETL execution 7 started",
            "2025-01-15 10:03:00 INFO Processed 120 facts",
            "2025-01-15 10:05:00 INFO ETL execution 7 completed successfully in 300 seconds",
        ]
        values = _values(to_samples(ETL_PROFILE, extract(ETL_PROFILE, lines, now=NOW), "analytics", timestamp=NOW))

        assert values["etl_execution_number"] == 7
        assert values["etl_execution_duration_seconds"] == 300
        assert values["etl_facts_processed_total"] == 120
        assert values["etl_executions_total"] == 1
        assert values["etl_execution_success_rate"] == 100
        assert "etl_comments_new_count" not in values
        assert "etl_facts_processed_per_execution" not in values

    def test_fact_breakdown_and_dimensions(self):
        lines = [
            "2025-01-15 10:00:00 INFO ETL execution 9 started",
            "2025-01-15 10:01:00 INFO Inserted 30 facts",
            "2025-01-15 10:02:00 INFO Updated 12 existing facts",
            "2025-01-15 10:02:30 INFO Updated 4 dimensions",
            "2025-01-15 10:03:00 INFO 2 dimensions updated",
            "2025-01-15 10:05:00 INFO ETL execution 9 completed successfully in 60 seconds",
        ]
        values = _values(to_samples(ETL_PROFILE, extract(ETL_PROFILE, lines, now=NOW), "analytics", timestamp=NOW))

        assert values["etl_facts_new_total"] == 30
        assert values["etl_facts_updated_total"] == 12
        assert values["etl_facts_processed_total"] == 42
        assert values["etl_dimensions_updated_total"] == 2

    def test_updated_facts_count_as_processed(self):
        evidence = collect_evidence(ETL_PROFILE, ["Updated 75 facts"])
        assert evidence.total_items() == 75
        assert evidence.updated_items() == 0

    def test_etl_failure(self):
        lines = ["2025-01-15 10:05:00 ERROR ETL execution 8 failed: FATAL disk full"]
        window = extract(ETL_PROFILE, lines, now=NOW).window
        assert window.failure_count == 1


# =============================================================================
# STAGE TIMING
# =============================================================================

def _stage_values(samples, metric_name):
    return {dict(s.labels)["stage"]: s.value for s in samples if s.metric_name == metric_name}


class TestStageTiming:
    DAEMON_STAGES = [
        "2025-01-14 08:00:00 - INFO - [TIMING] Stage: Backfill - Duration: 999 seconds",
        "2025-01-15 10:00:00 - INFO - [TIMING] Stage: Upload notes - Duration: 12.6 seconds",
        "2025-01-15 10:10:00 - INFO - [TIMING] Stage: Upload notes - Duration: 7 seconds",
        "2025-01-15 10:20:00 - INFO - FINISHED __SYNC_COMMENTS IN 0.5s",
        "Took: 0h:1m:5s",
        "[TIMING] Stage: Cleanup - Duration: 3 seconds",
    ]

    def test_daemon_stage_averages_and_slowest(self):
        result = extract(DAEMON_PROFILE, self.DAEMON_STAGES, now=NOW)
        samples = to_samples(DAEMON_PROFILE, result, "ingestion", timestamp=NOW)

        assert result.cycles == []
        assert result.found_any is True
        assert _stage_values(samples, "log_stage_duration_seconds") == {
            "Upload notes": 10,
            "SYNC COMMENTS": 65,
            "Cleanup": 3,
        }
        assert _stage_values(samples, "log_slowest_stage_duration_seconds") == {"SYNC COMMENTS": 65}
        assert "daemon_cycle_number" not in _values(samples)

    def test_stage_labels_extend_profile_labels(self):
        samples = to_samples(DAEMON_PROFILE, extract(DAEMON_PROFILE, self.DAEMON_STAGES, now=NOW), "ingestion",
                             timestamp=NOW)
        stage_sample = next(s for s in samples if s.metric_name == "log_slowest_stage_duration_seconds")
        assert stage_sample.labels == (("component", "ingestion"), ("stage", "SYNC COMMENTS"))
        assert stage_sample.unit == "seconds"

    def test_finished_without_took_line_is_skipped(self):
        lines = [
            "2025-01-15 10:20:00 - INFO - FINISHED __SYNC_COMMENTS IN 0.5s",
            "2025-01-15 10:20:01 - INFO - something else",
        ]
        assert extract(DAEMON_PROFILE, lines, now=NOW).stages == []

    def test_etl_stage_forms(self):
        lines = [
            "2025-01-15 10:00:00 INFO [TIMING] Stage: Extract - Duration: 40 seconds",
            "2025-01-15 10:01:00 INFO Stage: Load - 20 seconds",
            "2025-01-15 10:02:00 INFO transform_facts took 5.4 seconds",
            "2025-01-15 10:05:00 INFO ETL execution 7 completed successfully in 300 seconds",
        ]
        samples = to_samples(ETL_PROFILE, extract(ETL_PROFILE, lines, now=NOW), "analytics", timestamp=NOW)

        assert _stage_values(samples, "etl_stage_duration_seconds") == {
            "Extract": 40,
            "Load": 20,
            "transform_facts": 5,
        }
        assert _stage_values(samples, "etl_slowest_stage_duration_seconds") == {"Extract": 40}
        assert _values(samples)["etl_execution_number"] == 7

    def test_zero_durations_have_no_slowest_stage(self):
        lines = ["2025-01-15 10:00:00 INFO Stage: Extract - Duration: 0 seconds"]
        samples = to_samples(ETL_PROFILE, extract(ETL_PROFILE, lines, now=NOW), "analytics", timestamp=NOW)

        assert _stage_values(samples, "etl_stage_duration_seconds") == {"Extract": 0}
        assert _stage_values(samples, "etl_slowest_stage_duration_seconds") == {}
