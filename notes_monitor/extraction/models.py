"""Typed records produced by the log extractor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class CycleOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class RateBasis(str, Enum):
    """How the trailing-window rate was obtained."""

    ROLLING = "rolling"
    CALENDAR_HOUR = "calendar_hour"
    NONE = "none"


@dataclass
class CycleRecord:
    """One cycle reported by the monitored process.

    Lives only for a single collection pass; the aggregate projections are
    what gets persisted.
    """

    cycle_number: int
    outcome: CycleOutcome
    duration_seconds: int = 0
    items_new: int = 0
    items_updated: int = 0
    items_total: int = 0
    secondary_new: int = 0
    secondary_total: int = 0
    extra_counts: dict[str, int] = field(default_factory=dict)
    extracted_at: Optional[int] = None

    def reconcile(self) -> None:
        """Make ``items_total`` agree with ``items_new + items_updated``."""
        known = self.items_new + self.items_updated
        if known > 0 and self.items_total != known:
            self.items_total = known

    @property
    def processing_rate(self) -> int:
        """Items per second, truncated; 0 when either side is unknown."""
        if self.items_total > 0 and self.duration_seconds > 0:
            return self.items_total // self.duration_seconds
        return 0


@dataclass
class AggregateWindow:
    """Rolling statistics over the cycles visible in the scanned tail."""

    window_start: int
    window_end: int
    count: int = 0
    success_count: int = 0
    failure_count: int = 0
    min_duration: int = 0
    max_duration: int = 0
    avg_duration: int = 0
    total_duration: int = 0
    cycles_in_window: int = 0
    rate_basis: RateBasis = RateBasis.NONE

    @property
    def success_rate(self) -> int:
        attempts = self.success_count + self.failure_count
        if attempts == 0:
            # No failure evidence is not a failure.
            return 100
        return self.success_count * 100 // attempts


@dataclass
class StageTiming:
    """Durations of one named stage seen inside the stage window."""

    stage: str
    total_seconds: int = 0
    count: int = 0
    max_seconds: int = 0

    def add(self, seconds: int) -> None:
        self.total_seconds += seconds
        self.count += 1
        self.max_seconds = max(self.max_seconds, seconds)

    @property
    def avg_seconds(self) -> int:
        return self.total_seconds // self.count if self.count else 0


@dataclass
class ExtractionResult:
    """Everything one extractor pass learned from a log tail."""

    profile_name: str
    window: AggregateWindow
    cycles: list[CycleRecord] = field(default_factory=list)
    current: Optional[CycleRecord] = None
    stages: list[StageTiming] = field(default_factory=list)

    @property
    def found_any(self) -> bool:
        return bool(self.cycles or self.stages)

    @property
    def slowest_stage(self) -> Optional[StageTiming]:
        """Stage with the longest single run; the first one seen wins ties."""
        slowest = None
        for stage in self.stages:
            if stage.max_seconds > 0 and (slowest is None or stage.max_seconds > slowest.max_seconds):
                slowest = stage
        return slowest
