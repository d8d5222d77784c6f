"""Log format profiles.

A profile describes one monitored process: how a finished cycle looks, how a
failed one looks, and an ordered table of (pattern, field) rules that pull
item counters out of the lines belonging to a cycle, plus optional stage
timing rules. Supporting a new log variant means appending a rule, not
editing the extractor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class EvidenceRule:
    """Maps the numeric groups of ``pattern`` onto ``ProcessingEvidence`` fields.

    Only the groups that actually matched are used, in order, so a pattern
    with alternatives can capture its number in either branch.
    """

    name: str
    pattern: re.Pattern
    fields: tuple[str, ...]
    accumulate: bool = False


@dataclass(frozen=True)
class StageRule:
    """Pulls a named stage and its duration out of the log.

    ``pattern`` captures ``stage`` and, for single-line forms, ``duration`` in
    seconds. When ``duration_pattern`` is set the duration is read from the
    line right after the match instead, as ``hours``/``minutes``/``seconds``.
    """

    name: str
    pattern: re.Pattern
    duration_pattern: Optional[re.Pattern] = None
    # FINISHED __UPLOAD_NOTES IN  ->  "UPLOAD NOTES"
    spaced_names: bool = False


@dataclass
class ProcessingEvidence:
    """Raw counters seen in one cycle's lines, before precedence is applied."""

    uploaded_new: Optional[int] = None
    summary_new: Optional[int] = None
    summary_updated: Optional[int] = None
    summary_total: Optional[int] = None
    snapshot_before: Optional[int] = None
    snapshot_after: Optional[int] = None

    secondary_uploaded_new: Optional[int] = None
    secondary_total: Optional[int] = None
    secondary_before: Optional[int] = None
    secondary_after: Optional[int] = None

    # Profile-specific counters with no precedence rules, e.g. dimensions_updated.
    counters: dict[str, int] = field(default_factory=dict)

    def record(self, field_name: str, value: int, accumulate: bool) -> None:
        if field_name == "counters" or field_name not in self.__dataclass_fields__:
            current = self.counters.get(field_name)
            self.counters[field_name] = current + value if accumulate and current is not None else value
            return
        current = getattr(self, field_name)
        if accumulate and current is not None:
            value = current + value
        setattr(self, field_name, value)

    @staticmethod
    def _snapshot_delta(before: Optional[int], after: Optional[int]) -> Optional[int]:
        if before is None or after is None:
            return None
        return max(after - before, 0)

    def new_items(self) -> int:
        # Explicit upload counters beat summaries, summaries beat snapshots.
        for candidate in (
            self.uploaded_new,
            self.summary_new,
            self._snapshot_delta(self.snapshot_before, self.snapshot_after),
        ):
            if candidate is not None:
                return candidate
        return 0

    def updated_items(self) -> int:
        return self.summary_updated or 0

    def total_items(self) -> int:
        return self.summary_total or 0

    def secondary_new_items(self) -> int:
        for candidate in (
            self.secondary_uploaded_new,
            self._snapshot_delta(self.secondary_before, self.secondary_after),
        ):
            if candidate is not None:
                return candidate
        return 0

    def secondary_total_items(self) -> int:
        if self.secondary_total is not None:
            return self.secondary_total
        return self.secondary_new_items()


@dataclass(frozen=True)
class LogProfile:
    name: str
    metric_prefix: str
    unit: str
    unit_plural: str
    item_noun: str
    completion_pattern: re.Pattern
    failure_pattern: re.Pattern
    evidence_rules: tuple[EvidenceRule, ...] = ()
    number_pattern: Optional[re.Pattern] = None
    secondary_noun: Optional[str] = None
    context_lines: int = 50
    labels: tuple[tuple[str, str], ...] = field(default_factory=tuple)
    extra_counters: tuple[str, ...] = ()
    stage_rules: tuple[StageRule, ...] = ()
    stage_window_seconds: int = 86400
    # suffix -> full metric name, for names that do not follow <prefix>_<suffix>.
    metric_names: tuple[tuple[str, str], ...] = ()

    def metric(self, suffix: str) -> str:
        for key, name in self.metric_names:
            if key == suffix:
                return name
        return f"{self.metric_prefix}_{suffix}"


def _rule(name: str, pattern: str, *fields: str, accumulate: bool = False) -> EvidenceRule:
    return EvidenceRule(name=name, pattern=re.compile(pattern), fields=fields, accumulate=accumulate)


DAEMON_PROFILE = LogProfile(
    name="daemon",
    metric_prefix="daemon",
    unit="cycle",
    unit_plural="cycles",
    item_noun="notes",
    secondary_noun="comments",
    completion_pattern=re.compile(
        r"Cycle\s+(?P<number>\d+)\s+completed\s+successfully\s+in\s+(?P<duration>\d+)\s+seconds"
    ),
    failure_pattern=re.compile(r"Cycle\s+(?P<number>\d+)\s+(?:failed|error)"),
    context_lines=50,
    labels=(("component", "ingestion"),),
    stage_rules=(
        StageRule(
            "timing",
            re.compile(
                r"\[TIMING\].*?Stage:\s+(?P<stage>[^-]+?)\s+-\s+Duration:\s+(?P<duration>\d+(?:\.\d+)?)\s+seconds"
            ),
        ),
        StageRule(
            "finished_took",
            re.compile(r"FINISHED\s+(?P<stage>__?[A-Z_]+)\s+IN\b"),
            duration_pattern=re.compile(r"Took:\s+(?P<hours>\d+)h:(?P<minutes>\d+)m:(?P<seconds>\d+)s"),
            spaced_names=True,
        ),
    ),
    metric_names=(
        ("stage_duration_seconds", "log_stage_duration_seconds"),
        ("slowest_stage_duration_seconds", "log_slowest_stage_duration_seconds"),
    ),
    evidence_rules=(
        _rule("uploaded_new_notes", r"(\d+)\s*\|\s*Uploaded new notes", "uploaded_new", accumulate=True),
        _rule(
            "uploaded_new_comments",
            r"(\d+)\s*\|\s*Uploaded new comments",
            "secondary_uploaded_new",
            accumulate=True,
        ),
        _rule(
            "notes_breakdown",
            r"\(\s*(\d+)\s+new,\s*(\d+)\s+updated\s*\)",
            "summary_new",
            "summary_updated",
        ),
        _rule("notes_processed", r"Processed\s+(\d+)\s+notes|(\d+)\s+notes\s+processed", "summary_total"),
        _rule("notes_new", r"(\d+)\s+new\s+notes", "summary_new"),
        _rule("notes_updated", r"(\d+)\s+updated\s+notes", "summary_updated"),
        _rule(
            "comments_processed",
            r"Processed\s+(\d+)\s+comments|(\d+)\s+comments\s+processed",
            "secondary_total",
        ),
        _rule(
            "notes_before",
            r"(\d+)\s*\|\s*current notes\s*-\s*before|current notes\s*-\s*before\D*(\d+)",
            "snapshot_before",
        ),
        _rule(
            "notes_after",
            r"(\d+)\s*\|\s*current notes\s*-\s*after|current notes\s*-\s*after\D*(\d+)",
            "snapshot_after",
        ),
        _rule(
            "comments_before",
            r"(\d+)\s*\|\s*current comments\s*-\s*before|current comments\s*-\s*before\D*(\d+)",
            "secondary_before",
        ),
        _rule(
            "comments_after",
            r"(\d+)\s*\|\s*current comments\s*-\s*after|current comments\s*-\s*after\D*(\d+)",
            "secondary_after",
        ),
    ),
)


ETL_PROFILE = LogProfile(
    name="etl",
    metric_prefix="etl",
    unit="execution",
    unit_plural="executions",
    item_noun="facts",
    completion_pattern=re.compile(
        r"ETL.*?(?:completed|finished)\s+successfully\s+in\s+(?P<duration>\d+)\s+seconds"
    ),
    number_pattern=re.compile(r"[Ee]xecution\s+(\d+)"),
    failure_pattern=re.compile(r"ETL.*(?:failed|error|FATAL)"),
    context_lines=200,
    labels=(("component", "analytics"),),
    extra_counters=("dimensions_updated",),
    evidence_rules=(
        _rule(
            "facts_processed",
            r"(\d+)\s+facts\s+processed|Processed\s+(\d+)\s+facts|Updated\s+(\d+)\s+facts|Loaded\s+(\d+)\s+facts",
            "summary_total",
        ),
        _rule("facts_new", r"(\d+)\s+new\s+facts|Inserted\s+(\d+)\s+facts", "summary_new"),
        _rule(
            "facts_updated",
            r"(\d+)\s+updated\s+facts|Updated\s+(\d+)\s+existing\s+facts",
            "summary_updated",
        ),
        _rule(
            "dimensions_updated",
            r"(\d+)\s+dimensions\s+updated|Updated\s+(\d+)\s+dimensions",
            "dimensions_updated",
        ),
    ),
    stage_rules=(
        StageRule(
            "stage_duration",
            re.compile(r"Stage:\s+(?P<stage>[^-]+?)\s+-\s+Duration:\s+(?P<duration>\d+(?:\.\d+)?)\s+seconds"),
        ),
        StageRule(
            "stage_seconds",
            re.compile(r"Stage:\s+(?P<stage>[^-]+?)\s+-\s+(?P<duration>\d+(?:\.\d+)?)\s+seconds"),
        ),
        StageRule("took", re.compile(r"(?P<stage>[A-Za-z_]+)\s+took\s+(?P<duration>\d+(?:\.\d+)?)\s+seconds")),
    ),
    metric_names=(
        ("execution_success_rate_percent", "etl_execution_success_rate"),
        ("facts_processed_per_execution", "etl_facts_processed_total"),
        ("facts_new_count", "etl_facts_new_total"),
        ("facts_updated_count", "etl_facts_updated_total"),
        ("dimensions_updated", "etl_dimensions_updated_total"),
    ),
)


PROFILES: dict[str, LogProfile] = {p.name: p for p in (DAEMON_PROFILE, ETL_PROFILE)}
