"""Cycle and processing extractor.

Turns a log tail into typed ``CycleRecord``s, a rolling ``AggregateWindow``
and finally the ``MetricSample``s a collector persists.

Evidence policy:
- the last completion line is the "current" cycle (point metrics);
- every completion in the tail feeds count/min/max/avg;
- failures come from a separate failure-pattern match;
- the trailing rate compares each line's own epoch against ``now - window``.
  Only when no candidate line carries a parseable timestamp does it fall back
  to matching the previous calendar hour as text (``rate_basis`` says which).
- stage durations are averaged per stage over the profile's stage window;
  undated stage lines always count.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone, tzinfo
from typing import Optional, Sequence

from ..logs.timestamps import parse_timestamp
from ..metrics.models import MetricSample
from .models import AggregateWindow, CycleOutcome, CycleRecord, ExtractionResult, RateBasis, StageTiming
from .profiles import LogProfile, ProcessingEvidence, StageRule

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 3600


def _to_int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _cycle_number(profile: LogProfile, match, line: str) -> int:
    number = _to_int(match.groupdict().get("number"))
    if number is None and profile.number_pattern is not None:
        number_match = profile.number_pattern.search(line)
        if number_match:
            number = _to_int(number_match.group(1))
    return number or 0


def collect_evidence(profile: LogProfile, lines: Sequence[str]) -> ProcessingEvidence:
    """Apply every evidence rule, in table order, to each line."""
    evidence = ProcessingEvidence()
    for line in lines:
        for rule in profile.evidence_rules:
            for match in rule.pattern.finditer(line):
                values = [_to_int(g) for g in match.groups() if g is not None]
                if any(v is None for v in values):
                    logger.debug("evidence_skipped rule=%s line=%r", rule.name, line)
                    continue
                for field_name, value in zip(rule.fields, values):
                    evidence.record(field_name, value, rule.accumulate)
    return evidence


def _apply_evidence(record: CycleRecord, evidence: ProcessingEvidence, profile: LogProfile) -> None:
    record.items_new = evidence.new_items()
    record.items_updated = evidence.updated_items()
    record.items_total = evidence.total_items()
    record.secondary_new = evidence.secondary_new_items()
    record.secondary_total = evidence.secondary_total_items()
    record.extra_counts = {name: evidence.counters.get(name, 0) for name in profile.extra_counters}
    record.reconcile()


def _parse_records(
    profile: LogProfile,
    lines: Sequence[str],
    tz: tzinfo,
) -> list[tuple[int, CycleRecord]]:
    records: list[tuple[int, CycleRecord]] = []
    boundary = -1

    for idx, line in enumerate(lines):
        match = profile.completion_pattern.search(line)
        if match:
            duration = _to_int(match.group("duration"))
            if duration is None:
                logger.debug("cycle_line_malformed profile=%s line=%r", profile.name, line)
                continue
            record = CycleRecord(
                cycle_number=_cycle_number(profile, match, line),
                outcome=CycleOutcome.SUCCESS,
                duration_seconds=duration,
                extracted_at=parse_timestamp(line, tz),
            )
            start = max(boundary + 1, idx - profile.context_lines)
            _apply_evidence(record, collect_evidence(profile, lines[start:idx + 1]), profile)
            records.append((idx, record))
            boundary = idx
            continue

        failure = profile.failure_pattern.search(line)
        if failure:
            records.append(
                (
                    idx,
                    CycleRecord(
                        cycle_number=_cycle_number(profile, failure, line),
                        outcome=CycleOutcome.FAILURE,
                        extracted_at=parse_timestamp(line, tz),
                    ),
                )
            )
            boundary = idx

    return records


def _trailing_rate(
    profile: LogProfile,
    lines: Sequence[str],
    successes: list[tuple[int, CycleRecord]],
    now: float,
    window_seconds: int,
    tz: tzinfo,
) -> tuple[int, RateBasis]:
    if not successes:
        return 0, RateBasis.NONE

    threshold = now - window_seconds
    stamps = [rec.extracted_at for _, rec in successes if rec.extracted_at is not None]
    if stamps:
        return sum(1 for ts in stamps if ts >= threshold), RateBasis.ROLLING

    hour_text = datetime.fromtimestamp(now - 3600, tz).strftime("%Y-%m-%d %H")
    count = sum(1 for idx, _ in successes if hour_text in lines[idx])
    logger.debug(
        "cycle_rate_fallback=calendar_hour profile=%s candidates=%d hour=%s count=%d",
        profile.name,
        len(successes),
        hour_text,
        count,
    )
    return count, RateBasis.CALENDAR_HOUR


def _stage_name(rule: StageRule, raw: str) -> str:
    if rule.spaced_names:
        raw = raw.replace("_", " ")
    return " ".join(raw.split())


def _stage_seconds(match) -> Optional[int]:
    groups = match.groupdict()
    if groups.get("duration") is not None:
        try:
            return round(float(groups["duration"]))
        except ValueError:
            return None
    parts = [_to_int(groups.get(k)) for k in ("hours", "minutes", "seconds")]
    if any(p is None for p in parts):
        return None
    hours, minutes, seconds = parts
    return hours * 3600 + minutes * 60 + seconds


def collect_stage_timings(
    profile: LogProfile,
    lines: Sequence[str],
    now: float,
    tz: tzinfo = timezone.utc,
) -> list[StageTiming]:
    """Per-stage durations from lines inside the profile's stage window.

    Lines without a parseable timestamp are kept. The first rule that matches
    a line wins. Stages are returned in first-seen order.
    """
    if not profile.stage_rules:
        return []

    threshold = now - profile.stage_window_seconds
    stages: dict[str, StageTiming] = {}
    for idx, line in enumerate(lines):
        for rule in profile.stage_rules:
            match = rule.pattern.search(line)
            if not match:
                continue
            ts = parse_timestamp(line, tz)
            if ts is not None and ts < threshold:
                break

            if rule.duration_pattern is None:
                seconds = _stage_seconds(match)
            else:
                following = rule.duration_pattern.search(lines[idx + 1]) if idx + 1 < len(lines) else None
                seconds = _stage_seconds(following) if following else None

            name = _stage_name(rule, match.group("stage"))
            if seconds is None or not name:
                logger.debug("stage_line_skipped profile=%s rule=%s line=%r", profile.name, rule.name, line)
                break
            stages.setdefault(name, StageTiming(stage=name)).add(seconds)
            break

    return list(stages.values())


def extract(
    profile: LogProfile,
    lines: Sequence[str],
    now: Optional[float] = None,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
    tz: tzinfo = timezone.utc,
) -> ExtractionResult:
    """Build cycle records and the aggregate window from a log tail.

    Args:
        profile: Log format of the monitored process.
        lines: Tail lines, oldest first.
        now: Reference epoch for the trailing window (defaults to wall clock).
        window_seconds: Trailing window length.
        tz: Zone used to read naive log timestamps.

    Returns:
        ExtractionResult; all counters are zero when no cycle matched.
    """
    now = time.time() if now is None else now
    window = AggregateWindow(window_start=int(now - window_seconds), window_end=int(now))

    stages = collect_stage_timings(profile, lines, now, tz)
    indexed = _parse_records(profile, lines, tz)
    records = [rec for _, rec in indexed]
    successes = [(idx, rec) for idx, rec in indexed if rec.outcome is CycleOutcome.SUCCESS]

    if not records:
        logger.debug("cycle_lines_not_found profile=%s scanned=%d", profile.name, len(lines))
        return ExtractionResult(profile_name=profile.name, window=window, stages=stages)

    durations = [rec.duration_seconds for _, rec in successes]
    window.count = len(successes)
    window.success_count = len(successes)
    window.failure_count = len(records) - len(successes)
    if durations:
        window.total_duration = sum(durations)
        window.min_duration = min(durations)
        window.max_duration = max(durations)
        window.avg_duration = window.total_duration // len(durations)

    window.cycles_in_window, window.rate_basis = _trailing_rate(
        profile, lines, successes, now, window_seconds, tz
    )

    current = successes[-1][1] if successes else None
    return ExtractionResult(
        profile_name=profile.name, window=window, cycles=records, current=current, stages=stages
    )


def to_samples(
    profile: LogProfile,
    result: ExtractionResult,
    component: str,
    timestamp: Optional[float] = None,
) -> list[MetricSample]:
    """Project an extraction result onto the profile's metric names.

    Cycle metrics are emitted only when a cycle was found; stage metrics carry
    a ``stage`` label on top of the profile labels.
    """
    ts = time.time() if timestamp is None else timestamp
    samples: list[MetricSample] = []

    if result.cycles:
        window = result.window
        current = result.current or CycleRecord(cycle_number=0, outcome=CycleOutcome.SUCCESS)
        unit, units, noun = profile.unit, profile.unit_plural, profile.item_noun

        values = [
            (f"{unit}_number", current.cycle_number),
            (f"{unit}_duration_seconds", current.duration_seconds),
            (f"{units}_total", window.count),
            (f"{unit}_avg_duration_seconds", window.avg_duration),
            (f"{unit}_min_duration_seconds", window.min_duration),
            (f"{unit}_max_duration_seconds", window.max_duration),
            (f"{unit}_success_rate_percent", window.success_rate),
            (f"{units}_per_hour", window.cycles_in_window),
            (f"{units}_successful_count", window.success_count),
            (f"{units}_failed_count", window.failure_count),
            (f"{noun}_processed_per_{unit}", current.items_total),
            (f"{noun}_new_count", current.items_new),
            (f"{noun}_updated_count", current.items_updated),
            (f"processing_rate_{noun}_per_second", current.processing_rate),
        ]
        if profile.secondary_noun:
            values.append((f"{profile.secondary_noun}_processed_per_{unit}", current.secondary_total))
            values.append((f"{profile.secondary_noun}_new_count", current.secondary_new))
        for name in profile.extra_counters:
            values.append((name, current.extra_counts.get(name, 0)))

        samples.extend(
            MetricSample.create(component, profile.metric(suffix), value, labels=profile.labels, timestamp=ts)
            for suffix, value in values
        )

    for stage in result.stages:
        samples.append(_stage_sample(profile, component, "stage_duration_seconds", stage.stage, stage.avg_seconds, ts))
    slowest = result.slowest_stage
    if slowest is not None:
        samples.append(
            _stage_sample(profile, component, "slowest_stage_duration_seconds", slowest.stage, slowest.max_seconds, ts)
        )
    return samples


def _stage_sample(
    profile: LogProfile,
    component: str,
    suffix: str,
    stage: str,
    seconds: int,
    ts: float,
) -> MetricSample:
    return MetricSample.create(
        component,
        profile.metric(suffix),
        seconds,
        labels=profile.labels + (("stage", stage),),
        timestamp=ts,
        unit="seconds",
    )
