"""Log-derived cycle and processing metrics."""

from .extractor import collect_evidence, collect_stage_timings, extract, to_samples
from .models import AggregateWindow, CycleOutcome, CycleRecord, ExtractionResult, RateBasis, StageTiming
from .profiles import (
    DAEMON_PROFILE,
    ETL_PROFILE,
    PROFILES,
    EvidenceRule,
    LogProfile,
    ProcessingEvidence,
    StageRule,
)

__all__ = [
    "AggregateWindow",
    "CycleOutcome",
    "CycleRecord",
    "DAEMON_PROFILE",
    "ETL_PROFILE",
    "EvidenceRule",
    "ExtractionResult",
    "LogProfile",
    "PROFILES",
    "ProcessingEvidence",
    "RateBasis",
    "StageRule",
    "StageTiming",
    "collect_evidence",
    "collect_stage_timings",
    "extract",
    "to_samples",
]
