"""Threshold bands and the severities they produce."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class Severity(str, Enum):
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"

    @classmethod
    def parse(cls, raw: str) -> "Severity":
        try:
            return cls(str(raw).strip().upper())
        except ValueError as e:
            raise ValueError(f"unknown severity: {raw!r}") from e


class Comparison(str, Enum):
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"

    @classmethod
    def parse(cls, raw: str) -> "Comparison":
        normalized = str(raw).strip().lower()
        aliases = {
            "gt": cls.GREATER_THAN,
            ">": cls.GREATER_THAN,
            "greater_than": cls.GREATER_THAN,
            "lt": cls.LESS_THAN,
            "<": cls.LESS_THAN,
            "less_than": cls.LESS_THAN,
        }
        if normalized not in aliases:
            raise ValueError(f"unknown comparison: {raw!r}")
        return aliases[normalized]


@dataclass(frozen=True)
class ThresholdConfig:
    """WARNING/CRITICAL band for one (component, metric_name) pair.

    Either bound may be left unset; an unset bound never fires.
    """

    component: str
    metric_name: str
    warning_bound: Optional[Decimal] = None
    critical_bound: Optional[Decimal] = None
    comparison: Comparison = Comparison.GREATER_THAN
    unit: Optional[str] = None

    @property
    def alert_type(self) -> str:
        return f"{self.metric_name}_threshold"

    def describe(self, severity: Severity, value) -> str:
        bound = self.critical_bound if severity is Severity.CRITICAL else self.warning_bound
        op = ">" if self.comparison is Comparison.GREATER_THAN else "<"
        unit = f" {self.unit}" if self.unit else ""
        return f"{self.metric_name}={value}{unit} {op} {severity.value.lower()} threshold {bound}{unit}"
