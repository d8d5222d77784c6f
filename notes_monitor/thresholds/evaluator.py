"""Stateless threshold evaluation."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Optional, Union

from .models import Comparison, Severity, ThresholdConfig

Number = Union[int, float, Decimal]


def _is_nan(value: Number) -> bool:
    if isinstance(value, Decimal):
        return value.is_nan()
    if isinstance(value, float):
        return math.isnan(value)
    return False


def _breaches(value: Number, bound: Optional[Decimal], comparison: Comparison) -> bool:
    if bound is None:
        return False
    if comparison is Comparison.GREATER_THAN:
        return value > bound
    return value < bound


def evaluate(config: ThresholdConfig, value: Number) -> Optional[Severity]:
    """Return CRITICAL, WARNING or None for ``value``.

    Bounds are strict (a value equal to the bound does not breach). CRITICAL
    is checked first, so a value past both bounds is reported once. NaN never
    breaches.
    """
    if value is None or _is_nan(value):
        return None
    if _breaches(value, config.critical_bound, config.comparison):
        return Severity.CRITICAL
    if _breaches(value, config.warning_bound, config.comparison):
        return Severity.WARNING
    return None
