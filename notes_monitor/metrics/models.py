"""Metric sample model and label helpers."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Iterable, Mapping, Optional, Union

NumberLike = Union[int, float, Decimal, str]

Labels = tuple[tuple[str, str], ...]


def to_decimal(value: NumberLike) -> Decimal:
    """Convert a collected value to Decimal without going through float text."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        result = Decimal(int(value))
    elif isinstance(value, int):
        result = Decimal(value)
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"not a numeric metric value: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"metric value must be finite: {value!r}")
    return result


def normalize_labels(labels: Union[None, str, Mapping[str, object], Iterable[tuple[str, object]]]) -> Labels:
    """Accept a ``k=v,k=v`` string, a mapping or pairs; keep the given order."""
    if not labels:
        return ()
    if isinstance(labels, str):
        return parse_labels(labels)
    items = labels.items() if isinstance(labels, Mapping) else labels
    return tuple((str(k), str(v)) for k, v in items)


def format_labels(labels: Labels) -> str:
    return ",".join(f"{k}={v}" for k, v in labels)


def parse_labels(raw: Optional[str]) -> Labels:
    if not raw:
        return ()
    pairs = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        pairs.append((key.strip(), value.strip() if sep else ""))
    return tuple(pairs)


@dataclass(frozen=True)
class MetricSample:
    """One named, labeled observation written by a collector."""

    component: str
    metric_name: str
    value: Decimal
    timestamp: float = field(default_factory=time.time)
    labels: Labels = ()
    unit: Optional[str] = None

    @classmethod
    def create(
        cls,
        component: str,
        metric_name: str,
        value: NumberLike,
        labels=None,
        timestamp: Optional[float] = None,
        unit: Optional[str] = None,
    ) -> "MetricSample":
        return cls(
            component=component,
            metric_name=metric_name,
            value=to_decimal(value),
            timestamp=time.time() if timestamp is None else float(timestamp),
            labels=normalize_labels(labels),
            unit=unit,
        )

    @property
    def labels_text(self) -> str:
        return format_labels(self.labels)
