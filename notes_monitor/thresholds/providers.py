"""Threshold configuration providers.

Absent configuration for a metric means "no alerting for this metric".
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Iterable, Mapping, Optional

from common.config import ConfigurationError

from .models import Comparison, ThresholdConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "MONITOR_THRESHOLD"
_FIELDS = ("warning", "critical", "comparison", "unit")


class ThresholdProvider(ABC):
    """Source of ``ThresholdConfig`` entries, loaded once per run."""

    @abstractmethod
    def all(self) -> list[ThresholdConfig]:
        """Every configured threshold."""

    def get(self, component: str, metric_name: str) -> Optional[ThresholdConfig]:
        for config in self.all():
            if config.component == component and config.metric_name == metric_name:
                return config
        return None

    def for_component(self, component: str) -> list[ThresholdConfig]:
        return [c for c in self.all() if c.component == component]


class StaticThresholdProvider(ThresholdProvider):
    """In-memory thresholds supplied by the caller."""

    def __init__(self, configs: Iterable[ThresholdConfig] = ()):
        self._configs = {(c.component, c.metric_name): c for c in configs}

    def all(self) -> list[ThresholdConfig]:
        return list(self._configs.values())

    def get(self, component: str, metric_name: str) -> Optional[ThresholdConfig]:
        return self._configs.get((component, metric_name))


def _bound(key: str, raw: Optional[str]) -> Optional[Decimal]:
    if raw is None or raw.strip() == "":
        return None
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as e:
        raise ConfigurationError(f"{key} must be numeric, got {raw!r}") from e
    if value.is_nan():
        raise ConfigurationError(f"{key} must be numeric, got {raw!r}")
    return value


class EnvThresholdProvider(ThresholdProvider):
    """Thresholds from ``MONITOR_THRESHOLD__<component>__<metric_name>__<field>``.

    ``field`` is one of ``warning``, ``critical``, ``comparison`` or ``unit``.

    Raises:
        ConfigurationError: a bound is not numeric, a comparison is unknown,
            or a key has an unexpected shape.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        self._configs = self._load(os.environ if env is None else env)

    @staticmethod
    def _load(env: Mapping[str, str]) -> dict[tuple[str, str], ThresholdConfig]:
        raw: dict[tuple[str, str], dict[str, tuple[str, str]]] = {}
        for key, value in env.items():
            if not key.startswith(ENV_PREFIX + "__"):
                continue
            parts = key.split("__")
            if len(parts) != 4 or parts[3].lower() not in _FIELDS or not parts[1] or not parts[2]:
                raise ConfigurationError(f"malformed threshold key: {key}")
            _, component, metric_name, field_name = parts
            raw.setdefault((component, metric_name), {})[field_name.lower()] = (key, value)

        configs: dict[tuple[str, str], ThresholdConfig] = {}
        for (component, metric_name), fields in raw.items():
            comparison = Comparison.GREATER_THAN
            if "comparison" in fields:
                key, value = fields["comparison"]
                try:
                    comparison = Comparison.parse(value)
                except ValueError as e:
                    raise ConfigurationError(f"{key}: {e}") from e

            warning = _bound(*fields["warning"]) if "warning" in fields else None
            critical = _bound(*fields["critical"]) if "critical" in fields else None
            if warning is None and critical is None:
                logger.debug("threshold_without_bounds component=%s metric=%s", component, metric_name)
                continue

            unit = fields["unit"][1].strip() if "unit" in fields else None
            configs[(component, metric_name)] = ThresholdConfig(
                component=component,
                metric_name=metric_name,
                warning_bound=warning,
                critical_bound=critical,
                comparison=comparison,
                unit=unit or None,
            )

        logger.debug("thresholds_loaded count=%d", len(configs))
        return configs

    def all(self) -> list[ThresholdConfig]:
        return list(self._configs.values())

    def get(self, component: str, metric_name: str) -> Optional[ThresholdConfig]:
        return self._configs.get((component, metric_name))
