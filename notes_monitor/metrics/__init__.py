from .models import MetricSample, format_labels, normalize_labels, parse_labels, to_decimal
from .store import MetricBucket, MetricStore, MetricStoreError, MetricSummary

__all__ = [
    "MetricSample",
    "MetricStore",
    "MetricStoreError",
    "MetricSummary",
    "MetricBucket",
    "to_decimal",
    "normalize_labels",
    "format_labels",
    "parse_labels",
]
