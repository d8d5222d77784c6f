"""Log access helpers: timestamp normalization and bounded tail scanning."""

from .scanner import read_tail, scan
from .timestamps import parse_timestamp

__all__ = [
    "parse_timestamp",
    "read_tail",
    "scan",
]
