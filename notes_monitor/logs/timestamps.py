"""Timestamp normalization for free-text log lines.

Log producers in the pipeline do not agree on a timestamp format. The parser
tries a fixed list of encodings in priority order and returns epoch seconds,
or None when nothing usable is found. It never raises and keeps no state, so
callers can treat "no timestamp" as "exclude this line from the window".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Optional

_OFFSET_SUFFIX = re.compile(r"[+-]\d{2}(?::?\d{2})?$")


@dataclass(frozen=True)
class TimestampEncoding:
    """One supported encoding: a search pattern and the strptime format of group 1."""

    name: str
    pattern: re.Pattern
    fmt: str


# Priority order matters: the first encoding that yields a valid date wins.
ENCODINGS: tuple[TimestampEncoding, ...] = (
    TimestampEncoding(
        name="plain",
        pattern=re.compile(r"(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})(?![.\d])"),
        fmt="%Y-%m-%d %H:%M:%S",
    ),
    TimestampEncoding(
        name="fractional",
        pattern=re.compile(r"(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{1,6})\d*"),
        fmt="%Y-%m-%d %H:%M:%S.%f",
    ),
    TimestampEncoding(
        name="iso",
        pattern=re.compile(r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"),
        fmt="%Y-%m-%dT%H:%M:%S",
    ),
)

_GENERIC = re.compile(r"(\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}\S*)")


def _to_epoch(value: datetime, tz: tzinfo) -> int:
    return int(value.replace(tzinfo=tz).timestamp())


def _parse_generic(line: str, tz: tzinfo) -> Optional[int]:
    match = _GENERIC.search(line)
    if not match:
        return None

    token = match.group(1)
    candidates = [token, _OFFSET_SUFFIX.sub("", token)]
    for candidate in candidates:
        # Offsets are dropped on purpose: the wall clock is read in ``tz``.
        base = candidate.split(".", 1)[0].replace("T", " ")
        try:
            return _to_epoch(datetime.strptime(base, "%Y-%m-%d %H:%M:%S"), tz)
        except ValueError:
            continue
    return None


def parse_timestamp(line: Optional[str], tz: tzinfo = timezone.utc) -> Optional[int]:
    """Return the epoch second of the first recognised timestamp in ``line``.

    Args:
        line: Raw log line, possibly empty or None.
        tz: Zone used to interpret naive wall-clock timestamps.

    Returns:
        Integer epoch seconds, or None when no encoding matches.
    """
    if not line:
        return None

    for encoding in ENCODINGS:
        match = encoding.pattern.search(line)
        if not match:
            continue
        try:
            return _to_epoch(datetime.strptime(match.group(1), encoding.fmt), tz)
        except ValueError:
            # Out-of-range fields (month 13, hour 25); try the next encoding.
            continue

    return _parse_generic(line, tz)
