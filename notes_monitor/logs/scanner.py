"""Bounded tail reader for monitored log files.

Logs can be arbitrarily large and are appended to by other processes while we
read them, so the reader seeks backwards from the end in fixed-size blocks and
never takes a lock. A missing or unreadable file is "no evidence", not an error.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Iterable, Union

logger = logging.getLogger(__name__)

BLOCK_SIZE = 64 * 1024

PatternLike = Union[str, re.Pattern]


def _split_tail(chunks: Iterable[bytes], max_lines: int) -> list[str]:
    data = b"".join(chunks)
    lines = data.decode("utf-8", errors="replace").splitlines()
    return lines[-max_lines:]


def read_tail(path: str, max_lines: int) -> list[str]:
    """Return at most the last ``max_lines`` lines of ``path``, oldest first."""
    if max_lines <= 0:
        return []

    try:
        with open(path, "rb") as fh:
            fh.seek(0, os.SEEK_END)
            position = fh.tell()
            chunks: list[bytes] = []
            newlines = 0

            # One extra newline so the first kept line is complete.
            while position > 0 and newlines <= max_lines:
                step = min(BLOCK_SIZE, position)
                position -= step
                fh.seek(position)
                chunk = fh.read(step)
                chunks.insert(0, chunk)
                newlines += chunk.count(b"\n")
    except OSError as e:
        logger.debug("log_tail_unavailable path=%s err=%s", path, e)
        return []

    return _split_tail(chunks, max_lines)


def scan(path: str, pattern: PatternLike, max_lines: int) -> list[str]:
    """Lines matching ``pattern`` within the last ``max_lines`` lines of ``path``."""
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    matched = [line for line in read_tail(path, max_lines) if regex.search(line)]
    if not matched:
        logger.debug("log_scan_no_match path=%s pattern=%s", path, regex.pattern)
    return matched
