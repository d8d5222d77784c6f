"""Log collectors package.

Modules:
- config: CollectorConfig dataclass
- checks: log-cycle and lock-file checks
- runner: orchestrator (run_once)
- cli: CLI entry point (main)
"""

from .config import CollectorConfig, collectors_from_settings
from .runner import RunResult, run_once
from .cli import main

__all__ = ["CollectorConfig", "collectors_from_settings", "RunResult", "run_once", "main"]
