from .evaluator import evaluate
from .models import Comparison, Severity, ThresholdConfig
from .providers import EnvThresholdProvider, StaticThresholdProvider, ThresholdProvider

__all__ = [
    "evaluate",
    "Comparison",
    "Severity",
    "ThresholdConfig",
    "ThresholdProvider",
    "EnvThresholdProvider",
    "StaticThresholdProvider",
]
