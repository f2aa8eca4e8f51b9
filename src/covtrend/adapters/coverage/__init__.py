"""Coverage adapters."""

from covtrend.adapters.coverage.base import CoverageAdapter
from covtrend.adapters.coverage.kover import COUNTER_TYPES, KoverAdapter

__all__ = [
    "COUNTER_TYPES",
    "CoverageAdapter",
    "KoverAdapter",
]
