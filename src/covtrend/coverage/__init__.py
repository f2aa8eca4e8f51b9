"""Coverage aggregation and threshold resolution."""

from covtrend.coverage.aggregator import (
    ModuleReference,
    aggregate_coverage,
    get_failed_modules,
    get_missing_coverage_modules,
)
from covtrend.coverage.thresholds import meets_threshold, module_type, resolve_threshold

__all__ = [
    "ModuleReference",
    "aggregate_coverage",
    "get_failed_modules",
    "get_missing_coverage_modules",
    "meets_threshold",
    "module_type",
    "resolve_threshold",
]
