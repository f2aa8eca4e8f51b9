"""Coverage report models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field


def round_percentage(value: float) -> float:
    """Round a percentage half-up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


@dataclass(frozen=True)
class CoverageCounts:
    """Raw counter values parsed from a single coverage report."""

    covered: int
    """Number of covered units (instructions by default)."""

    missed: int
    """Number of missed units."""

    @property
    def total(self) -> int:
        """Return covered + missed."""
        return self.covered + self.missed

    @property
    def percentage(self) -> float:
        """Return coverage percentage (0.0-100.0) rounded to one decimal."""
        if self.total == 0:
            return 0.0
        return round_percentage(self.covered / self.total * 100)


@dataclass
class ModuleCoverage:
    """Coverage and threshold outcome for a single build module."""

    module: str
    """Module id in canonical form (e.g. ``:core:common``)."""

    coverage: CoverageCounts | None
    """Parsed counters, or None when the module has no report."""

    threshold: float
    """Resolved threshold percentage for this module."""

    passed: bool
    """Whether coverage is present and meets the threshold."""


@dataclass
class OverallCoverage:
    """Coverage aggregated across all modules, weighted by module size."""

    percentage: float = 0.0
    """Overall percentage, covered/total rounded to one decimal."""

    covered: int = 0
    """Sum of covered units over modules with coverage."""

    total: int = 0
    """Sum of total units over modules with coverage."""

    modules: list[ModuleCoverage] = field(default_factory=list)
    """Per-module results in discovery order."""

    def module_percentages(self) -> dict[str, float]:
        """Return ``module -> percentage`` for modules that have coverage."""
        return {m.module: m.coverage.percentage for m in self.modules if m.coverage is not None}
