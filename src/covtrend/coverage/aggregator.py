"""Weighted coverage aggregation across build modules.

Reports are parsed concurrently, one task per module. All tasks are joined
before totals are computed; modules without coverage are reported but do
not contribute to the overall percentage.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from covtrend.coverage.thresholds import meets_threshold, resolve_threshold
from covtrend.models.coverage import ModuleCoverage, OverallCoverage, round_percentage

if TYPE_CHECKING:
    from collections.abc import Mapping

    from covtrend.adapters.coverage.base import CoverageAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleReference:
    """A discovered module and the location of its coverage report."""

    name: str
    """Module id in canonical form (e.g. ``:core:common``)."""

    file_path: str
    """Path to the module's coverage report."""


async def _module_coverage(
    adapter: CoverageAdapter,
    module: ModuleReference,
    thresholds: Mapping[str, float],
    min_coverage: float,
) -> ModuleCoverage:
    coverage = await asyncio.to_thread(adapter.parse_coverage_file, Path(module.file_path))
    threshold = resolve_threshold(module.name, thresholds, min_coverage)
    passed = coverage is not None and meets_threshold(coverage.percentage, threshold)

    if coverage is None:
        logger.warning("No coverage data found for module %s", module.name)
    elif not passed:
        logger.warning(
            "Module %s below threshold: %s%% < %s%%", module.name, coverage.percentage, threshold
        )
    else:
        logger.info(
            "Module %s meets threshold: %s%% >= %s%%", module.name, coverage.percentage, threshold
        )

    return ModuleCoverage(
        module=module.name,
        coverage=coverage,
        threshold=threshold,
        passed=passed,
    )


async def aggregate_coverage(
    adapter: CoverageAdapter,
    modules: list[ModuleReference],
    thresholds: Mapping[str, float],
    min_coverage: float,
    *,
    timeout: float | None = None,
) -> OverallCoverage:
    """Aggregate coverage from multiple modules.

    Args:
        adapter: Coverage adapter used to parse each module's report.
        modules: Modules with their report paths.
        thresholds: Threshold configuration.
        min_coverage: Global minimum coverage (threshold fallback).
        timeout: Optional budget in seconds for parsing all reports.

    Returns:
        Overall coverage with per-module breakdown in input order.
    """
    if not modules:
        logger.info("No modules to aggregate")
        return OverallCoverage()

    logger.info("Aggregating coverage for %d modules", len(modules))

    gathered = asyncio.gather(
        *(_module_coverage(adapter, module, thresholds, min_coverage) for module in modules)
    )
    module_coverages = list(await asyncio.wait_for(gathered, timeout=timeout))

    covered = sum(m.coverage.covered for m in module_coverages if m.coverage is not None)
    total = sum(m.coverage.total for m in module_coverages if m.coverage is not None)
    percentage = 0.0 if total == 0 else round_percentage(covered / total * 100)

    logger.info("Overall coverage: %s%% (%d/%d)", percentage, covered, total)

    return OverallCoverage(
        percentage=percentage,
        covered=covered,
        total=total,
        modules=module_coverages,
    )


def get_failed_modules(overall: OverallCoverage) -> list[str]:
    """Return modules that have coverage but miss their threshold."""
    return [m.module for m in overall.modules if not m.passed and m.coverage is not None]


def get_missing_coverage_modules(overall: OverallCoverage) -> list[str]:
    """Return modules without coverage data."""
    return [m.module for m in overall.modules if m.coverage is None]
