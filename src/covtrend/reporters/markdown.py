"""Markdown coverage report for pull request comments."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from covtrend.coverage.aggregator import get_failed_modules, get_missing_coverage_modules
from covtrend.history.entries import format_delta, trend_indicator
from covtrend.models.history import TrendDataPoint
from covtrend.reporters.graphs import generate_trend_graph
from covtrend.utils.git import compute_comment_marker

if TYPE_CHECKING:
    from covtrend.models.coverage import ModuleCoverage, OverallCoverage
    from covtrend.models.history import HistoryComparison, HistoryEntry

logger = logging.getLogger(__name__)

COMMENT_MARKER = compute_comment_marker("covtrend:coverage")
"""Hidden marker used to find and update the report comment on a PR."""

_SHORT_SHA = 7
_MIN_TREND_ENTRIES = 2


def _format_delta_cell(module: ModuleCoverage, comparison: HistoryComparison) -> str:
    if module.coverage is None or module.module not in comparison.module_delta:
        return "-"
    delta = comparison.module_delta[module.module]
    if delta is None:
        return "new"
    return f"{format_delta(delta)} {trend_indicator(delta)}"


def _status(module: ModuleCoverage) -> str:
    if module.coverage is None:
        return "⚠️ No data"
    return "✅" if module.passed else "❌"


def _format_module_table(overall: OverallCoverage, comparison: HistoryComparison | None) -> str:
    header = "| Module | Coverage | Threshold | Status |"
    divider = "|--------|----------|-----------|--------|"
    if comparison is not None:
        header += " Δ |"
        divider += "---|"

    lines = [header, divider]
    for module in overall.modules:
        coverage = "N/A" if module.coverage is None else f"{module.coverage.percentage:.1f}%"
        row = f"| `{module.module}` | {coverage} | {module.threshold:.1f}% | {_status(module)} |"
        if comparison is not None:
            row += f" {_format_delta_cell(module, comparison)} |"
        lines.append(row)
    return "\n".join(lines)


def _trend_label(entry: HistoryEntry) -> str:
    try:
        return datetime.fromisoformat(entry.timestamp).strftime("%b %d")
    except ValueError:
        return entry.commit[:_SHORT_SHA]


def build_trend_points(
    history: list[HistoryEntry], module: str | None = None
) -> list[TrendDataPoint]:
    """Turn newest-first history into chronological graph points.

    Args:
        history: History entries, newest first.
        module: Module id to chart; None charts overall coverage. Entries
            without data for the module are skipped.

    Returns:
        Points oldest first, labelled ``Mon DD`` (or the short commit id
        when the timestamp is unreadable).
    """
    points: list[TrendDataPoint] = []
    for entry in reversed(history):
        value = entry.overall.percentage if module is None else entry.modules.get(module)
        if value is None:
            continue
        points.append(TrendDataPoint(label=_trend_label(entry), value=value))
    return points


def generate_markdown_report(
    overall: OverallCoverage,
    title: str,
    comparison: HistoryComparison | None = None,
    history: list[HistoryEntry] | None = None,
) -> str:
    """Build the Markdown coverage report.

    Args:
        overall: Aggregated coverage of the current run.
        title: Report heading.
        comparison: Baseline comparison, if one was found.
        history: Recorded history, newest first. A trend graph is included
            once at least two entries exist.

    Returns:
        Markdown starting with :data:`COMMENT_MARKER`.
    """
    sections: list[str] = [COMMENT_MARKER, f"## 📊 {title}", ""]

    summary = f"**Overall Coverage:** {overall.percentage:.1f}%"
    if comparison is not None:
        delta = comparison.overall_delta
        summary += (
            f" ({format_delta(delta)} {trend_indicator(delta)} vs `{comparison.baseline.branch}`)"
        )
    sections.append(summary)
    sections.append(f"**Instructions Covered:** {overall.covered:,} / {overall.total:,}")
    sections.append("")

    if overall.modules:
        sections.append(_format_module_table(overall, comparison))
        sections.append("")

    failed = get_failed_modules(overall)
    if failed:
        sections.append(f"**❌ {len(failed)} module(s) below threshold:** {', '.join(failed)}")
        sections.append("")

    missing = get_missing_coverage_modules(overall)
    if missing:
        sections.append(f"**⚠️ {len(missing)} module(s) without coverage data**")
        sections.append("")

    if history and len(history) >= _MIN_TREND_ENTRIES:
        sections.append("### 📈 Coverage Trend")
        sections.append("")
        sections.append("```")
        sections.append(generate_trend_graph(build_trend_points(history), "Overall Coverage"))
        sections.append("```")
        sections.append("")

    sections.append("---")
    sections.append("*Generated by covtrend*")

    report = "\n".join(sections)
    logger.debug("Generated report (%d characters)", len(report))
    return report
