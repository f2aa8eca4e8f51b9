"""Coverage reporters: GitHub Actions, PR comments, Markdown, terminal and graphs."""

from covtrend.reporters.actions import ActionsReporter
from covtrend.reporters.base import Reporter, ReportResult
from covtrend.reporters.graphs import generate_trend_graph
from covtrend.reporters.markdown import build_trend_points, generate_markdown_report
from covtrend.reporters.terminal import CLIReporter, TerminalReporter

__all__ = [
    "ActionsReporter",
    "CLIReporter",
    "ReportResult",
    "Reporter",
    "TerminalReporter",
    "build_trend_points",
    "generate_markdown_report",
    "generate_trend_graph",
]
