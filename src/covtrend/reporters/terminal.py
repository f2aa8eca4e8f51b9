"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from covtrend.coverage.aggregator import get_missing_coverage_modules
from covtrend.history.entries import format_delta, trend_indicator
from covtrend.reporters.base import Reporter
from covtrend.reporters.graphs import generate_trend_graph
from covtrend.reporters.markdown import build_trend_points

if TYPE_CHECKING:
    from covtrend.models.coverage import OverallCoverage
    from covtrend.models.history import HistoryComparison
    from covtrend.reporters.base import ReportResult

console = Console()

_HIGH_COVERAGE = 80.0
_MEDIUM_COVERAGE = 50.0


class CLIReporter:
    """Rich terminal output for local runs."""

    def __init__(self, output: Console | None = None) -> None:
        self.console = output or console

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_coverage_summary(
        self,
        overall: OverallCoverage,
        title: str = "Coverage Summary",
        comparison: HistoryComparison | None = None,
    ) -> None:
        """Print a per-module coverage table followed by the overall figure."""
        table = Table(title=title, title_style="bold cyan")
        table.add_column("Module", style="bold")
        table.add_column("Coverage", justify="right")
        table.add_column("Threshold", justify="right")
        table.add_column("Status", justify="center")
        if comparison is not None:
            table.add_column("Δ", justify="right")

        for module in overall.modules:
            threshold = f"{module.threshold:.1f}%"
            if module.coverage is None:
                cells = [module.module, "[dim]N/A[/dim]", threshold, "[yellow]⚠[/yellow]"]
            else:
                pct = module.coverage.percentage
                color = self._get_coverage_color(pct)
                status = "[green]✓[/green]" if module.passed else "[red]✗[/red]"
                cells = [module.module, f"[{color}]{pct:.1f}%[/{color}]", threshold, status]
            if comparison is not None:
                delta = comparison.module_delta.get(module.module)
                if module.module not in comparison.module_delta:
                    cells.append("-")
                elif delta is None:
                    cells.append("[cyan]new[/cyan]")
                else:
                    cells.append(f"{format_delta(delta)} {trend_indicator(delta)}")
            table.add_row(*cells)

        self.console.print(table)

        color = self._get_coverage_color(overall.percentage)
        summary = (
            f"\n[bold]Overall:[/bold] [{color}]{overall.percentage:.1f}%[/{color}] "
            f"({overall.covered}/{overall.total})"
        )
        if comparison is not None:
            summary += (
                f"  {format_delta(comparison.overall_delta)} "
                f"{trend_indicator(comparison.overall_delta)} vs {comparison.baseline.branch}"
            )
        self.console.print(summary)

    def print_graph(self, graph: str) -> None:
        """Print a pre-rendered trend graph without markup processing."""
        self.console.print(graph, markup=False, highlight=False)

    def _get_coverage_color(self, percentage: float) -> str:
        """Get a color based on coverage percentage."""
        if percentage >= _HIGH_COVERAGE:
            return "green"
        if percentage >= _MEDIUM_COVERAGE:
            return "yellow"
        return "red"


class TerminalReporter(Reporter):
    """:class:`Reporter` that renders results with :class:`CLIReporter`."""

    def __init__(self, cli: CLIReporter | None = None) -> None:
        self._cli = cli or CLIReporter()

    def report(self, result: ReportResult, title: str) -> None:
        self._cli.print_coverage_summary(result.overall, title, result.comparison)
        missing = get_missing_coverage_modules(result.overall)
        if missing:
            self._cli.print_warning(f"No coverage data for: {', '.join(missing)}")
        if len(result.history) > 1:
            self._cli.console.print()
            self._cli.print_graph(
                generate_trend_graph(build_trend_points(result.history), "Overall Coverage")
            )


reporter = CLIReporter()
