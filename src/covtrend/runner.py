"""End-to-end coverage run: discover, aggregate, track history, report, gate."""

from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from covtrend.adapters.coverage.kover import KoverAdapter
from covtrend.config import validate_config
from covtrend.coverage.aggregator import ModuleReference, aggregate_coverage
from covtrend.discovery import DiscoveryError, create_discovery
from covtrend.history.locator import GitHubArtifactSource
from covtrend.history.manager import HistoryManager
from covtrend.history.store import ArtifactHistoryStore
from covtrend.models.history import HistorySnapshot
from covtrend.reporters.actions import ActionsReporter
from covtrend.reporters.base import ReportResult
from covtrend.reporters.terminal import TerminalReporter
from covtrend.utils.ci_context import build_history_context, detect_ci_context
from covtrend.utils.git import GitHubAPI, GitHubAPIError, GitOperationError
from covtrend.utils.paths import PathSecurityError, resolve_secure_path

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from covtrend.adapters.coverage.base import CoverageAdapter
    from covtrend.config import CovtrendConfig
    from covtrend.discovery import ModuleDiscovery
    from covtrend.models.coverage import OverallCoverage
    from covtrend.models.history import HistoryComparison, HistoryContext, HistoryEntry
    from covtrend.reporters.base import Reporter

logger = logging.getLogger(__name__)

# Failures that end a run with an error result instead of a traceback
_RUN_ERRORS = (
    DiscoveryError,
    PathSecurityError,
    GitHubAPIError,
    OSError,
    TimeoutError,
    ValueError,
)

_HISTORY_ERRORS = (GitHubAPIError, GitOperationError, OSError, ValueError)


@dataclass
class RunResult:
    """Outcome of a coverage run."""

    success: bool

    coverage_percentage: float | None = None
    """Overall coverage, when aggregation got that far."""

    error: str | None = None
    """Failure message for unsuccessful runs."""


@dataclass
class RunnerDependencies:
    """Collaborators used by :func:`run_pipeline`."""

    discovery: ModuleDiscovery
    adapter: CoverageAdapter
    reporter: Reporter

    history: HistoryManager | None = None
    """History manager; None disables history tracking."""

    context_provider: Callable[[], HistoryContext] | None = None
    """Supplies branch/commit/timestamp for the recorded entry."""


def build_dependencies(
    config: CovtrendConfig, env: Mapping[str, str] | None = None
) -> RunnerDependencies:
    """Wire the default collaborators for ``config``.

    GitHub Actions runs report through step outputs and a PR comment; other
    environments print to the terminal. History artifacts are only looked up
    when a token and the repository are known.
    """
    env = os.environ if env is None else env
    root = Path(config.root)
    ci_context = detect_ci_context(env)
    token = config.report.github_token or None

    history: HistoryManager | None = None
    if config.history.enabled:
        source = None
        if token and ci_context.repo_owner and ci_context.repo_name:
            source = GitHubArtifactSource(
                GitHubAPI(token), ci_context.repo_owner, ci_context.repo_name
            )
        store = ArtifactHistoryStore(
            resolve_secure_path(root, config.history.history_file),
            source,
            artifact_name=config.history.artifact_name,
            baseline_branch=config.history.baseline_branch,
            max_pages=config.history.max_pages,
        )
        history = HistoryManager(
            store,
            retention=config.history.retention,
            baseline_branch=config.history.baseline_branch,
        )

    reporter: Reporter
    if env.get("GITHUB_ACTIONS") == "true":
        reporter = ActionsReporter(
            enable_pr_comment=config.report.enable_pr_comment,
            github_token=token,
            debug=config.debug,
            env=env,
        )
    else:
        reporter = TerminalReporter()

    return RunnerDependencies(
        discovery=create_discovery(config.discovery, root),
        adapter=KoverAdapter(config.coverage.counter),
        reporter=reporter,
        history=history,
        context_provider=functools.partial(build_history_context, ci_context, root),
    )


def _secure_modules(modules: list[ModuleReference], root: Path) -> list[ModuleReference]:
    secured: list[ModuleReference] = []
    for module in modules:
        try:
            path = resolve_secure_path(root, module.file_path)
        except PathSecurityError as exc:
            raise PathSecurityError(
                f'Security: Module {module.name} has invalid path "{module.file_path}": {exc}'
            ) from exc
        secured.append(ModuleReference(name=module.name, file_path=str(path)))
    return secured


def _process_history(
    manager: HistoryManager,
    overall: OverallCoverage,
    context_provider: Callable[[], HistoryContext] | None,
) -> tuple[HistoryComparison | None, list[HistoryEntry]]:
    """Load, compare, record and persist history.

    Failures are logged and never fail the run; whatever was computed before
    the failure is still reported.
    """
    comparison: HistoryComparison | None = None
    history: list[HistoryEntry] = []
    try:
        manager.load()
        snapshot = HistorySnapshot(
            overall=overall.percentage,
            covered=overall.covered,
            total=overall.total,
            modules=overall.module_percentages(),
        )

        comparison = manager.compare(snapshot)
        if comparison is not None:
            logger.info(
                "Comparing with baseline: %s (%s)",
                comparison.baseline.commit[:7],
                comparison.baseline.timestamp,
            )
        else:
            logger.info("No baseline found for branch: %s", manager.baseline_branch)

        if context_provider is not None:
            manager.append(context_provider(), snapshot)
            manager.persist()
        history = manager.get_history()
    except _HISTORY_ERRORS as exc:
        logger.warning("Failed to process coverage history: %s", exc)
    return comparison, history


async def run_pipeline(config: CovtrendConfig, deps: RunnerDependencies) -> RunResult:
    """Run a complete coverage check.

    Args:
        config: Resolved configuration.
        deps: Collaborators, usually from :func:`build_dependencies`.

    Returns:
        The run outcome. Errors are logged and returned, never raised.
    """
    logger.info("Starting coverage report")
    coverage_percentage: float | None = None

    try:
        errors = validate_config(config)
        if errors:
            raise ValueError("Invalid configuration: " + "; ".join(errors))

        modules = await deps.discovery.discover(config.discovery.ignored_modules)
        logger.info("Discovered %d modules", len(modules))
        modules = _secure_modules(modules, Path(config.root))

        overall = await aggregate_coverage(
            deps.adapter,
            modules,
            config.coverage.thresholds,
            config.coverage.min_coverage,
        )
        coverage_percentage = overall.percentage

        comparison: HistoryComparison | None = None
        history: list[HistoryEntry] = []
        if deps.history is not None:
            comparison, history = _process_history(deps.history, overall, deps.context_provider)

        deps.reporter.report(
            ReportResult(overall=overall, comparison=comparison, history=history),
            config.report.title,
        )

        min_coverage = config.coverage.min_coverage
        if overall.percentage < min_coverage:
            message = (
                f"Overall coverage {overall.percentage}% is below minimum required {min_coverage}%"
            )
            logger.error(message)
            return RunResult(success=False, coverage_percentage=overall.percentage, error=message)
    except _RUN_ERRORS as exc:
        logger.error("Action failed: %s", exc)
        return RunResult(success=False, coverage_percentage=coverage_percentage, error=str(exc))

    logger.info("Coverage report completed")
    return RunResult(success=True, coverage_percentage=coverage_percentage)
