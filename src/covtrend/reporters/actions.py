"""GitHub Actions reporter: step outputs, log summary and PR comment."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from covtrend.coverage.aggregator import get_failed_modules, get_missing_coverage_modules
from covtrend.reporters.base import Reporter
from covtrend.reporters.github_comment import post_coverage_comment
from covtrend.reporters.markdown import generate_markdown_report
from covtrend.utils.actions import set_output

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from covtrend.models.coverage import OverallCoverage
    from covtrend.reporters.base import ReportResult

logger = logging.getLogger(__name__)

_RULE = "━" * 40


def module_coverage_json(overall: OverallCoverage) -> str:
    """Serialize per-module percentages, ``"N/A"`` for modules without data."""
    return json.dumps(
        {
            m.module: m.coverage.percentage if m.coverage is not None else "N/A"
            for m in overall.modules
        },
        ensure_ascii=False,
    )


class ActionsReporter(Reporter):
    """Reports a run to GitHub Actions.

    Args:
        enable_pr_comment: Post the Markdown report to the pull request.
        github_token: Token used for the PR comment.
        debug: Log per-module detail for modules without coverage.
        env: Environment used to locate ``$GITHUB_OUTPUT``.
        post_comment: Comment poster, ``(token, report) -> bool``.
    """

    def __init__(
        self,
        *,
        enable_pr_comment: bool = True,
        github_token: str | None = None,
        debug: bool = False,
        env: Mapping[str, str] | None = None,
        post_comment: Callable[[str | None, str], bool] = post_coverage_comment,
    ) -> None:
        self._enable_pr_comment = enable_pr_comment
        self._github_token = github_token
        self._debug = debug
        self._env = env
        self._post_comment = post_comment

    def report(self, result: ReportResult, title: str) -> None:
        overall = result.overall
        failed = get_failed_modules(overall)
        missing = get_missing_coverage_modules(overall)

        self._set_outputs(overall, failed)
        self._log_summary(overall, failed, missing)

        if not self._enable_pr_comment:
            logger.info("PR comment posting disabled")
            return

        report = generate_markdown_report(overall, title, result.comparison, result.history)
        if not self._github_token:
            logger.warning(
                "Cannot post PR comment: github-token not provided. "
                "To enable PR comments, add: github-token: ${{ secrets.GITHUB_TOKEN }}"
            )
            return

        logger.info("Posting coverage report to PR...")
        self._post_comment(self._github_token, report)

    def _set_outputs(self, overall: OverallCoverage, failed: list[str]) -> None:
        set_output("coverage-percentage", str(overall.percentage), self._env)
        set_output("instructions-covered", str(overall.covered), self._env)
        set_output("instructions-total", str(overall.total), self._env)
        set_output("modules-coverage-json", module_coverage_json(overall), self._env)
        set_output("modules-below-threshold", ",".join(failed), self._env)

    def _log_summary(self, overall: OverallCoverage, failed: list[str], missing: list[str]) -> None:
        logger.info(_RULE)
        logger.info("Overall Coverage: %s%%", overall.percentage)
        logger.info("Instructions: %d/%d", overall.covered, overall.total)
        logger.info("Passing modules: %d", sum(1 for m in overall.modules if m.passed))

        if failed:
            logger.info("Failing modules: %d", len(failed))
            for module in overall.modules:
                if module.module in failed and module.coverage is not None:
                    logger.warning(
                        "  %s: %s%% < %s%%",
                        module.module,
                        module.coverage.percentage,
                        module.threshold,
                    )

        if missing:
            logger.info("Missing coverage: %d modules", len(missing))
            if self._debug:
                for module_id in missing:
                    logger.debug("  %s: No coverage file found", module_id)

        logger.info(_RULE)
