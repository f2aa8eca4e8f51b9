"""Post the coverage report as a pull request comment.

The comment is upserted: a previous report is found by its hidden marker
and edited in place, so each PR carries a single coverage comment.
"""

from __future__ import annotations

import logging

from covtrend.reporters.markdown import COMMENT_MARKER
from covtrend.utils.actions import mask_secret
from covtrend.utils.git import GitHubAPI, GitHubAPIError, GitHubPRInfo, get_pr_info_from_env

logger = logging.getLogger(__name__)


class GitHubCommentReporter:
    """Creates or updates the coverage comment on a pull request."""

    def __init__(self, github_token: str | None = None, api: GitHubAPI | None = None) -> None:
        """Initialize the reporter.

        Args:
            github_token: GitHub token. Falls back to the GITHUB_TOKEN
                environment variable.
            api: Preconfigured API client; built from the token if omitted.

        Raises:
            GitHubAPIError: If no token is available.
        """
        self._api = api or GitHubAPI(token=github_token)

    def post_report(self, pr_info: GitHubPRInfo, body: str) -> dict[str, str]:
        """Upsert the report comment.

        Returns:
            Dict with status and comment URL.

        Raises:
            GitHubAPIError: If posting the comment fails.
        """
        logger.info(
            "Posting coverage comment to PR #%d in %s/%s",
            pr_info.pr_number,
            pr_info.owner,
            pr_info.repo,
        )
        result = self._api.upsert_comment(pr_info, body, COMMENT_MARKER)
        logger.info("Coverage comment posted: %s", result.get("html_url", ""))
        return {
            "status": "success",
            "comment_url": result.get("html_url", ""),
        }


def post_coverage_comment(
    token: str | None,
    report: str,
    *,
    pr_info: GitHubPRInfo | None = None,
    api: GitHubAPI | None = None,
) -> bool:
    """Post ``report`` to the current pull request.

    Missing token, no PR context and API failures are all non-fatal.

    Returns:
        True if the comment was created or updated.
    """
    if not token:
        logger.info("No GitHub token provided. Skipping PR comment posting.")
        return False

    mask_secret(token)

    pr_info = pr_info or get_pr_info_from_env()
    if pr_info is None:
        logger.info("Not running in a pull request context. Skipping PR comment.")
        return False

    try:
        GitHubCommentReporter(token, api=api).post_report(pr_info, report)
    except GitHubAPIError as exc:
        logger.warning("Failed to post coverage comment: %s", exc)
        return False
    return True
