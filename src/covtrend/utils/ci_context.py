"""CI and PR context detection utilities."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from covtrend.models.history import HistoryContext
from covtrend.utils.git import GitOperationError, get_current_branch, get_head_commit

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)

# Expected number of parts when splitting "owner/repo"
_OWNER_REPO_PARTS = 2

_UNKNOWN = "unknown"

# refs/pull/<n>/merge
_PR_REF_NUMBER_INDEX = 2


@dataclass
class CIContext:
    """Detected CI/PR execution context."""

    is_ci: bool
    """Running in CI environment."""

    is_pr: bool
    """Running in context of a pull request."""

    pr_number: int | None
    """PR number if in PR context."""

    branch: str | None
    """Branch the run belongs to (the PR head branch for pull requests)."""

    base_branch: str | None
    """Base/target branch for PR."""

    commit_sha: str | None
    """Current commit SHA."""

    repo_owner: str | None
    """Repository owner (org or user)."""

    repo_name: str | None
    """Repository name."""


def detect_ci_context(env: Mapping[str, str] | None = None) -> CIContext:
    """Detect CI and PR context from environment variables.

    Supports GitHub Actions and generic CI detection.

    Args:
        env: Environment mapping; defaults to ``os.environ``.
    """
    env = os.environ if env is None else env

    if env.get("GITHUB_ACTIONS") == "true":
        event_name = env.get("GITHUB_EVENT_NAME", "")
        is_pr = event_name in ("pull_request", "pull_request_target")

        repo_full = env.get("GITHUB_REPOSITORY", "")
        repo_parts = repo_full.split("/") if repo_full else []
        repo_owner = repo_parts[0] if len(repo_parts) == _OWNER_REPO_PARTS else None
        repo_name = repo_parts[1] if len(repo_parts) == _OWNER_REPO_PARTS else None

        # GITHUB_REF_NAME is "<n>/merge" on pull requests; the head ref is the branch
        branch = (env.get("GITHUB_HEAD_REF") or None) if is_pr else None

        return CIContext(
            is_ci=True,
            is_pr=is_pr,
            pr_number=_pr_number_from_ref(env.get("GITHUB_REF")) if is_pr else None,
            branch=branch or env.get("GITHUB_REF_NAME") or None,
            base_branch=env.get("GITHUB_BASE_REF") if is_pr else None,
            commit_sha=env.get("GITHUB_SHA") or None,
            repo_owner=repo_owner,
            repo_name=repo_name,
        )

    return CIContext(
        is_ci=env.get("CI") == "true",
        is_pr=False,
        pr_number=None,
        branch=None,
        base_branch=None,
        commit_sha=None,
        repo_owner=None,
        repo_name=None,
    )


def _pr_number_from_ref(ref: str | None) -> int | None:
    """Extract the PR number from ``refs/pull/<n>/merge``."""
    if not ref or not ref.startswith("refs/pull/"):
        return None
    parts = ref.split("/")
    return _parse_int(parts[_PR_REF_NUMBER_INDEX]) if len(parts) > _PR_REF_NUMBER_INDEX else None


def _parse_int(value: str | None) -> int | None:
    """Parse string to int, return None if invalid."""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def build_history_context(
    ci_context: CIContext,
    repo_path: Path,
    *,
    now: datetime | None = None,
) -> HistoryContext:
    """Build the branch/commit/timestamp context for a history entry.

    CI values win; otherwise the local git checkout is queried. Values that
    cannot be determined are recorded as ``unknown``.
    """
    branch = ci_context.branch
    commit = ci_context.commit_sha

    if not branch:
        try:
            branch = get_current_branch(repo_path)
        except GitOperationError as exc:
            logger.debug("Could not determine git branch: %s", exc)
    if not commit:
        try:
            commit = get_head_commit(repo_path)
        except GitOperationError as exc:
            logger.debug("Could not determine git commit: %s", exc)

    timestamp = (now or datetime.now(UTC)).isoformat()
    return HistoryContext(branch=branch or _UNKNOWN, commit=commit or _UNKNOWN, timestamp=timestamp)
