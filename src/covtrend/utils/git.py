"""Git and GitHub API utilities for covtrend.

The GitHub client covers the small REST surface the tool needs: pull
request comments for reports, and workflow runs and artifacts for locating
baseline coverage history.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import requests

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# GitHub API constants
GITHUB_API_BASE = "https://api.github.com"
_GITHUB_AUTH_ENV_KEY = "GITHUB_" + "TOKEN"
_REQUEST_TIMEOUT = 30

# Expected number of parts when splitting "owner/repo"
_OWNER_REPO_PARTS = 2


def _git_executable() -> str:
    """Resolve the full path to the ``git`` executable."""
    return shutil.which("git") or "git"


@dataclass
class GitHubPRInfo:
    """Information about a GitHub pull request."""

    owner: str
    """Repository owner (username or organization)."""

    repo: str
    """Repository name."""

    pr_number: int
    """Pull request number."""


class GitHubAPIError(Exception):
    """Exception raised when GitHub API operations fail."""


class GitOperationError(Exception):
    """Exception raised when git operations fail."""


class GitHubAPI:
    """Client for the GitHub REST API.

    Handles authentication, PR comment management and the workflow run /
    artifact listing used to find baseline history.
    """

    def __init__(self, token: str | None = None) -> None:
        """Initialize the GitHub API client.

        Args:
            token: GitHub token. If not provided, will try to read from the
                GITHUB_TOKEN environment variable.

        Raises:
            GitHubAPIError: If no token is available.
        """
        self._token = token or os.environ.get(_GITHUB_AUTH_ENV_KEY)
        if not self._token:
            raise GitHubAPIError(
                f"GitHub token required. Set {_GITHUB_AUTH_ENV_KEY} environment variable "
                "or pass token to constructor."
            )

        self._session_headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    # -- Pull request comments -------------------------------------------

    def create_comment(self, pr_info: GitHubPRInfo, body: str) -> dict[str, Any]:
        """Create a new comment on a pull request.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = (
            f"{GITHUB_API_BASE}/repos/{pr_info.owner}/{pr_info.repo}/"
            f"issues/{pr_info.pr_number}/comments"
        )
        result: dict[str, Any] = self._post(url, {"body": body})
        return result

    def update_comment(self, pr_info: GitHubPRInfo, comment_id: int, body: str) -> dict[str, Any]:
        """Replace the body of an existing pull request comment.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = (
            f"{GITHUB_API_BASE}/repos/{pr_info.owner}/{pr_info.repo}/"
            f"issues/comments/{comment_id}"
        )
        result: dict[str, Any] = self._patch(url, {"body": body})
        return result

    def find_comment_by_marker(self, pr_info: GitHubPRInfo, marker: str) -> dict[str, Any] | None:
        """Find a comment on a PR whose body contains ``marker``.

        Returns:
            Comment dict if found, None otherwise.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = (
            f"{GITHUB_API_BASE}/repos/{pr_info.owner}/{pr_info.repo}/"
            f"issues/{pr_info.pr_number}/comments"
        )
        comments: list[dict[str, Any]] = self._get(url, params={"per_page": 100})

        for comment in comments:
            if marker in (comment.get("body") or ""):
                return comment
        return None

    def upsert_comment(self, pr_info: GitHubPRInfo, body: str, marker: str) -> dict[str, Any]:
        """Create or update the comment identified by ``marker``.

        Args:
            pr_info: Pull request information.
            body: Comment body (markdown formatted). Should include the marker.
            marker: Unique marker identifying this comment.

        Returns:
            GitHub API response as a dictionary.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        if marker not in body:
            logger.warning("Marker '%s' not found in comment body. Adding it.", marker)
            body = f"{marker}\n{body}"

        existing = self.find_comment_by_marker(pr_info, marker)
        if existing:
            logger.info("Updating existing comment %d", existing["id"])
            return self.update_comment(pr_info, existing["id"], body)

        logger.info("Creating new comment")
        return self.create_comment(pr_info, body)

    # -- Workflow runs and artifacts -------------------------------------

    def list_workflow_runs(
        self,
        owner: str,
        repo: str,
        *,
        branch: str,
        status: str = "completed",
        page: int = 1,
        per_page: int = 100,
    ) -> list[dict[str, Any]]:
        """List workflow runs for a branch, newest first.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = f"{GITHUB_API_BASE}/repos/{owner}/{repo}/actions/runs"
        params = {"branch": branch, "status": status, "page": page, "per_page": per_page}
        payload: dict[str, Any] = self._get(url, params=params)
        runs: list[dict[str, Any]] = payload.get("workflow_runs", [])
        return runs

    def list_run_artifacts(self, owner: str, repo: str, run_id: int) -> list[dict[str, Any]]:
        """List the artifacts uploaded by a workflow run.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = f"{GITHUB_API_BASE}/repos/{owner}/{repo}/actions/runs/{run_id}/artifacts"
        payload: dict[str, Any] = self._get(url, params={"per_page": 100})
        artifacts: list[dict[str, Any]] = payload.get("artifacts", [])
        return artifacts

    def download_artifact(self, owner: str, repo: str, artifact_id: int) -> bytes:
        """Download an artifact's zip archive.

        Raises:
            GitHubAPIError: If the download fails.
        """
        url = f"{GITHUB_API_BASE}/repos/{owner}/{repo}/actions/artifacts/{artifact_id}/zip"
        return self._download(url)

    # -- Transport -------------------------------------------------------

    def _get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """Make a GET request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.get(
                url, params=params, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except Exception as exc:
            raise GitHubAPIError(f"GET request failed: {exc}") from exc

    def _post(self, url: str, data: dict[str, Any]) -> Any:
        """Make a POST request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.post(
                url, json=data, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except Exception as exc:
            raise GitHubAPIError(f"POST request failed: {exc}") from exc

    def _patch(self, url: str, data: dict[str, Any]) -> Any:
        """Make a PATCH request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.patch(
                url, json=data, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except Exception as exc:
            raise GitHubAPIError(f"PATCH request failed: {exc}") from exc

    def _download(self, url: str) -> bytes:
        """Fetch raw bytes, following the storage redirect GitHub returns.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.get(url, headers=self._session_headers, timeout=_REQUEST_TIMEOUT)
            response.raise_for_status()
            return response.content
        except Exception as exc:
            raise GitHubAPIError(f"Download failed: {exc}") from exc


def get_pr_info_from_env() -> GitHubPRInfo | None:
    """Get PR information from GitHub Actions environment variables.

    Returns:
        GitHubPRInfo if running in a PR context, None otherwise.
    """
    github_repository = os.environ.get("GITHUB_REPOSITORY")
    github_event_name = os.environ.get("GITHUB_EVENT_NAME")
    github_ref = os.environ.get("GITHUB_REF")

    if not github_repository or github_event_name not in ("pull_request", "pull_request_target"):
        return None

    parts = github_repository.split("/")
    if len(parts) != _OWNER_REPO_PARTS:
        return None

    owner, repo = parts

    # GITHUB_REF format: refs/pull/<number>/merge
    if not github_ref or not github_ref.startswith("refs/pull/"):
        return None

    try:
        pr_number = int(github_ref.split("/")[2])
    except (IndexError, ValueError):
        return None

    return GitHubPRInfo(owner=owner, repo=repo, pr_number=pr_number)


def compute_comment_marker(prefix: str) -> str:
    """Generate a stable hidden HTML marker for a PR comment.

    Args:
        prefix: Prefix for the marker (e.g., "covtrend:coverage").

    Returns:
        HTML comment marker string.
    """
    hash_str = hashlib.sha256(prefix.encode()).hexdigest()[:8]
    return f"<!-- {prefix}:{hash_str} -->"


def _run_git(repo_path: Path, *args: str) -> str:
    try:
        result = subprocess.run(
            [_git_executable(), *args],
            cwd=repo_path,
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError) as exc:
        raise GitOperationError(f"git {' '.join(args)} failed: {exc}") from exc
    return result.stdout.strip()


def get_current_branch(repo_path: Path) -> str:
    """Get the current git branch name.

    Raises:
        GitOperationError: If the operation fails.
    """
    return _run_git(repo_path, "rev-parse", "--abbrev-ref", "HEAD")


def get_head_commit(repo_path: Path) -> str:
    """Get the SHA of the checked-out commit.

    Raises:
        GitOperationError: If the operation fails.
    """
    return _run_git(repo_path, "rev-parse", "HEAD")
