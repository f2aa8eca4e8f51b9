"""Locate the newest coverage-history artifact on a baseline branch.

Artifacts are scoped to the workflow run that uploaded them, so a pull
request run cannot see the history recorded on ``main``. The locator walks
completed runs of the baseline branch page by page, newest first, and
returns the first unexpired artifact with the expected name.

The run listing is assumed to be ordered newest first (GitHub's default
for ``/actions/runs``); "first hit wins" relies on it.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from covtrend.utils.git import GitHubAPI

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 5
DEFAULT_PER_PAGE = 100
COMPLETED_STATUS = "completed"

_ARTIFACT_ID_RE = re.compile(r"/artifacts/(\d+)/")


@dataclass(frozen=True)
class WorkflowRun:
    """A workflow run as returned by the run listing."""

    id: int
    name: str | None = None
    conclusion: str | None = None


@dataclass(frozen=True)
class ArtifactDescriptor:
    """An uploaded artifact of a workflow run."""

    id: int
    name: str

    archive_download_url: str
    """Opaque download locator; the artifact id is embedded in it."""

    expired: bool = False
    """Expired artifacts can no longer be downloaded and are never selected."""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ArtifactDescriptor:
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            archive_download_url=str(data.get("archive_download_url", "")),
            expired=bool(data.get("expired", False)),
        )


class ArtifactSource(ABC):
    """Paginated workflow-run / artifact listing plus archive download."""

    @abstractmethod
    def list_runs(self, branch: str, status: str, page: int, per_page: int) -> list[WorkflowRun]:
        """Return one page of runs for ``branch``, newest first."""

    @abstractmethod
    def list_artifacts(self, run_id: int) -> list[ArtifactDescriptor]:
        """Return the artifacts uploaded by a run."""

    @abstractmethod
    def download_archive(self, url: str, dest: Path) -> Path:
        """Download the archive behind ``url`` to ``dest`` and return ``dest``."""


class GitHubArtifactSource(ArtifactSource):
    """:class:`ArtifactSource` backed by the GitHub Actions REST API."""

    def __init__(self, api: GitHubAPI, owner: str, repo: str) -> None:
        self._api = api
        self._owner = owner
        self._repo = repo

    def list_runs(self, branch: str, status: str, page: int, per_page: int) -> list[WorkflowRun]:
        runs = self._api.list_workflow_runs(
            self._owner, self._repo, branch=branch, status=status, page=page, per_page=per_page
        )
        return [
            WorkflowRun(id=int(run["id"]), name=run.get("name"), conclusion=run.get("conclusion"))
            for run in runs
        ]

    def list_artifacts(self, run_id: int) -> list[ArtifactDescriptor]:
        artifacts = self._api.list_run_artifacts(self._owner, self._repo, run_id)
        return [ArtifactDescriptor.from_api(artifact) for artifact in artifacts]

    def download_archive(self, url: str, dest: Path) -> Path:
        artifact_id = artifact_id_from_url(url)
        data = self._api.download_artifact(self._owner, self._repo, artifact_id)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        logger.debug("Downloaded artifact to: %s (%d bytes)", dest, len(data))
        return dest


def artifact_id_from_url(url: str) -> int:
    """Extract the artifact id from an archive download URL.

    Raises:
        ValueError: If the URL does not contain ``/artifacts/<id>/``.
    """
    match = _ARTIFACT_ID_RE.search(url)
    if not match:
        raise ValueError(f"Invalid artifact download URL: {url}")
    return int(match.group(1))


def iter_run_pages(
    source: ArtifactSource,
    branch: str,
    *,
    max_pages: int = DEFAULT_MAX_PAGES,
    per_page: int = DEFAULT_PER_PAGE,
) -> Iterator[list[WorkflowRun]]:
    """Yield pages of completed runs for ``branch``.

    At most ``max_pages`` listing calls are made; iteration stops at the
    first empty page.
    """
    for page in range(1, max_pages + 1):
        logger.debug("Checking workflow runs page %d...", page)
        runs = source.list_runs(branch, COMPLETED_STATUS, page, per_page)
        if not runs:
            logger.debug("No more workflow runs to check")
            return
        logger.debug("Found %d workflow runs on page %d", len(runs), page)
        yield runs


def _matching_artifact(
    source: ArtifactSource, run: WorkflowRun, artifact_name: str
) -> ArtifactDescriptor | None:
    try:
        artifacts = source.list_artifacts(run.id)
    except Exception as exc:
        logger.debug("Could not list artifacts for run #%d: %s", run.id, exc)
        return None
    return next((a for a in artifacts if a.name == artifact_name and not a.expired), None)


def find_baseline_artifact(
    source: ArtifactSource,
    artifact_name: str,
    baseline_branch: str,
    *,
    max_pages: int = DEFAULT_MAX_PAGES,
    per_page: int = DEFAULT_PER_PAGE,
) -> ArtifactDescriptor | None:
    """Find the newest unexpired artifact named ``artifact_name`` on a branch.

    Args:
        source: Run and artifact listing.
        artifact_name: Artifact name to match exactly.
        baseline_branch: Branch whose runs are searched.
        max_pages: Upper bound on run-listing calls.
        per_page: Runs requested per page.

    Returns:
        The artifact descriptor, or None when nothing matched or the search
        itself failed. Both cases mean "proceed without a baseline".
    """
    logger.debug('Searching for artifact "%s" on branch "%s"', artifact_name, baseline_branch)
    try:
        for runs in iter_run_pages(source, baseline_branch, max_pages=max_pages, per_page=per_page):
            for run in runs:
                artifact = _matching_artifact(source, run, artifact_name)
                if artifact is not None:
                    logger.debug(
                        "Found artifact: %s (ID: %d) in run #%d", artifact.name, artifact.id, run.id
                    )
                    return artifact
    except Exception as exc:
        logger.warning("Failed to search for baseline artifact: %s", exc)
        return None

    logger.debug('Artifact "%s" not found on baseline branch "%s"', artifact_name, baseline_branch)
    return None


def download_artifact_archive(
    source: ArtifactSource, artifact: ArtifactDescriptor, dest: Path
) -> Path:
    """Download a located artifact's zip archive to ``dest``."""
    logger.debug("Downloading artifact from: %s", artifact.archive_download_url)
    return source.download_archive(artifact.archive_download_url, Path(dest))
