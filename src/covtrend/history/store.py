"""Backing stores for the serialized coverage history blob."""

from __future__ import annotations

import logging
import tempfile
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from covtrend.history.entries import DEFAULT_BASELINE_BRANCH
from covtrend.history.locator import (
    DEFAULT_MAX_PAGES,
    download_artifact_archive,
    find_baseline_artifact,
)
from covtrend.utils.git import GitHubAPIError

if TYPE_CHECKING:
    from covtrend.history.locator import ArtifactSource

logger = logging.getLogger(__name__)

DEFAULT_ARTIFACT_NAME = "coverage-history"
DEFAULT_HISTORY_FILE = ".coverage-history/coverage-history.json"


class HistoryStore(ABC):
    """Load/save access to a single history string."""

    @abstractmethod
    def load(self) -> str | None:
        """Return the stored blob, or None if nothing has been stored."""

    @abstractmethod
    def save(self, data: str) -> None:
        """Replace the stored blob."""


class InMemoryHistoryStore(HistoryStore):
    """History store held in memory."""

    def __init__(self, initial: str | None = None) -> None:
        self.data = initial
        self.save_count = 0

    def load(self) -> str | None:
        return self.data

    def save(self, data: str) -> None:
        self.data = data
        self.save_count += 1


class FileHistoryStore(HistoryStore):
    """History stored in a UTF-8 JSON file.

    A missing file reads as "no history"; any other I/O error propagates.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> str | None:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("History file not found: %s", self._path)
            return None
        logger.debug("Loaded history from %s (%d bytes)", self._path, len(text))
        return text

    def save(self, data: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(data, encoding="utf-8")
        logger.info("Saved coverage history to: %s", self._path)


class ArtifactHistoryStore(HistoryStore):
    """History carried between workflow runs as an uploaded artifact.

    ``load`` prefers a history file already present in the workspace (for
    example one downloaded earlier in the same job). Otherwise it locates
    the newest unexpired artifact on the baseline branch, downloads its zip
    archive and extracts the history file from it. ``save`` writes the local
    file; uploading it is left to the workflow.

    Args:
        local_path: Workspace location of the history file.
        source: Run/artifact listing; None disables the baseline lookup.
        artifact_name: Name of the history artifact.
        baseline_branch: Branch searched for the artifact.
        max_pages: Upper bound on run-listing calls.
    """

    def __init__(
        self,
        local_path: Path | str,
        source: ArtifactSource | None,
        *,
        artifact_name: str = DEFAULT_ARTIFACT_NAME,
        baseline_branch: str = DEFAULT_BASELINE_BRANCH,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        self._file = FileHistoryStore(local_path)
        self._source = source
        self._artifact_name = artifact_name
        self._baseline_branch = baseline_branch
        self._max_pages = max_pages

    def load(self) -> str | None:
        text = self._file.load()
        if text is not None or self._source is None:
            return text
        return self._load_from_baseline(self._source)

    def save(self, data: str) -> None:
        self._file.save(data)

    def _load_from_baseline(self, source: ArtifactSource) -> str | None:
        artifact = find_baseline_artifact(
            source,
            self._artifact_name,
            self._baseline_branch,
            max_pages=self._max_pages,
        )
        if artifact is None:
            logger.info("No baseline history artifact found on %s", self._baseline_branch)
            return None

        with tempfile.TemporaryDirectory(prefix="covtrend-") as tmp:
            archive = Path(tmp) / f"{artifact.name}.zip"
            try:
                download_artifact_archive(source, artifact, archive)
                text = _extract_history(archive, self._file.path.name)
            except (GitHubAPIError, ValueError, zipfile.BadZipFile) as exc:
                logger.warning("Failed to download baseline history artifact: %s", exc)
                return None

        if text is None:
            logger.warning("Artifact %s does not contain %s", artifact.name, self._file.path.name)
        else:
            logger.info("Loaded baseline history from artifact %s", artifact.name)
        return text


def _extract_history(archive: Path, filename: str) -> str | None:
    """Read ``filename`` from a zip archive, matching on the member's basename."""
    with zipfile.ZipFile(archive) as zf:
        for member in zf.namelist():
            if Path(member).name == filename:
                return zf.read(member).decode("utf-8")
    return None
