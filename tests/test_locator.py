"""Tests for baseline artifact lookup across paginated workflow runs."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest

from covtrend.history.locator import (
    ArtifactDescriptor,
    ArtifactSource,
    GitHubArtifactSource,
    WorkflowRun,
    artifact_id_from_url,
    download_artifact_archive,
    find_baseline_artifact,
    iter_run_pages,
)
from covtrend.utils.git import GitHubAPIError

if TYPE_CHECKING:
    from pathlib import Path

_URL = "https://api.github.com/repos/o/r/actions/artifacts/{id}/zip"


def _artifact(
    artifact_id: int, name: str = "coverage-history", *, expired: bool = False
) -> ArtifactDescriptor:
    return ArtifactDescriptor(
        id=artifact_id,
        name=name,
        archive_download_url=_URL.format(id=artifact_id),
        expired=expired,
    )


class _FakeSource(ArtifactSource):
    """In-memory run pages and per-run artifact lists."""

    def __init__(
        self,
        pages: list[list[WorkflowRun]],
        artifacts: dict[int, list[ArtifactDescriptor]],
        failing_runs: set[int] | None = None,
    ) -> None:
        self._pages = pages
        self._artifacts = artifacts
        self._failing_runs = failing_runs or set()
        self.list_runs_calls: list[int] = []
        self.downloads: list[str] = []

    def list_runs(self, branch: str, status: str, page: int, per_page: int) -> list[WorkflowRun]:
        self.list_runs_calls.append(page)
        return self._pages[page - 1] if page <= len(self._pages) else []

    def list_artifacts(self, run_id: int) -> list[ArtifactDescriptor]:
        if run_id in self._failing_runs:
            raise GitHubAPIError("boom")
        return self._artifacts.get(run_id, [])

    def download_archive(self, url: str, dest: Path) -> Path:
        self.downloads.append(url)
        dest.write_bytes(b"zip")
        return dest


def test_match_on_second_page_stops_paging() -> None:
    source = _FakeSource(
        pages=[[WorkflowRun(1)], [WorkflowRun(2)], [WorkflowRun(3)]],
        artifacts={1: [_artifact(10, "other")], 2: [_artifact(20)], 3: [_artifact(30)]},
    )

    artifact = find_baseline_artifact(source, "coverage-history", "main", max_pages=5)

    assert artifact == _artifact(20)
    assert source.list_runs_calls == [1, 2]


def test_expired_artifact_is_skipped() -> None:
    source = _FakeSource(
        pages=[[WorkflowRun(1), WorkflowRun(2)]],
        artifacts={1: [_artifact(10, expired=True)], 2: [_artifact(20)]},
    )

    assert find_baseline_artifact(source, "coverage-history", "main") == _artifact(20)


def test_newest_run_wins_within_a_page() -> None:
    source = _FakeSource(
        pages=[[WorkflowRun(5), WorkflowRun(4)]],
        artifacts={5: [_artifact(50)], 4: [_artifact(40)]},
    )

    artifact = find_baseline_artifact(source, "coverage-history", "main")

    assert artifact is not None
    assert artifact.id == 50


def test_max_pages_bounds_listing_calls() -> None:
    source = _FakeSource(pages=[[WorkflowRun(i)] for i in range(1, 10)], artifacts={})

    assert find_baseline_artifact(source, "coverage-history", "main", max_pages=3) is None
    assert source.list_runs_calls == [1, 2, 3]


def test_empty_page_stops_iteration() -> None:
    source = _FakeSource(pages=[[WorkflowRun(1)]], artifacts={})

    pages = list(iter_run_pages(source, "main", max_pages=5))

    assert pages == [[WorkflowRun(1)]]
    assert source.list_runs_calls == [1, 2]


def test_failing_run_is_skipped() -> None:
    source = _FakeSource(
        pages=[[WorkflowRun(1), WorkflowRun(2)]],
        artifacts={2: [_artifact(20)]},
        failing_runs={1},
    )

    assert find_baseline_artifact(source, "coverage-history", "main") == _artifact(20)


def test_listing_failure_returns_none() -> None:
    source = MagicMock(spec=ArtifactSource)
    source.list_runs.side_effect = GitHubAPIError("rate limited")

    assert find_baseline_artifact(source, "coverage-history", "main") is None


def test_download_delegates_to_source(tmp_path: Path) -> None:
    source = _FakeSource(pages=[], artifacts={})
    dest = tmp_path / "history.zip"

    result = download_artifact_archive(source, _artifact(77), dest)

    assert result == dest
    assert source.downloads == [_URL.format(id=77)]


class TestArtifactIdFromUrl:
    def test_extracts_id(self) -> None:
        assert artifact_id_from_url(_URL.format(id=123456)) == 123456

    def test_invalid_url(self) -> None:
        with pytest.raises(ValueError, match="Invalid artifact download URL"):
            artifact_id_from_url("https://example.com/download.zip")


class TestGitHubArtifactSource:
    def test_list_runs_maps_api_payload(self) -> None:
        api = MagicMock()
        api.list_workflow_runs.return_value = [{"id": 9, "name": "CI", "conclusion": "success"}]
        source = GitHubArtifactSource(api, "octocat", "hello-world")

        runs = source.list_runs("main", "completed", 2, 50)

        assert runs == [WorkflowRun(id=9, name="CI", conclusion="success")]
        api.list_workflow_runs.assert_called_once_with(
            "octocat", "hello-world", branch="main", status="completed", page=2, per_page=50
        )

    def test_list_artifacts_maps_expired_flag(self) -> None:
        api = MagicMock()
        api.list_run_artifacts.return_value = [
            {"id": 3, "name": "coverage-history", "archive_download_url": "u", "expired": True}
        ]
        source = GitHubArtifactSource(api, "octocat", "hello-world")

        assert source.list_artifacts(9) == [
            ArtifactDescriptor(
                id=3, name="coverage-history", archive_download_url="u", expired=True
            )
        ]

    def test_download_archive_writes_bytes(self, tmp_path: Path) -> None:
        api = MagicMock()
        api.download_artifact.return_value = b"PK\x03\x04"
        source = GitHubArtifactSource(api, "octocat", "hello-world")
        dest = tmp_path / "nested" / "a.zip"

        source.download_archive(_URL.format(id=42), dest)

        api.download_artifact.assert_called_once_with("octocat", "hello-world", 42)
        assert dest.read_bytes() == b"PK\x03\x04"
