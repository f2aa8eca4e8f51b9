"""Tests for the covtrend CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from covtrend import __version__
from covtrend.cli import _config_to_dict, _mask_sensitive_values, cli
from covtrend.config import CovtrendConfig
from covtrend.history.entries import dump_history
from covtrend.models.history import HistoryEntry, OverallSnapshot
from covtrend.runner import RunResult

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _local_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_ACTIONS", raising=False)
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)


def _history_file(tmp_path: Path) -> Path:
    history = [
        HistoryEntry(
            "2026-02-03T00:00:00+00:00", "main", "c3", OverallSnapshot(82.0, 0, 0), {":app": 90.0}
        ),
        HistoryEntry(
            "2026-02-02T00:00:00+00:00", "main", "c2", OverallSnapshot(80.0, 0, 0), {":app": 85.0}
        ),
        HistoryEntry("2026-02-01T00:00:00+00:00", "main", "c1", OverallSnapshot(75.0, 0, 0), {}),
    ]
    path = tmp_path / "coverage-history.json"
    path.write_text(dump_history(history), encoding="utf-8")
    return path


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert f"covtrend, version {__version__}" in result.output


class TestRunCommand:
    def test_success(self, tmp_path: Path) -> None:
        pipeline = AsyncMock(return_value=RunResult(success=True, coverage_percentage=82.0))
        with (
            patch("covtrend.cli.build_dependencies", MagicMock()) as build,
            patch("covtrend.cli.run_pipeline", pipeline),
        ):
            result = CliRunner().invoke(cli, ["run", "--path", str(tmp_path)])

        assert result.exit_code == 0, result.output
        config = build.call_args.args[0]
        assert isinstance(config, CovtrendConfig)
        assert config.root == str(tmp_path.resolve())

    def test_failure_exits_non_zero(self, tmp_path: Path) -> None:
        pipeline = AsyncMock(
            return_value=RunResult(success=False, coverage_percentage=40.0, error="too low")
        )
        with (
            patch("covtrend.cli.build_dependencies", MagicMock()),
            patch("covtrend.cli.run_pipeline", pipeline),
        ):
            result = CliRunner().invoke(cli, ["run", "--path", str(tmp_path)])

        assert result.exit_code == 1

    def test_invalid_config_aborts(self, tmp_path: Path) -> None:
        (tmp_path / ".covtrend.yml").write_text("coverage: [oops", encoding="utf-8")

        result = CliRunner().invoke(cli, ["run", "--path", str(tmp_path)])

        assert result.exit_code == 1
        assert "Failed to load configuration" in result.output

    def test_unknown_counter_reported_before_run(self, tmp_path: Path) -> None:
        (tmp_path / ".covtrend.yml").write_text("coverage:\n  counter: FOO\n", encoding="utf-8")

        result = CliRunner().invoke(cli, ["run", "--path", str(tmp_path)])

        assert result.exit_code == 1
        assert not isinstance(result.exception, ValueError)
        assert "Configuration is invalid" in result.output
        assert "coverage.counter must be one of" in result.output

    def test_history_file_outside_workspace_aborts(self, tmp_path: Path) -> None:
        (tmp_path / ".covtrend.yml").write_text(
            "history:\n  enabled: true\n  history_file: ../../etc/x.json\n", encoding="utf-8"
        )

        result = CliRunner().invoke(cli, ["run", "--path", str(tmp_path)])

        assert result.exit_code == 1
        assert "Failed to set up coverage run" in result.output

    def test_end_to_end_with_glob_discovery(self, tmp_path: Path) -> None:
        report = tmp_path / "app" / "build" / "reports" / "kover" / "report.xml"
        report.parent.mkdir(parents=True)
        report.write_text(
            '<report name="app"><counter type="INSTRUCTION" missed="20" covered="80"/></report>',
            encoding="utf-8",
        )

        result = CliRunner().invoke(cli, ["run", "--path", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert ":app" in result.output
        assert "80.0%" in result.output


class TestGraphCommand:
    def test_overall_graph(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["graph", str(_history_file(tmp_path))])

        assert result.exit_code == 0, result.output
        assert "**Overall Coverage**" in result.output
        assert "82%" in result.output
        assert "Feb 01" in result.output

    def test_module_graph(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(
            cli, ["graph", str(_history_file(tmp_path)), "--module", "app", "--title", "App"]
        )

        assert result.exit_code == 0, result.output
        assert "**App**" in result.output
        assert "90%" in result.output
        assert "Feb 02" in result.output

    def test_invalid_module(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["graph", str(_history_file(tmp_path)), "--module", "::"])

        assert result.exit_code == 2

    def test_empty_history(self, tmp_path: Path) -> None:
        path = tmp_path / "history.json"
        path.write_text("[]", encoding="utf-8")

        result = CliRunner().invoke(cli, ["graph", str(path)])

        assert result.exit_code == 0
        assert "No history data available." in result.output


class TestConfigCommands:
    def test_config_show_masks_token(self, tmp_path: Path) -> None:
        (tmp_path / ".covtrend.yml").write_text(
            "report:\n  github_token: ghs_1234567890abcdef\n", encoding="utf-8"
        )

        result = CliRunner().invoke(cli, ["config", "show", "--path", str(tmp_path)])

        assert result.exit_code == 0, result.output
        shown = yaml.safe_load(result.output)
        assert shown["report"]["github_token"] == "ghs_...cdef"
        assert "raw" not in shown

    def test_config_show_json_unmasked(self, tmp_path: Path) -> None:
        (tmp_path / ".covtrend.yml").write_text(
            "report:\n  github_token: short\n", encoding="utf-8"
        )

        result = CliRunner().invoke(
            cli, ["config", "show", "--path", str(tmp_path), "--json-output", "--no-mask"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["report"]["github_token"] == "short"

    def test_config_validate_ok(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["config", "validate", "--path", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Configuration is valid" in result.output

    def test_config_validate_reports_errors(self, tmp_path: Path) -> None:
        (tmp_path / ".covtrend.yml").write_text(
            "coverage:\n  min_coverage: 150\n", encoding="utf-8"
        )

        result = CliRunner().invoke(cli, ["config", "validate", "--path", str(tmp_path)])

        assert result.exit_code == 1
        assert "min_coverage must be between 0 and 100" in result.output


def test_mask_sensitive_values_short_and_long() -> None:
    data = _config_to_dict(CovtrendConfig(root="."))
    data["report"]["github_token"] = "abc"

    masked = _mask_sensitive_values(data)

    assert masked["report"]["github_token"] == "***"
    assert data["report"]["github_token"] == "abc"
