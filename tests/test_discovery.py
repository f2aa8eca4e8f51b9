"""Tests for module discovery."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from covtrend.config import DiscoveryConfig
from covtrend.coverage.aggregator import ModuleReference
from covtrend.discovery import (
    CommandDiscovery,
    DiscoveryError,
    GlobDiscovery,
    create_discovery,
    extract_module_name,
    filter_ignored_modules,
    parse_gradle_projects,
)
from covtrend.utils.subprocess_runner import SubprocessError, SubprocessResult

_GRADLE_OUTPUT = """
------------------------------------------------------------
Root project 'android-app'
------------------------------------------------------------

Root project 'android-app'
+--- Project ':app'
+--- Project ':core'
|    +--- Project ':core:common'
|    \\--- Project ':core:testing'
\\--- Project ':feature:login'
"""

_TEMPLATE = "{module}/build/reports/kover/report.xml"


def _result(stdout: str = "", returncode: int = 0, stderr: str = "") -> SubprocessResult:
    return SubprocessResult(
        returncode=returncode, stdout=stdout, stderr=stderr, success=returncode == 0
    )


def _touch(root: Path, relative: str) -> None:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("<report/>", encoding="utf-8")


class TestParseGradleProjects:
    def test_skips_root_project(self) -> None:
        assert parse_gradle_projects(_GRADLE_OUTPUT) == [
            ":app",
            ":core",
            ":core:common",
            ":core:testing",
            ":feature:login",
        ]

    def test_adds_leading_colon(self) -> None:
        assert parse_gradle_projects("Project 'lib'") == [":lib"]

    def test_no_projects(self) -> None:
        assert parse_gradle_projects("BUILD SUCCESSFUL") == []


def test_filter_ignored_modules_normalizes_names() -> None:
    modules = [":app", ":core", ":sample"]

    assert filter_ignored_modules(modules, ["sample", ":core:", " "]) == [":app"]


@pytest.mark.parametrize(
    ("path", "module"),
    [
        ("core/common/build/reports/kover/report.xml", ":core:common"),
        ("app/build/reports/kover/reportDebug.xml", ":app"),
        ("lib/kover/report.xml", ":lib"),
        ("feature/login/report.xml", ":feature:login"),
        ("core\\data\\build\\reports\\kover\\report.xml", ":core:data"),
    ],
)
def test_extract_module_name(path: str, module: str) -> None:
    assert extract_module_name(path) == module


class TestCommandDiscovery:
    @pytest.mark.asyncio
    async def test_resolves_paths_from_template(self, tmp_path: Path) -> None:
        run = AsyncMock(return_value=_result(_GRADLE_OUTPUT))
        discovery = CommandDiscovery("./gradlew -q projects", _TEMPLATE, tmp_path)

        with patch("covtrend.discovery.run_subprocess", run):
            modules = await discovery.discover([":core", "core:testing"])

        assert modules == [
            ModuleReference(":app", "app/build/reports/kover/report.xml"),
            ModuleReference(":core:common", "core/common/build/reports/kover/report.xml"),
            ModuleReference(":feature:login", "feature/login/build/reports/kover/report.xml"),
        ]
        assert run.call_args.args[0] == ["./gradlew", "-q", "projects"]
        assert run.call_args.kwargs["cwd"] == tmp_path

    @pytest.mark.asyncio
    async def test_all_ignored_raises(self, tmp_path: Path) -> None:
        run = AsyncMock(return_value=_result("Project ':app'"))
        discovery = CommandDiscovery("./gradlew projects", _TEMPLATE, tmp_path)

        with (
            patch("covtrend.discovery.run_subprocess", run),
            pytest.raises(DiscoveryError, match="No modules found"),
        ):
            await discovery.discover([":app"])

    @pytest.mark.asyncio
    async def test_failed_command_raises(self, tmp_path: Path) -> None:
        run = AsyncMock(return_value=_result(returncode=1, stderr="Task 'projects' not found"))
        discovery = CommandDiscovery("./gradlew projects", _TEMPLATE, tmp_path)

        with (
            patch("covtrend.discovery.run_subprocess", run),
            pytest.raises(DiscoveryError, match="exit code 1"),
        ):
            await discovery.discover([])

    @pytest.mark.asyncio
    async def test_missing_executable_raises(self, tmp_path: Path) -> None:
        error = SubprocessError("Command not found: gradle", result=_result(returncode=-1))
        discovery = CommandDiscovery("gradle projects", _TEMPLATE, tmp_path)

        with (
            patch("covtrend.discovery.run_subprocess", AsyncMock(side_effect=error)),
            pytest.raises(DiscoveryError, match="Command not found"),
        ):
            await discovery.discover([])

    def test_empty_command_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            CommandDiscovery("  ", _TEMPLATE, tmp_path)


class TestGlobDiscovery:
    @pytest.mark.asyncio
    async def test_finds_reports(self, tmp_path: Path) -> None:
        _touch(tmp_path, "app/build/reports/kover/report.xml")
        _touch(tmp_path, "core/common/build/reports/kover/report.xml")
        _touch(tmp_path, "sample/build/reports/kover/report.xml")
        _touch(tmp_path, "app/build/reports/other.txt")

        modules = await GlobDiscovery("**/build/reports/kover/report.xml", tmp_path).discover(
            ["sample"]
        )

        assert modules == [
            ModuleReference(":app", "app/build/reports/kover/report.xml"),
            ModuleReference(":core:common", "core/common/build/reports/kover/report.xml"),
        ]

    @pytest.mark.asyncio
    async def test_no_matches_raises(self, tmp_path: Path) -> None:
        with pytest.raises(DiscoveryError, match="No coverage files found"):
            await GlobDiscovery("**/kover/report.xml", tmp_path).discover([])

    @pytest.mark.asyncio
    async def test_absolute_pattern_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(DiscoveryError, match="relative"):
            await GlobDiscovery("/tmp/**/report.xml", tmp_path).discover([])


def test_create_discovery_selects_strategy(tmp_path: Path) -> None:
    assert isinstance(
        create_discovery(DiscoveryConfig(command="./gradlew projects"), tmp_path),
        CommandDiscovery,
    )
    assert isinstance(create_discovery(DiscoveryConfig(), tmp_path), GlobDiscovery)
