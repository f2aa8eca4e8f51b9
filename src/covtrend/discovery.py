"""Module discovery: find build modules and their coverage reports.

Two strategies are supported:

- **command**: run a command such as ``./gradlew -q projects`` and parse the
  ``Project ':a:b'`` lines it prints; report paths come from a
  ``{module}`` path template.
- **glob**: find coverage reports with a glob pattern and derive module ids
  from their paths.
"""

from __future__ import annotations

import logging
import re
import shlex
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from covtrend.coverage.aggregator import ModuleReference
from covtrend.utils.paths import normalize_module_name, resolve_module_path
from covtrend.utils.subprocess_runner import DEFAULT_TIMEOUT, SubprocessError, run_subprocess

if TYPE_CHECKING:
    from covtrend.config import DiscoveryConfig

logger = logging.getLogger(__name__)

_GRADLE_PROJECT_RE = re.compile(r"Project '([^']+)'")

# Report locations stripped from a path to recover the module directory, in priority order
_REPORT_SUFFIXES = (
    re.compile(r"/build/reports/kover/report\.xml$"),
    re.compile(r"/build/reports/kover/[^/]+\.xml$"),
    re.compile(r"/kover/report\.xml$"),
    re.compile(r"/report\.xml$"),
)


class DiscoveryError(Exception):
    """Raised when no modules can be discovered."""


def parse_gradle_projects(output: str) -> list[str]:
    """Extract module ids from ``gradle projects`` output.

    Examples:
        >>> parse_gradle_projects("+--- Project ':app'\\n+--- Project ':core:common'")
        [':app', ':core:common']
    """
    modules: list[str] = []
    for match in _GRADLE_PROJECT_RE.finditer(output or ""):
        name = match.group(1)
        if "Root project" in name:
            continue
        modules.append(name if name.startswith(":") else f":{name}")
    return modules


def filter_ignored_modules(modules: list[str], ignored_modules: list[str]) -> list[str]:
    """Drop modules listed in ``ignored_modules`` (leading colon optional)."""
    ignored = {normalize_module_name(m) for m in ignored_modules if m.strip()}
    return [m for m in modules if m not in ignored]


def extract_module_name(file_path: str) -> str:
    """Derive a module id from a workspace-relative report path.

    Examples:
        >>> extract_module_name("core/common/build/reports/kover/report.xml")
        ':core:common'
        >>> extract_module_name("app/build/reports/kover/reportRelease.xml")
        ':app'
    """
    module_path = file_path.replace("\\", "/")
    for suffix in _REPORT_SUFFIXES:
        if suffix.search(module_path):
            module_path = suffix.sub("", module_path)
            break
    return ":" + module_path.replace("/", ":")


class ModuleDiscovery(ABC):
    """Strategy for finding modules and their report paths."""

    @abstractmethod
    async def discover(self, ignored_modules: list[str]) -> list[ModuleReference]:
        """Return discovered modules, excluding ``ignored_modules``.

        Raises:
            DiscoveryError: If no modules are found or discovery fails.
        """


class CommandDiscovery(ModuleDiscovery):
    """Discover modules from the output of a command (no shell involved)."""

    def __init__(
        self,
        command: str,
        path_template: str,
        root: Path,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not command.strip():
            raise ValueError("Discovery command cannot be empty")
        self._command = command
        self._path_template = path_template
        self._root = root
        self._timeout = timeout

    async def discover(self, ignored_modules: list[str]) -> list[ModuleReference]:
        args = shlex.split(self._command)
        try:
            result = await run_subprocess(args, cwd=self._root, timeout=self._timeout)
        except SubprocessError as exc:
            raise DiscoveryError(f"Discovery command failed: {exc}") from exc
        if not result.success:
            raise DiscoveryError(
                f"Discovery command failed with exit code {result.returncode}\n"
                f"Stderr: {result.stderr.strip()}"
            )

        logger.debug("Discovery command output:\n%s", result.stdout)
        names = filter_ignored_modules(parse_gradle_projects(result.stdout), ignored_modules)
        if not names:
            raise DiscoveryError(
                "No modules found by discovery command.\n"
                f"Command: {self._command}\n"
                "Possible causes:\n"
                "- Command output does not contain \"Project '...'\" patterns\n"
                "- All modules are in the ignore-modules list\n"
                "Tip: Run the command locally to verify its output format."
            )

        logger.debug("Discovered %d modules: %s", len(names), ", ".join(names))
        return [
            ModuleReference(name=name, file_path=resolve_module_path(name, self._path_template))
            for name in names
        ]


class GlobDiscovery(ModuleDiscovery):
    """Discover modules by globbing for coverage reports under ``root``."""

    def __init__(self, pattern: str, root: Path) -> None:
        if not pattern.strip():
            raise ValueError("Glob pattern cannot be empty")
        self._pattern = pattern
        self._root = root

    async def discover(self, ignored_modules: list[str]) -> list[ModuleReference]:
        if PurePosixPath(self._pattern).is_absolute():
            raise DiscoveryError(f"Glob pattern must be relative to the workspace: {self._pattern}")

        logger.debug("Searching for coverage files with pattern: %s", self._pattern)
        files = sorted(
            path.relative_to(self._root).as_posix()
            for path in self._root.glob(self._pattern)
            if path.is_file()
        )
        logger.debug("Found %d coverage files", len(files))

        modules: list[ModuleReference] = []
        for file_path in files:
            module = extract_module_name(file_path)
            if not filter_ignored_modules([module], ignored_modules):
                logger.debug("Ignoring module: %s", module)
                continue
            modules.append(ModuleReference(name=module, file_path=file_path))

        if not modules:
            raise DiscoveryError(
                "No coverage files found matching pattern.\n"
                f"Pattern: {self._pattern}\n"
                "Possible causes:\n"
                "- Coverage reports not generated (run tests with coverage first)\n"
                "- Pattern does not match actual file locations\n"
                "- All matching modules are in the ignore-modules list"
            )
        return modules


def create_discovery(
    config: DiscoveryConfig, root: Path, *, timeout: float = DEFAULT_TIMEOUT
) -> ModuleDiscovery:
    """Build the discovery strategy selected by ``config``."""
    if config.mode == "command":
        return CommandDiscovery(config.command, config.module_path_template, root, timeout=timeout)
    return GlobDiscovery(config.coverage_files, root)


__all__ = [
    "CommandDiscovery",
    "DiscoveryError",
    "GlobDiscovery",
    "ModuleDiscovery",
    "create_discovery",
    "extract_module_name",
    "filter_ignored_modules",
    "parse_gradle_projects",
]
