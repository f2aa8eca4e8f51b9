"""Configuration from ``.covtrend.yml`` and GitHub Action inputs.

Values are layered: built-in defaults, then ``.covtrend.yml`` (with
``${ENV_VAR}`` expansion), then action inputs passed as ``INPUT_<NAME>``
environment variables (e.g. ``INPUT_MIN-COVERAGE``).
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from covtrend.adapters.coverage.kover import COUNTER_TYPES, DEFAULT_COUNTER
from covtrend.coverage.thresholds import DEFAULT_KEY
from covtrend.history.entries import DEFAULT_BASELINE_BRANCH, DEFAULT_HISTORY_RETENTION
from covtrend.history.locator import DEFAULT_MAX_PAGES
from covtrend.history.store import DEFAULT_ARTIFACT_NAME, DEFAULT_HISTORY_FILE
from covtrend.utils.paths import MODULE_PLACEHOLDER, normalize_module_name

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".covtrend.yml"

DEFAULT_COVERAGE_FILES = "**/build/reports/kover/report.xml"
DEFAULT_MODULE_PATH_TEMPLATE = "{module}/build/reports/kover/report.xml"
DEFAULT_THRESHOLDS: dict[str, float] = {DEFAULT_KEY: 60.0}
DEFAULT_TITLE = "Code Coverage Report"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")
_MAX_PERCENTAGE = 100.0
_TRUE_VALUES = {"true", "yes", "1", "on"}
_FALSE_VALUES = {"false", "no", "0", "off"}


class ConfigError(Exception):
    """Raised when configuration values cannot be parsed."""


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


@dataclass
class DiscoveryConfig:
    """How modules and their coverage reports are found."""

    command: str = ""
    """Command listing Gradle projects; empty selects glob discovery."""

    coverage_files: str = DEFAULT_COVERAGE_FILES
    """Glob for coverage reports (glob discovery)."""

    module_path_template: str = DEFAULT_MODULE_PATH_TEMPLATE
    """Report path template with a ``{module}`` placeholder (command discovery)."""

    ignored_modules: list[str] = field(default_factory=list)
    """Module ids excluded from discovery, in canonical form."""

    @property
    def mode(self) -> str:
        """``"command"`` or ``"glob"``."""
        return "command" if self.command.strip() else "glob"


@dataclass
class ThresholdSettings:
    """Coverage requirements."""

    thresholds: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    """Threshold per module id, module type or ``default``."""

    min_coverage: float = 0.0
    """Minimum overall coverage; also the last threshold fallback."""

    counter: str = DEFAULT_COUNTER
    """Kover counter type used for percentages."""


@dataclass
class ReportConfig:
    """Report output settings."""

    title: str = DEFAULT_TITLE
    enable_pr_comment: bool = True

    github_token: str = ""
    """Token for PR comments and artifact lookup (supports ${ENV_VAR} expansion)."""


@dataclass
class HistoryConfig:
    """Coverage history tracking."""

    enabled: bool = False
    retention: int = DEFAULT_HISTORY_RETENTION
    baseline_branch: str = DEFAULT_BASELINE_BRANCH
    artifact_name: str = DEFAULT_ARTIFACT_NAME

    history_file: str = DEFAULT_HISTORY_FILE
    """Workspace-relative path of the history JSON file."""

    max_pages: int = DEFAULT_MAX_PAGES
    """Upper bound on workflow-run pages searched for the baseline artifact."""


@dataclass
class CovtrendConfig:
    """Complete covtrend configuration."""

    root: str
    """Workspace root; report paths are resolved against it."""

    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    coverage: ThresholdSettings = field(default_factory=ThresholdSettings)
    report: ReportConfig = field(default_factory=ReportConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    debug: bool = False

    raw: dict[str, Any] = field(default_factory=dict)
    """Raw parsed YAML for extension/debugging."""


def _validate_threshold_key(key: str) -> None:
    if key == DEFAULT_KEY:
        return
    if key.startswith(":"):
        if "::" in key:
            raise ConfigError(
                f"Threshold key '{key}' is invalid: module names cannot contain empty segments (::)"
            )
        if key == ":" or key.endswith(":"):
            raise ConfigError(f"Threshold key '{key}' is invalid: incomplete module name")
        return
    if ":" in key:
        raise ConfigError(
            f"Threshold key '{key}' is invalid: module types cannot contain colons "
            "(use leading colon for full module names)"
        )
    if not key.strip():
        raise ConfigError("Threshold key cannot be empty")


def parse_thresholds(value: str | Mapping[str, Any] | None) -> dict[str, float]:
    """Parse and validate a threshold mapping.

    Args:
        value: A JSON object string (action input) or a mapping (YAML).
            Empty input yields an empty mapping.

    Raises:
        ConfigError: If the JSON is invalid or a key or value is malformed.
    """
    if value is None:
        return {}
    if isinstance(value, str):
        if not value.strip():
            return {}
        try:
            value = json.loads(value)
        except ValueError as e:
            raise ConfigError(
                f"Invalid threshold JSON: {e}. "
                'Expected format: {"core": 80, ":specific:module": 90, "default": 60}'
            ) from e
    if not isinstance(value, dict):
        raise ConfigError("Thresholds must be a JSON object")

    thresholds: dict[str, float] = {}
    for key, raw in value.items():
        _validate_threshold_key(str(key))
        if isinstance(raw, bool) or not isinstance(raw, int | float):
            raise ConfigError(
                f"Threshold value for '{key}' must be a number, got: {type(raw).__name__}"
            )
        if not 0 <= raw <= _MAX_PERCENTAGE:
            raise ConfigError(f"Threshold value for '{key}' must be between 0 and 100, got: {raw}")
        thresholds[str(key)] = float(raw)
    return thresholds


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"Invalid {name} value: {value!r}. Must be true or false.")


def _parse_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid {name} value: {value!r}. Must be a number.") from e


def _parse_positive_int(value: Any, name: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid {name} value: {value!r}. Must be a positive integer.") from e
    if parsed < 1:
        raise ConfigError(f"Invalid {name} value: {value!r}. Must be a positive integer.")
    return parsed


def _parse_module_list(value: Any) -> list[str]:
    items = value.split(",") if isinstance(value, str) else list(value or [])
    modules: list[str] = []
    for item in items:
        entry = str(item).strip()
        if not entry:
            continue
        try:
            modules.append(normalize_module_name(entry))
        except ValueError as e:
            raise ConfigError(f"Invalid module name in ignore-modules: {e}") from e
    return modules


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


def _action_inputs(env: Mapping[str, str]) -> dict[str, str]:
    """Collect non-empty ``INPUT_*`` variables keyed by lower-case input name."""
    return {
        key[len("INPUT_") :].lower(): value
        for key, value in env.items()
        if key.startswith("INPUT_") and value.strip()
    }


def load_config(root: str | Path, env: Mapping[str, str] | None = None) -> CovtrendConfig:
    """Load the complete configuration.

    Args:
        root: Workspace root holding ``.covtrend.yml``.
        env: Environment providing action inputs; defaults to ``os.environ``.

    Raises:
        ConfigError: If a value cannot be parsed.
    """
    env = os.environ if env is None else env
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        try:
            parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {CONFIG_FILENAME}: {e}") from e
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)

    inputs = _action_inputs(env)

    discovery_raw = _section(raw, "discovery")
    discovery = DiscoveryConfig(
        command=str(inputs.get("discovery-command", discovery_raw.get("command", ""))),
        coverage_files=str(
            inputs.get(
                "coverage-files", discovery_raw.get("coverage_files", DEFAULT_COVERAGE_FILES)
            )
        ),
        module_path_template=str(
            inputs.get(
                "module-path-template",
                discovery_raw.get("module_path_template", DEFAULT_MODULE_PATH_TEMPLATE),
            )
        ),
        ignored_modules=_parse_module_list(
            inputs.get("ignore-modules", discovery_raw.get("ignored_modules", []))
        ),
    )

    coverage_raw = _section(raw, "coverage")
    thresholds_value = inputs.get("thresholds", coverage_raw.get("thresholds"))
    coverage = ThresholdSettings(
        thresholds=(
            dict(DEFAULT_THRESHOLDS)
            if thresholds_value is None
            else parse_thresholds(thresholds_value)
        ),
        min_coverage=_parse_float(
            inputs.get("min-coverage", coverage_raw.get("min_coverage", 0.0)), "min-coverage"
        ),
        counter=str(inputs.get("counter", coverage_raw.get("counter", DEFAULT_COUNTER))).upper(),
    )

    report_raw = _section(raw, "report")
    report = ReportConfig(
        title=str(inputs.get("title", report_raw.get("title", DEFAULT_TITLE))),
        enable_pr_comment=_parse_bool(
            inputs.get("enable-pr-comment", report_raw.get("enable_pr_comment", True)),
            "enable-pr-comment",
        ),
        github_token=str(inputs.get("github-token", report_raw.get("github_token", ""))),
    )

    history_raw = _section(raw, "history")
    history = HistoryConfig(
        enabled=_parse_bool(
            inputs.get("enable-history", history_raw.get("enabled", False)), "enable-history"
        ),
        retention=_parse_positive_int(
            inputs.get(
                "history-retention", history_raw.get("retention", DEFAULT_HISTORY_RETENTION)
            ),
            "history-retention",
        ),
        baseline_branch=str(
            inputs.get(
                "baseline-branch", history_raw.get("baseline_branch", DEFAULT_BASELINE_BRANCH)
            )
        ),
        artifact_name=str(
            inputs.get(
                "history-artifact-name", history_raw.get("artifact_name", DEFAULT_ARTIFACT_NAME)
            )
        ),
        history_file=str(
            inputs.get("history-file", history_raw.get("history_file", DEFAULT_HISTORY_FILE))
        ),
        max_pages=_parse_positive_int(
            inputs.get("history-max-pages", history_raw.get("max_pages", DEFAULT_MAX_PAGES)),
            "history-max-pages",
        ),
    )

    debug = _parse_bool(inputs.get("debug", raw.get("debug", False)), "debug")

    return CovtrendConfig(
        root=str(root_path),
        discovery=discovery,
        coverage=coverage,
        report=report,
        history=history,
        debug=debug,
        raw=raw,
    )


def _validate_coverage_config(coverage: ThresholdSettings) -> list[str]:
    errors: list[str] = []

    if not 0.0 <= coverage.min_coverage <= _MAX_PERCENTAGE:
        errors.append(
            f"coverage.min_coverage must be between 0 and 100 (got: {coverage.min_coverage})"
        )

    if coverage.counter not in COUNTER_TYPES:
        errors.append(
            f"coverage.counter must be one of {', '.join(COUNTER_TYPES)} "
            f"(got: {coverage.counter})"
        )

    return errors


def _validate_discovery_config(discovery: DiscoveryConfig) -> list[str]:
    errors: list[str] = []

    if discovery.mode == "command" and MODULE_PLACEHOLDER not in discovery.module_path_template:
        errors.append(
            'discovery.module_path_template must contain "{module}" placeholder when using '
            'a discovery command. Example: "{module}/build/reports/kover/report.xml"'
        )

    if discovery.mode == "glob" and not discovery.coverage_files.strip():
        errors.append("discovery.coverage_files must not be empty when no command is set")

    return errors


def _validate_history_config(history: HistoryConfig) -> list[str]:
    errors: list[str] = []

    if history.retention < 1:
        errors.append(f"history.retention must be at least 1 (got: {history.retention})")

    if history.max_pages < 1:
        errors.append(f"history.max_pages must be at least 1 (got: {history.max_pages})")

    if history.enabled and not history.baseline_branch.strip():
        errors.append("history.baseline_branch is required when history is enabled")

    return errors


def validate_config(config: CovtrendConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []
    errors.extend(_validate_discovery_config(config.discovery))
    errors.extend(_validate_coverage_config(config.coverage))
    errors.extend(_validate_history_config(config.history))
    return errors
