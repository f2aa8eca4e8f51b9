"""covtrend CLI: top-level command group."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from covtrend import __version__
from covtrend.config import ConfigError, CovtrendConfig, load_config, validate_config
from covtrend.history.entries import load_history
from covtrend.reporters.graphs import generate_trend_graph
from covtrend.reporters.markdown import build_trend_points
from covtrend.reporters.terminal import reporter
from covtrend.runner import build_dependencies, run_pipeline
from covtrend.utils.actions import configure_logging
from covtrend.utils.paths import PathSecurityError, normalize_module_name

logger = logging.getLogger(__name__)
console = Console()

# Masking thresholds
_MIN_MASKED_VALUE_LENGTH = 8

_SENSITIVE_KEYS = {"token", "github_token"}


def _config_to_dict(config: Any) -> dict[str, Any]:
    """Convert CovtrendConfig to dictionary for display."""
    result = asdict(config)
    # Remove the raw field as it's redundant
    result.pop("raw", None)
    return result


def _mask_sensitive_values(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Recursively mask sensitive values in configuration dict."""
    result = copy.deepcopy(config_dict)

    def _mask_dict(data: dict[str, Any]) -> None:
        for key, value in data.items():
            if key in _SENSITIVE_KEYS and isinstance(value, str) and value:
                if len(value) > _MIN_MASKED_VALUE_LENGTH:
                    data[key] = f"{value[:4]}...{value[-4:]}"
                else:
                    data[key] = "***"
            elif isinstance(value, dict):
                _mask_dict(value)

    _mask_dict(result)
    return result


def _setup_logging(*, debug: bool) -> None:
    if os.environ.get("GITHUB_ACTIONS") == "true":
        configure_logging(debug=debug)
        return

    covtrend_logger = logging.getLogger("covtrend")
    covtrend_logger.handlers = [RichHandler(console=console, show_path=False)]
    covtrend_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    covtrend_logger.propagate = False


def _load_config_or_abort(path: str) -> Any:
    try:
        return load_config(path)
    except ConfigError as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e


def _abort_on_invalid_config(config: CovtrendConfig) -> None:
    errors = validate_config(config)
    if errors:
        reporter.print_error("Configuration is invalid:")
        for error in errors:
            console.print(f"  • {error}")
        raise click.Abort


@click.group()
@click.version_option(version=__version__, prog_name="covtrend")
def cli() -> None:
    """covtrend: Kover coverage aggregation, thresholds and trend history."""


@cli.command("run")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Workspace root directory.",
)
@click.option("--debug", is_flag=True, help="Enable debug logging.")
def run(path: str, *, debug: bool) -> None:
    """Aggregate coverage, update history and report.

    Settings come from `.covtrend.yml` and, inside GitHub Actions, from the
    action inputs (`INPUT_*` environment variables).

    Example:
      covtrend run --path ./android
    """
    config = _load_config_or_abort(path)
    _setup_logging(debug=debug or config.debug)
    _abort_on_invalid_config(config)

    try:
        deps = build_dependencies(config)
    except (PathSecurityError, ValueError) as e:
        reporter.print_error(f"Failed to set up coverage run: {e}")
        raise click.Abort from e

    result = asyncio.run(run_pipeline(config, deps))
    if not result.success:
        sys.exit(1)


@cli.command("graph")
@click.argument("history_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--module", "module_id", default=None, help="Graph a single module (e.g. :app).")
@click.option("--title", default=None, help="Graph title.")
def graph(history_file: str, module_id: str | None, title: str | None) -> None:
    """Print the coverage trend recorded in a history JSON file.

    Example:
      covtrend graph .coverage-history/coverage-history.json --module :core:common
    """
    try:
        module = normalize_module_name(module_id) if module_id else None
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--module") from e

    history = load_history(Path(history_file).read_text(encoding="utf-8"))
    default_title = f"{module} Coverage" if module else "Overall Coverage"
    points = build_trend_points(history, module)
    reporter.print_graph(generate_trend_graph(points, title or default_title))


@cli.group("config")
def config_group() -> None:
    """Inspect `.covtrend.yml` configuration."""


@config_group.command("show")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Workspace root directory.",
)
@click.option(
    "--json-output",
    "as_json",
    is_flag=True,
    help="Output as JSON instead of YAML.",
)
@click.option(
    "--no-mask",
    is_flag=True,
    help="Show sensitive values unmasked (use with caution).",
)
def config_show(path: str, *, as_json: bool, no_mask: bool) -> None:
    """Display resolved configuration with masked sensitive values.

    Example:
      covtrend config show
      covtrend config show --json-output
    """
    config = _load_config_or_abort(path)

    config_dict = _config_to_dict(config)
    if not no_mask:
        config_dict = _mask_sensitive_values(config_dict)

    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Workspace root directory.",
)
def config_validate(path: str) -> None:
    """Validate the resolved configuration."""
    config = _load_config_or_abort(path)
    _abort_on_invalid_config(config)
    reporter.print_success("Configuration is valid")


if __name__ == "__main__":
    cli()
