"""GitHub Actions workflow-command helpers.

Log records are rendered as workflow commands so warnings and errors show
up as annotations on the run; step outputs go to the ``$GITHUB_OUTPUT``
file.
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Mapping

_ROOT_LOGGER = "covtrend"

_COMMANDS = {
    logging.DEBUG: "debug",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


def escape_data(value: str) -> str:
    """Escape a workflow-command payload (``%``, CR and LF)."""
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class GitHubActionsHandler(logging.StreamHandler[TextIO]):
    """Logging handler that emits GitHub workflow commands.

    ``INFO`` records are printed as plain lines; other levels are prefixed
    with ``::debug::``, ``::warning::`` or ``::error::``.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        command = _COMMANDS.get(record.levelno)
        if command is None:
            return message
        return f"::{command}::{escape_data(message)}"


def configure_logging(*, debug: bool = False, stream: TextIO | None = None) -> logging.Logger:
    """Install a :class:`GitHubActionsHandler` on the ``covtrend`` logger.

    Calling this again replaces the previously installed handler.

    Args:
        debug: Emit ``DEBUG`` records as well.
        stream: Output stream; defaults to stdout, where the runner reads
            workflow commands.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, GitHubActionsHandler):
            logger.removeHandler(handler)

    handler = GitHubActionsHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False
    return logger


def set_output(name: str, value: str, env: Mapping[str, str] | None = None) -> None:
    """Set a step output.

    Appends to the file named by ``$GITHUB_OUTPUT``; outside Actions the
    output is printed in the legacy ``::set-output`` form.
    """
    env = os.environ if env is None else env
    output_file = env.get("GITHUB_OUTPUT")
    if not output_file:
        sys.stdout.write(f"::set-output name={name}::{escape_data(value)}\n")
        return

    if "\n" in value:
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        line = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
    else:
        line = f"{name}={value}\n"
    with Path(output_file).open("a", encoding="utf-8") as fh:
        fh.write(line)


def mask_secret(value: str, stream: TextIO | None = None) -> None:
    """Ask the runner to mask ``value`` in all subsequent log output."""
    if value:
        (stream or sys.stdout).write(f"::add-mask::{escape_data(value)}\n")
