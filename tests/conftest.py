"""Shared fixtures."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def _reset_covtrend_logger() -> Iterator[None]:
    """Undo handlers installed by the CLI so caplog sees every record."""
    yield
    covtrend_logger = logging.getLogger("covtrend")
    covtrend_logger.handlers.clear()
    covtrend_logger.propagate = True
    covtrend_logger.setLevel(logging.NOTSET)
