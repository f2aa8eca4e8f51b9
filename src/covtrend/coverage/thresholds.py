"""Per-module threshold resolution.

Threshold keys are matched in priority order:

1. Exact module id (e.g. ``:core:testing``)
2. Module type, the first path segment (e.g. ``core``)
3. The ``default`` key
4. The global minimum coverage
5. Hard default of 0
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"


def module_type(module_id: str) -> str:
    """Return the first non-empty ``:``-segment of a module id.

    Examples:
        >>> module_type(":core:testing")
        'core'
        >>> module_type("")
        'default'
    """
    parts = [part for part in module_id.split(":") if part.strip()]
    return parts[0] if parts else DEFAULT_KEY


def resolve_threshold(
    module_id: str,
    thresholds: Mapping[str, float],
    min_coverage: float | None = None,
) -> float:
    """Resolve the coverage threshold for a module.

    Args:
        module_id: Module id in canonical form.
        thresholds: Threshold configuration mapping.
        min_coverage: Global minimum coverage used when no key matches.

    Returns:
        Threshold percentage for the module. The first matching tier wins.
    """
    if module_id in thresholds:
        logger.debug("Threshold for %s: %s (exact match)", module_id, thresholds[module_id])
        return float(thresholds[module_id])

    mtype = module_type(module_id)
    if mtype != DEFAULT_KEY and mtype in thresholds:
        logger.debug("Threshold for %s: %s (type match: %s)", module_id, thresholds[mtype], mtype)
        return float(thresholds[mtype])

    if DEFAULT_KEY in thresholds:
        logger.debug("Threshold for %s: %s (default)", module_id, thresholds[DEFAULT_KEY])
        return float(thresholds[DEFAULT_KEY])

    if min_coverage is not None:
        logger.debug("Threshold for %s: %s (min-coverage)", module_id, min_coverage)
        return float(min_coverage)

    return 0.0


def meets_threshold(percentage: float, threshold: float) -> bool:
    """Return True if percentage reaches threshold (inclusive)."""
    return percentage >= threshold
