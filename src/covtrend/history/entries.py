"""Pure functions over coverage history lists.

History lists are ordered newest first. None of these functions mutate
their inputs.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from covtrend.models.history import (
    HistoryComparison,
    HistoryContext,
    HistoryEntry,
    HistorySnapshot,
    OverallSnapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_RETENTION = 50
DEFAULT_BASELINE_BRANCH = "main"

# Deltas within this band are shown as "no change"
_TREND_DEAD_BAND = 0.1


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def is_valid_history_entry(data: Any) -> bool:
    """Return True if data has the persisted HistoryEntry shape."""
    if not isinstance(data, dict):
        return False
    overall = data.get("overall")
    modules = data.get("modules")
    return (
        isinstance(data.get("timestamp"), str)
        and isinstance(data.get("branch"), str)
        and isinstance(data.get("commit"), str)
        and isinstance(overall, dict)
        and _is_number(overall.get("percentage"))
        and _is_number(overall.get("covered"))
        and _is_number(overall.get("total"))
        and isinstance(modules, dict)
        and all(isinstance(k, str) and _is_number(v) for k, v in modules.items())
    )


def load_history(text: str | None) -> list[HistoryEntry]:
    """Parse a persisted history blob.

    Invalid JSON, a non-array value, or a missing blob yields an empty
    history. Malformed entries are dropped.
    """
    if not text:
        return []
    try:
        parsed = json.loads(text)
    except ValueError as e:
        logger.debug("Ignoring unreadable coverage history: %s", e)
        return []
    if not isinstance(parsed, list):
        logger.debug("Ignoring coverage history that is not a JSON array")
        return []

    entries = [HistoryEntry.from_dict(item) for item in parsed if is_valid_history_entry(item)]
    if len(entries) != len(parsed):
        logger.debug("Dropped %d malformed history entries", len(parsed) - len(entries))
    return entries


def dump_history(history: list[HistoryEntry] | tuple[HistoryEntry, ...]) -> str:
    """Serialize history to the persisted JSON format."""
    return json.dumps([entry.to_dict() for entry in history], indent=2, ensure_ascii=False)


def add_history_entry(history: list[HistoryEntry], entry: HistoryEntry) -> list[HistoryEntry]:
    """Return a new list with entry prepended."""
    return [entry, *history]


def trim_history(history: list[HistoryEntry], retention: int) -> list[HistoryEntry]:
    """Return a new list holding at most the newest ``retention`` entries."""
    return history[: max(retention, 0)]


def create_history_entry(context: HistoryContext, snapshot: HistorySnapshot) -> HistoryEntry:
    """Build a history entry from run context and snapshot."""
    return HistoryEntry(
        timestamp=context.timestamp,
        branch=context.branch,
        commit=context.commit,
        overall=OverallSnapshot(
            percentage=snapshot.overall,
            covered=snapshot.covered,
            total=snapshot.total,
        ),
        modules=dict(snapshot.modules),
    )


def find_baseline(history: list[HistoryEntry], baseline_branch: str) -> HistoryEntry | None:
    """Return the most recent entry recorded on the baseline branch."""
    return next((entry for entry in history if entry.branch == baseline_branch), None)


def compare_with_baseline(
    history: list[HistoryEntry],
    snapshot: HistorySnapshot,
    baseline_branch: str,
) -> HistoryComparison | None:
    """Compare a snapshot with the latest baseline-branch entry.

    Returns:
        The comparison, or None if no entry exists for the baseline branch.
        Modules only present in the baseline are omitted from the deltas.
    """
    baseline = find_baseline(history, baseline_branch)
    if baseline is None:
        return None

    module_delta: dict[str, float | None] = {}
    for module, percentage in snapshot.modules.items():
        previous = baseline.modules.get(module)
        module_delta[module] = None if previous is None else percentage - previous

    return HistoryComparison(
        baseline=baseline,
        overall_delta=snapshot.overall - baseline.overall.percentage,
        module_delta=module_delta,
    )


def trend_indicator(delta: float) -> str:
    """Return an arrow for a coverage delta: ↑, ↓ or → (within ±0.1)."""
    if delta > _TREND_DEAD_BAND:
        return "↑"
    if delta < -_TREND_DEAD_BAND:
        return "↓"
    return "→"


def format_delta(delta: float) -> str:
    """Format a delta with sign, e.g. ``+2.5%`` or ``-1.0%``."""
    sign = "+" if delta >= 0 else ""
    return f"{sign}{delta:.1f}%"
