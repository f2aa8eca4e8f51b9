"""Stateful coordinator for coverage history.

Lifecycle: ``load()`` -> ``compare()`` / ``append()`` -> ``persist()``.

The manager holds an immutable :class:`HistoryState` and replaces it on
every transition, so lists handed out by ``get_history()`` are never
affected by later calls. A manager instance is single-writer; callers
serialize calls on it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from covtrend.history.entries import (
    DEFAULT_BASELINE_BRANCH,
    DEFAULT_HISTORY_RETENTION,
    add_history_entry,
    compare_with_baseline,
    create_history_entry,
    dump_history,
    load_history,
    trim_history,
)

if TYPE_CHECKING:
    from covtrend.history.store import HistoryStore
    from covtrend.models.history import (
        HistoryComparison,
        HistoryContext,
        HistoryEntry,
        HistorySnapshot,
    )

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryState:
    """Immutable history snapshot with pure transitions."""

    entries: tuple[HistoryEntry, ...] = ()

    def with_loaded(self, entries: list[HistoryEntry]) -> HistoryState:
        return HistoryState(tuple(entries))

    def with_appended(self, entry: HistoryEntry) -> HistoryState:
        return HistoryState(tuple(add_history_entry(list(self.entries), entry)))

    def with_trimmed(self, retention: int) -> HistoryState:
        return HistoryState(tuple(trim_history(list(self.entries), retention)))


class HistoryManager:
    """Coordinates loading, comparing, recording and saving coverage history.

    Args:
        store: Backing store for the serialized history.
        retention: Maximum number of entries kept after ``append``.
        baseline_branch: Branch whose latest entry is the comparison baseline.
    """

    def __init__(
        self,
        store: HistoryStore,
        *,
        retention: int = DEFAULT_HISTORY_RETENTION,
        baseline_branch: str = DEFAULT_BASELINE_BRANCH,
    ) -> None:
        self._store = store
        self._retention = retention
        self._baseline_branch = baseline_branch
        self._state = HistoryState()

    @property
    def baseline_branch(self) -> str:
        return self._baseline_branch

    @property
    def state(self) -> HistoryState:
        return self._state

    def load(self) -> None:
        """Load history from the store.

        Unparseable content is treated as empty history. Store I/O errors
        propagate to the caller.
        """
        text = self._store.load()
        self._state = self._state.with_loaded(load_history(text))
        logger.debug("Loaded %d history entries", len(self._state.entries))

    def compare(self, snapshot: HistorySnapshot) -> HistoryComparison | None:
        """Compare a snapshot with the latest baseline-branch entry."""
        if not self._state.entries:
            return None
        return compare_with_baseline(list(self._state.entries), snapshot, self._baseline_branch)

    def append(self, context: HistoryContext, snapshot: HistorySnapshot) -> None:
        """Record a snapshot as the newest entry and apply retention."""
        entry = create_history_entry(context, snapshot)
        self._state = self._state.with_appended(entry).with_trimmed(self._retention)

    def persist(self) -> None:
        """Write the current history to the store."""
        self._store.save(dump_history(self._state.entries))
        logger.debug("Persisted %d history entries", len(self._state.entries))

    def get_history(self) -> list[HistoryEntry]:
        """Return a copy of the current history, newest first."""
        return list(self._state.entries)

    def get_entry_count(self) -> int:
        return len(self._state.entries)
