"""Coverage history: persistence, baseline comparison and artifact lookup."""

from covtrend.history.entries import (
    DEFAULT_BASELINE_BRANCH,
    DEFAULT_HISTORY_RETENTION,
    add_history_entry,
    compare_with_baseline,
    create_history_entry,
    dump_history,
    format_delta,
    load_history,
    trend_indicator,
    trim_history,
)
from covtrend.history.locator import (
    ArtifactDescriptor,
    ArtifactSource,
    GitHubArtifactSource,
    find_baseline_artifact,
)
from covtrend.history.manager import HistoryManager, HistoryState
from covtrend.history.store import (
    ArtifactHistoryStore,
    FileHistoryStore,
    HistoryStore,
    InMemoryHistoryStore,
)

__all__ = [
    "DEFAULT_BASELINE_BRANCH",
    "DEFAULT_HISTORY_RETENTION",
    "ArtifactDescriptor",
    "ArtifactHistoryStore",
    "ArtifactSource",
    "FileHistoryStore",
    "GitHubArtifactSource",
    "HistoryManager",
    "HistoryState",
    "HistoryStore",
    "InMemoryHistoryStore",
    "add_history_entry",
    "compare_with_baseline",
    "create_history_entry",
    "dump_history",
    "find_baseline_artifact",
    "format_delta",
    "load_history",
    "trend_indicator",
    "trim_history",
]
