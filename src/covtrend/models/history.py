"""Coverage history models.

History is persisted as a JSON array of entries, newest first. Entries are
immutable once created; the manager only ever prepends or drops them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class OverallSnapshot:
    """Overall coverage figures recorded in a history entry."""

    percentage: float
    covered: int
    total: int


@dataclass(frozen=True)
class HistoryEntry:
    """A single recorded coverage run."""

    timestamp: str
    """ISO 8601 timestamp of the run."""

    branch: str
    """Branch the run was recorded on (e.g. ``main``)."""

    commit: str
    """Commit SHA of the run."""

    overall: OverallSnapshot
    """Overall coverage of the run."""

    modules: dict[str, float] = field(default_factory=dict)
    """Module id -> coverage percentage (modules with coverage only)."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted JSON shape."""
        return {
            "timestamp": self.timestamp,
            "branch": self.branch,
            "commit": self.commit,
            "overall": {
                "percentage": self.overall.percentage,
                "covered": self.overall.covered,
                "total": self.overall.total,
            },
            "modules": dict(self.modules),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry:
        """Build an entry from its persisted JSON shape."""
        overall = data["overall"]
        return cls(
            timestamp=data["timestamp"],
            branch=data["branch"],
            commit=data["commit"],
            overall=OverallSnapshot(
                percentage=overall["percentage"],
                covered=overall["covered"],
                total=overall["total"],
            ),
            modules=dict(data["modules"]),
        )


@dataclass(frozen=True)
class HistorySnapshot:
    """Coverage state of the current run, before it is recorded."""

    overall: float
    covered: int
    total: int
    modules: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class HistoryContext:
    """Where and when a snapshot was taken."""

    branch: str
    commit: str
    timestamp: str


@dataclass
class HistoryComparison:
    """Current run compared against the baseline branch's latest entry."""

    baseline: HistoryEntry
    """The entry used as the comparison reference."""

    overall_delta: float
    """Current overall percentage minus baseline overall percentage."""

    module_delta: dict[str, float | None] = field(default_factory=dict)
    """Per-module delta; None marks a module missing from the baseline."""


@dataclass(frozen=True)
class TrendDataPoint:
    """A labelled value for trend graphs."""

    label: str
    value: float
