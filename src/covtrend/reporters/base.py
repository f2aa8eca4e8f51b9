"""Reporter interface shared by CI and terminal output."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from covtrend.models.coverage import OverallCoverage
    from covtrend.models.history import HistoryComparison, HistoryEntry


@dataclass
class ReportResult:
    """Everything a reporter needs about one run."""

    overall: OverallCoverage

    comparison: HistoryComparison | None = None
    """Baseline comparison, when history is enabled and a baseline exists."""

    history: list[HistoryEntry] = field(default_factory=list)
    """Recorded history after this run was appended, newest first."""


class Reporter(ABC):
    """Emits the results of a coverage run."""

    @abstractmethod
    def report(self, result: ReportResult, title: str) -> None:
        """Publish ``result`` under ``title``."""
