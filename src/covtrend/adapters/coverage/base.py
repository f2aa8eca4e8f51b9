"""Base class for coverage report adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from covtrend.models.coverage import CoverageCounts


class CoverageAdapter(ABC):
    """Abstract base class for coverage report parsers.

    Each concrete adapter knows how to read one report format and reduce it
    to the counter values used for aggregation.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Coverage tool identifier (e.g. 'kover')."""

    @abstractmethod
    def parse_coverage_file(self, coverage_file: Path) -> CoverageCounts | None:
        """Parse a coverage report file into counter values.

        Args:
            coverage_file: Path to the native coverage report file.

        Returns:
            Parsed counters, or None when the report does not exist or does
            not contain usable coverage data.

        Raises:
            OSError: On I/O failures other than a missing file.
        """
