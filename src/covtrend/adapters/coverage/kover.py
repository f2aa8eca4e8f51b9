"""Kover coverage adapter for Gradle/Kotlin multi-module builds.

Kover writes JaCoCo-compatible XML reports. The report-level ``<counter>``
elements already hold the totals for the module, so only those are read.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from defusedxml import DefusedXmlException, ElementTree
from defusedxml.ElementTree import ParseError as DefusedParseError

from covtrend.adapters.coverage.base import CoverageAdapter
from covtrend.models.coverage import CoverageCounts

if TYPE_CHECKING:
    from pathlib import Path
    from xml.etree.ElementTree import Element as XmlElement

logger = logging.getLogger(__name__)

COUNTER_TYPES = ("INSTRUCTION", "LINE", "BRANCH", "METHOD", "CLASS", "COMPLEXITY")
DEFAULT_COUNTER = "INSTRUCTION"


def _int_attr(element: XmlElement, key: str, default: int = 0) -> int:
    value = element.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_kover_xml(data: bytes, counter_type: str) -> CoverageCounts | None:
    # Bytes, so the XML declaration decides the encoding
    root = ElementTree.fromstring(data)
    if root.tag != "report":
        logger.warning("Kover XML root is not <report>: %s", root.tag)
        return None

    for counter in root.findall("counter"):
        if counter.get("type") == counter_type:
            return CoverageCounts(
                covered=_int_attr(counter, "covered"),
                missed=_int_attr(counter, "missed"),
            )
    return None


class KoverAdapter(CoverageAdapter):
    """Reads Kover (and JaCoCo) XML reports.

    Args:
        counter_type: Report-level counter to read (default: INSTRUCTION).
    """

    def __init__(self, counter_type: str = DEFAULT_COUNTER) -> None:
        if counter_type not in COUNTER_TYPES:
            raise ValueError(
                f"Unknown counter type {counter_type!r}; expected one of {', '.join(COUNTER_TYPES)}"
            )
        self._counter_type = counter_type

    @property
    def name(self) -> str:
        return "kover"

    @property
    def counter_type(self) -> str:
        """Counter type read from reports."""
        return self._counter_type

    def parse_coverage_file(self, coverage_file: Path) -> CoverageCounts | None:
        """Parse a Kover XML report into counter values."""
        try:
            data = coverage_file.read_bytes()
        except FileNotFoundError:
            # Parent/aggregator modules have no report of their own
            logger.debug("Coverage file not found: %s", coverage_file)
            return None

        if not data.strip():
            logger.warning("Coverage file is empty: %s", coverage_file)
            return None

        try:
            counts = _parse_kover_xml(data, self._counter_type)
        except (DefusedParseError, DefusedXmlException, UnicodeDecodeError) as e:
            logger.warning("Failed to parse coverage file %s: %s", coverage_file, e)
            return None

        if counts is None:
            logger.warning(
                "Could not extract %s counter from %s", self._counter_type, coverage_file
            )
            return None

        logger.debug(
            "Parsed coverage from %s: %s%% (%d/%d)",
            coverage_file,
            counts.percentage,
            counts.covered,
            counts.total,
        )
        return counts
