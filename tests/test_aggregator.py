"""Tests for coverage aggregation across modules."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import pytest

from covtrend.adapters.coverage.base import CoverageAdapter
from covtrend.adapters.coverage.kover import KoverAdapter
from covtrend.coverage.aggregator import (
    ModuleReference,
    aggregate_coverage,
    get_failed_modules,
    get_missing_coverage_modules,
)
from covtrend.models.coverage import CoverageCounts, ModuleCoverage, OverallCoverage

if TYPE_CHECKING:
    from pathlib import Path


class _StubAdapter(CoverageAdapter):
    """Returns canned counts keyed by report path."""

    def __init__(self, counts: dict[str, CoverageCounts | None], delay: float = 0.0) -> None:
        self._counts = counts
        self._delay = delay
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "stub"

    def parse_coverage_file(self, coverage_file: Path) -> CoverageCounts | None:
        self.calls.append(str(coverage_file))
        if self._delay:
            time.sleep(self._delay)
        return self._counts.get(str(coverage_file))


@pytest.mark.asyncio
async def test_empty_module_list_returns_zero_overall() -> None:
    adapter = _StubAdapter({})

    overall = await aggregate_coverage(adapter, [], {"default": 60.0}, 0.0)

    assert overall == OverallCoverage(percentage=0.0, covered=0, total=0, modules=[])
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_overall_is_weighted_by_module_size() -> None:
    adapter = _StubAdapter(
        {
            "a.xml": CoverageCounts(covered=90, missed=10),
            "b.xml": CoverageCounts(covered=10, missed=890),
        }
    )
    modules = [ModuleReference(":a", "a.xml"), ModuleReference(":b", "b.xml")]

    overall = await aggregate_coverage(adapter, modules, {"default": 50.0}, 0.0)

    assert overall.covered == 100
    assert overall.total == 1000
    assert overall.percentage == 10.0
    assert [m.passed for m in overall.modules] == [True, False]


@pytest.mark.asyncio
async def test_missing_report_is_excluded_from_totals() -> None:
    adapter = _StubAdapter({"a.xml": CoverageCounts(covered=3, missed=1)})
    modules = [ModuleReference(":a", "a.xml"), ModuleReference(":parent", "parent.xml")]

    overall = await aggregate_coverage(adapter, modules, {}, 0.0)

    assert overall.total == 4
    assert overall.percentage == 75.0
    missing = overall.modules[1]
    assert missing.coverage is None
    assert missing.passed is False


@pytest.mark.asyncio
async def test_undecodable_report_does_not_abort_aggregation(tmp_path: Path) -> None:
    good = tmp_path / "ok.xml"
    good.write_text(
        '<report><counter type="INSTRUCTION" missed="1" covered="3"/></report>',
        encoding="utf-8",
    )
    bad = tmp_path / "bad.xml"
    bad.write_bytes(
        b'<?xml version="1.0" encoding="UTF-8"?>\n<report name="caf\xe9"></report>'
    )
    modules = [ModuleReference(":ok", str(good)), ModuleReference(":bad", str(bad))]

    overall = await aggregate_coverage(KoverAdapter(), modules, {}, 0.0)

    assert overall.percentage == 75.0
    assert overall.modules[1].coverage is None
    assert overall.modules[1].passed is False


@pytest.mark.asyncio
async def test_results_keep_input_order() -> None:
    names = [f":m{i}" for i in range(10)]
    adapter = _StubAdapter(
        {f"{n}.xml": CoverageCounts(covered=i, missed=1) for i, n in enumerate(names)}
    )
    modules = [ModuleReference(n, f"{n}.xml") for n in names]

    overall = await aggregate_coverage(adapter, modules, {}, 0.0)

    assert [m.module for m in overall.modules] == names


@pytest.mark.asyncio
async def test_reports_are_parsed_concurrently() -> None:
    adapter = _StubAdapter(
        {f"{i}.xml": CoverageCounts(covered=1, missed=1) for i in range(4)}, delay=0.2
    )
    modules = [ModuleReference(f":m{i}", f"{i}.xml") for i in range(4)]

    start = time.perf_counter()
    await aggregate_coverage(adapter, modules, {}, 0.0)

    assert time.perf_counter() - start < 0.7


@pytest.mark.asyncio
async def test_timeout_raises() -> None:
    adapter = _StubAdapter({"a.xml": CoverageCounts(covered=1, missed=1)}, delay=0.5)

    with pytest.raises(asyncio.TimeoutError):
        await aggregate_coverage(
            adapter, [ModuleReference(":a", "a.xml")], {}, 0.0, timeout=0.05
        )


@pytest.mark.asyncio
async def test_threshold_resolution_uses_min_coverage_fallback() -> None:
    adapter = _StubAdapter({"a.xml": CoverageCounts(covered=40, missed=60)})

    overall = await aggregate_coverage(adapter, [ModuleReference(":a", "a.xml")], {}, 35.0)

    assert overall.modules[0].threshold == 35.0
    assert overall.modules[0].passed


def test_failed_and_missing_module_lists() -> None:
    overall = OverallCoverage(
        modules=[
            ModuleCoverage(":ok", CoverageCounts(9, 1), 80.0, True),
            ModuleCoverage(":low", CoverageCounts(1, 9), 80.0, False),
            ModuleCoverage(":none", None, 80.0, False),
        ]
    )

    assert get_failed_modules(overall) == [":low"]
    assert get_missing_coverage_modules(overall) == [":none"]
