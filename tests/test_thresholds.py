"""Tests for per-module threshold resolution."""

from __future__ import annotations

import pytest

from covtrend.coverage.thresholds import meets_threshold, module_type, resolve_threshold


class TestModuleType:
    def test_first_segment(self) -> None:
        assert module_type(":core:testing") == "core"

    def test_single_segment(self) -> None:
        assert module_type(":app") == "app"

    def test_empty_id_falls_back_to_default(self) -> None:
        assert module_type("") == "default"
        assert module_type(":::") == "default"


class TestResolveThreshold:
    """Priority: exact id, module type, default, min_coverage, 0."""

    @pytest.fixture()
    def thresholds(self) -> dict[str, float]:
        return {":core:testing": 0.0, "core": 80.0, "default": 60.0}

    def test_exact_match_wins(self, thresholds: dict[str, float]) -> None:
        assert resolve_threshold(":core:testing", thresholds, 50.0) == 0.0

    def test_module_type_match(self, thresholds: dict[str, float]) -> None:
        assert resolve_threshold(":core:common", thresholds, 50.0) == 80.0

    def test_default_key(self, thresholds: dict[str, float]) -> None:
        assert resolve_threshold(":feature:login", thresholds, 50.0) == 60.0

    def test_min_coverage_fallback(self) -> None:
        assert resolve_threshold(":feature:login", {"core": 80.0}, 45.0) == 45.0

    def test_hard_zero_fallback(self) -> None:
        assert resolve_threshold(":feature:login", {}, None) == 0.0

    def test_default_key_is_not_a_module_type(self) -> None:
        """An id without segments resolves through the default tier only."""
        assert resolve_threshold("", {"default": 70.0}) == 70.0


class TestMeetsThreshold:
    def test_inclusive(self) -> None:
        assert meets_threshold(80.0, 80.0)

    def test_below(self) -> None:
        assert not meets_threshold(79.9, 80.0)

    def test_zero_threshold_always_passes(self) -> None:
        assert meets_threshold(0.0, 0.0)
