"""Tests for the indicator registry and snapshots."""

from __future__ import annotations

import math

import pytest

from macropulse.core.config import Settings
from macropulse.core.exceptions import InvalidSnapshotError
from macropulse.indicators.registry import (
    DEFAULT_INDICATORS,
    IndicatorRegistry,
    IndicatorSpec,
    build_registry,
)
from macropulse.indicators.snapshot import IndicatorSnapshot


class TestRegistry:
    """Tests for IndicatorRegistry."""

    def test_default_registry(self):
        registry = IndicatorRegistry(DEFAULT_INDICATORS)
        assert len(registry) == 9
        assert registry.rounding_table["bitcoin"] == 500.0
        assert registry.min_ranges["us10yYield"] == 0.05
        assert "dxy" in registry

    def test_overrides_from_settings(self):
        settings = Settings(indicator_overrides='{"bitcoin": {"step": 1000, "min_range": 2500}}')
        registry = build_registry(settings)
        assert registry.get("bitcoin").step == 1000.0
        assert registry.get("bitcoin").min_range == 2500.0
        assert registry.get("dxy").step == 0.1

    def test_override_unknown_indicator(self):
        with pytest.raises(ValueError):
            IndicatorRegistry(DEFAULT_INDICATORS).with_overrides({"gold": {"step": 1}})

    def test_override_unknown_key(self):
        with pytest.raises(ValueError):
            IndicatorRegistry(DEFAULT_INDICATORS).with_overrides({"dxy": {"weight": 2}})

    def test_duplicate_ids_rejected(self):
        spec = IndicatorSpec("dxy", "Dollar", step=0.1, min_range=0.5)
        with pytest.raises(ValueError):
            IndicatorRegistry([spec, spec])

    @pytest.mark.parametrize("step,min_range", [(0, 1), (1, 0), (-1, 1)])
    def test_non_positive_parameters_rejected(self, step, min_range):
        with pytest.raises(ValueError):
            IndicatorSpec("x", "X", step=step, min_range=min_range)


class TestSnapshot:
    """Tests for IndicatorSnapshot."""

    def test_immutable_mapping(self):
        snapshot = IndicatorSnapshot({"dxy": 105, "pmi": 99.8})
        assert snapshot["dxy"] == 105.0
        assert isinstance(snapshot["dxy"], float)
        assert len(snapshot) == 2
        with pytest.raises(TypeError):
            snapshot["dxy"] = 1.0  # type: ignore[index]

    @pytest.mark.parametrize("value", ["105", None, True, math.nan, math.inf])
    def test_rejects_invalid_values(self, value):
        with pytest.raises(InvalidSnapshotError):
            IndicatorSnapshot({"dxy": value})

    def test_from_dashboard(self, dashboard_payload):
        snapshot = IndicatorSnapshot.from_dashboard(dashboard_payload)
        assert snapshot["bitcoin"] == 67250.0
        assert len(snapshot) == 9

    def test_from_dashboard_without_indicators(self):
        with pytest.raises(InvalidSnapshotError):
            IndicatorSnapshot.from_dashboard({"news": []})

    def test_from_dashboard_without_value(self):
        with pytest.raises(InvalidSnapshotError):
            IndicatorSnapshot.from_dashboard({"indicators": {"dxy": {"change": 0.2}}})
