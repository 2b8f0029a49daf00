"""
Indicator registry.

Fixed set of dashboard indicators with the quantization step used for
cache fingerprints and the minimum range used by fallback similarity
scoring. Both are empirical tuning values; overrides come from settings.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Mapping

from macropulse.core.config import Settings, get_settings


@dataclass(frozen=True)
class IndicatorSpec:
    """Quantization and scoring parameters for one indicator."""
    id: str
    label: str
    step: float       # Fingerprint rounding granularity
    min_range: float  # Floor for the similarity normalization range (~1% of typical range)

    def __post_init__(self) -> None:
        if self.step <= 0:
            raise ValueError(f"{self.id}: step must be positive")
        if self.min_range <= 0:
            raise ValueError(f"{self.id}: min_range must be positive")


# Indicator id -> rounding step
RoundingTable = Mapping[str, float]


DEFAULT_INDICATORS: tuple[IndicatorSpec, ...] = (
    # Daily macro series
    IndicatorSpec("us10yYield", "US 10-Year Treasury Yield", step=0.01, min_range=0.05),
    IndicatorSpec("dxy", "US Dollar Index", step=0.1, min_range=0.5),
    IndicatorSpec("highYieldSpread", "High Yield Spread", step=0.1, min_range=0.1),
    # Monthly series
    IndicatorSpec("m2MoneySupply", "M2 Money Supply", step=1.0, min_range=100.0),
    # Commodities and assets
    IndicatorSpec("crudeOil", "Crude Oil (WTI)", step=0.1, min_range=1.0),
    IndicatorSpec("copperGoldRatio", "Copper/Gold Ratio", step=0.01, min_range=0.05),
    IndicatorSpec("bitcoin", "Bitcoin (BTC/USD)", step=500.0, min_range=1000.0),
    # Sentiment
    IndicatorSpec("pmi", "Manufacturing Confidence (OECD)", step=0.1, min_range=0.1),
    IndicatorSpec("putCallRatio", "VIX Fear Index", step=0.1, min_range=0.5),
)


class IndicatorRegistry:
    """Ordered collection of indicator specs."""

    def __init__(self, specs: tuple[IndicatorSpec, ...] | list[IndicatorSpec]):
        self._specs = {spec.id: spec for spec in specs}
        if len(self._specs) != len(specs):
            raise ValueError("Duplicate indicator ids in registry")

    def __contains__(self, indicator_id: object) -> bool:
        return indicator_id in self._specs

    def __iter__(self):
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def get(self, indicator_id: str) -> IndicatorSpec:
        return self._specs[indicator_id]

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._specs)

    @property
    def rounding_table(self) -> dict[str, float]:
        return {spec.id: spec.step for spec in self._specs.values()}

    @property
    def min_ranges(self) -> dict[str, float]:
        return {spec.id: spec.min_range for spec in self._specs.values()}

    def with_overrides(self, overrides: Mapping[str, Mapping[str, float]]) -> "IndicatorRegistry":
        """Return a copy with ``step``/``min_range`` overridden per indicator id."""
        specs = []
        for spec in self._specs.values():
            changes = overrides.get(spec.id) or {}
            unknown = set(changes) - {"step", "min_range"}
            if unknown:
                raise ValueError(f"{spec.id}: unsupported override keys {sorted(unknown)}")
            specs.append(replace(spec, **{k: float(v) for k, v in changes.items()}))

        unknown_ids = set(overrides) - set(self._specs)
        if unknown_ids:
            raise ValueError(f"Overrides for unknown indicators: {sorted(unknown_ids)}")
        return IndicatorRegistry(specs)


def build_registry(settings: Settings | None = None) -> IndicatorRegistry:
    """Default registry with settings overrides applied."""
    settings = settings or get_settings()
    registry = IndicatorRegistry(DEFAULT_INDICATORS)
    if settings.indicator_overrides:
        registry = registry.with_overrides(settings.indicator_overrides)
    return registry


@lru_cache(maxsize=1)
def get_registry() -> IndicatorRegistry:
    """Get cached registry for the process settings."""
    return build_registry()
