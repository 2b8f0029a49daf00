"""Dashboard indicator definitions and snapshots."""

from .registry import (
    DEFAULT_INDICATORS,
    IndicatorRegistry,
    IndicatorSpec,
    RoundingTable,
    build_registry,
    get_registry,
)
from .snapshot import IndicatorSnapshot


__all__ = [
    "DEFAULT_INDICATORS",
    "IndicatorRegistry",
    "IndicatorSnapshot",
    "IndicatorSpec",
    "RoundingTable",
    "build_registry",
    "get_registry",
]
