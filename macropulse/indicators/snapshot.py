"""Indicator snapshot: immutable mapping of indicator id to current value."""

from __future__ import annotations

import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Iterator

from macropulse.core.exceptions import InvalidSnapshotError


class IndicatorSnapshot(Mapping[str, float]):
    """Captured indicator values, frozen at construction.

    Values must be finite real numbers; anything else is rejected with
    InvalidSnapshotError before it can reach the cache or the AI provider.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any]):
        clean: dict[str, float] = {}
        for indicator_id, value in values.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidSnapshotError(
                    f"Indicator {indicator_id!r} has non-numeric value {value!r}",
                    details={"indicator": indicator_id},
                )
            value = float(value)
            if not math.isfinite(value):
                raise InvalidSnapshotError(
                    f"Indicator {indicator_id!r} has non-finite value {value!r}",
                    details={"indicator": indicator_id},
                )
            clean[str(indicator_id)] = value
        self._values = MappingProxyType(clean)

    @classmethod
    def from_dashboard(cls, payload: Mapping[str, Any]) -> "IndicatorSnapshot":
        """Build from the dashboard payload ``{"indicators": {id: {"value": ...}}}``."""
        indicators = payload.get("indicators") if isinstance(payload, Mapping) else None
        if not isinstance(indicators, Mapping):
            raise InvalidSnapshotError("Dashboard payload has no 'indicators' object")

        values: dict[str, Any] = {}
        for indicator_id, data in indicators.items():
            if isinstance(data, Mapping):
                if "value" not in data:
                    raise InvalidSnapshotError(
                        f"Indicator {indicator_id!r} has no value",
                        details={"indicator": indicator_id},
                    )
                values[indicator_id] = data["value"]
            else:
                values[indicator_id] = data
        return cls(values)

    def __getitem__(self, key: str) -> float:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"IndicatorSnapshot({dict(self._values)!r})"
