"""Market-condition fingerprints.

A fingerprint is the indicator snapshot rounded to per-indicator buckets and
serialized as compact sorted-key JSON. Snapshots that round to the same
values share a fingerprint, which is both the exact-match cache key and the
vector the fallback scorer compares against.
"""

from __future__ import annotations

import hashlib
import json
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping

from macropulse.core.exceptions import MissingIndicatorError
from macropulse.indicators.registry import RoundingTable


def quantize(value: float, step: float) -> float:
    """Round ``value`` to the nearest multiple of ``step`` (half away from zero).

    Decimal arithmetic keeps ``4.523 @ 0.01`` at exactly ``4.52`` instead of
    ``4.5200000000000005``.
    """
    step_dec = Decimal(str(step))
    buckets = (Decimal(str(value)) / step_dec).to_integral_value(rounding=ROUND_HALF_UP)
    rounded = float(buckets * step_dec)
    return rounded + 0.0  # -0.0 -> 0.0


def round_snapshot(snapshot: Mapping[str, float], rounding_table: RoundingTable) -> dict[str, float]:
    """Quantize every indicator named in ``rounding_table``.

    Raises:
        MissingIndicatorError: if the snapshot lacks any id in the table.
    """
    missing = [indicator_id for indicator_id in rounding_table if indicator_id not in snapshot]
    if missing:
        raise MissingIndicatorError(missing)
    return {
        indicator_id: quantize(snapshot[indicator_id], step)
        for indicator_id, step in rounding_table.items()
    }


def fingerprint(snapshot: Mapping[str, float], rounding_table: RoundingTable) -> str:
    """Deterministic fingerprint string for a snapshot."""
    return serialize(round_snapshot(snapshot, rounding_table))


def serialize(rounded: Mapping[str, float]) -> str:
    """Canonical serialization: independent of input field order."""
    return json.dumps(dict(rounded), sort_keys=True, separators=(",", ":"))


def parse_fingerprint(value: str) -> dict[str, float]:
    """Inverse of serialization: indicator id -> rounded value.

    Raises:
        ValueError: if ``value`` is not a fingerprint.
    """
    try:
        data = json.loads(value)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid fingerprint: {value!r}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Invalid fingerprint: {value!r}")

    parsed: dict[str, float] = {}
    for indicator_id, number in data.items():
        if isinstance(number, bool) or not isinstance(number, (int, float)):
            raise ValueError(f"Invalid fingerprint value for {indicator_id!r}: {number!r}")
        if not math.isfinite(number):
            raise ValueError(f"Invalid fingerprint value for {indicator_id!r}: {number!r}")
        parsed[indicator_id] = float(number)
    return parsed


def fingerprint_digest(value: str) -> str:
    """Fixed-length key component for a fingerprint."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
