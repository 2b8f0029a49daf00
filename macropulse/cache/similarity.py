"""
Similarity scoring for the quota fallback.

Picks the logged analysis whose market conditions best match the current
snapshot:

1. Each indicator's distance is normalized by how much that indicator
   actually moved across the candidates (its dynamic range), floored at a
   per-indicator minimum so a flat or single-candidate window never divides
   by zero or over-weights noise.
2. Normalized deltas combine into an RMS distance, mapped to a similarity
   in (0, 1] with exp(-distance).
3. Similarity is blended with a linear recency score (1 at age 0, 0 at the
   end of the window): 0.9 / 0.1 by default.

Candidates identical to the current snapshot (distance 0) always rank above
non-identical ones; recency only orders them among themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Sequence

import numpy as np

from macropulse.cache.fingerprint import parse_fingerprint
from macropulse.cache.models import AnalysisRecord
from macropulse.core.exceptions import MissingIndicatorError
from macropulse.core.logging import get_logger


logger = get_logger("cache.similarity")


@dataclass(frozen=True)
class ScoredCandidate:
    """Score breakdown for one fallback candidate."""
    record: AnalysisRecord
    distance: float
    similarity: float
    recency: float
    score: float

    @property
    def is_identical(self) -> bool:
        return self.distance == 0.0


class SimilarityScorer:
    """Scores fallback candidates against a current snapshot."""

    def __init__(
        self,
        min_ranges: Mapping[str, float],
        *,
        similarity_weight: float = 0.9,
        recency_weight: float = 0.1,
        recency_window: timedelta = timedelta(hours=24),
    ):
        if not min_ranges:
            raise ValueError("min_ranges must name at least one indicator")
        if any(value <= 0 for value in min_ranges.values()):
            raise ValueError("min_ranges must be positive")
        if similarity_weight < 0 or recency_weight < 0:
            raise ValueError("weights must be non-negative")
        if recency_window.total_seconds() <= 0:
            raise ValueError("recency_window must be positive")

        self._ids = tuple(min_ranges)
        self._min_ranges = np.array([min_ranges[i] for i in self._ids], dtype=float)
        self.similarity_weight = similarity_weight
        self.recency_weight = recency_weight
        self.recency_window = recency_window

    @property
    def indicator_ids(self) -> tuple[str, ...]:
        return self._ids

    def score(
        self,
        current: Mapping[str, float],
        candidates: Sequence[AnalysisRecord],
        now: datetime | None = None,
    ) -> list[ScoredCandidate]:
        """Score every usable candidate, preserving enumeration order.

        Candidates whose fingerprint cannot be parsed or lacks an indicator
        are skipped.

        Raises:
            MissingIndicatorError: if there are candidates and ``current``
                lacks a scored indicator.
        """
        if not candidates:
            return []

        missing = [i for i in self._ids if i not in current]
        if missing:
            raise MissingIndicatorError(missing)

        usable: list[AnalysisRecord] = []
        rows: list[list[float]] = []
        for record in candidates:
            try:
                parsed = parse_fingerprint(record.fingerprint)
                rows.append([parsed[i] for i in self._ids])
            except (ValueError, KeyError) as e:
                logger.warning(
                    f"Skipping fallback candidate with unusable fingerprint: {e}",
                    extra={"produced_at": record.produced_at.isoformat()},
                )
                continue
            usable.append(record)

        if not usable:
            return []

        values = np.array(rows, dtype=float)
        current_vec = np.array([current[i] for i in self._ids], dtype=float)

        dynamic_range = values.max(axis=0) - values.min(axis=0)
        effective_range = np.maximum(dynamic_range, self._min_ranges)

        deltas = np.abs(current_vec - values) / effective_range
        distances = np.sqrt(np.mean(np.square(deltas), axis=1))
        similarities = np.exp(-distances)

        now = now or datetime.now(timezone.utc)
        window = self.recency_window.total_seconds()
        ages = np.array(
            [(now - record.produced_at).total_seconds() for record in usable], dtype=float
        )
        recencies = np.clip(1.0 - ages / window, 0.0, 1.0)

        scores = self.similarity_weight * similarities + self.recency_weight * recencies

        return [
            ScoredCandidate(
                record=record,
                distance=float(distances[idx]),
                similarity=float(similarities[idx]),
                recency=float(recencies[idx]),
                score=float(scores[idx]),
            )
            for idx, record in enumerate(usable)
        ]

    def best(
        self,
        current: Mapping[str, float],
        candidates: Sequence[AnalysisRecord],
        now: datetime | None = None,
    ) -> ScoredCandidate | None:
        """Highest-scoring candidate; first enumerated wins ties."""
        scored = self.score(current, candidates, now=now)
        if not scored:
            return None
        return max(scored, key=lambda c: (c.is_identical, c.score))

    def select_best_match(
        self,
        current: Mapping[str, float],
        candidates: Sequence[AnalysisRecord],
        now: datetime | None = None,
    ) -> AnalysisRecord | None:
        best = self.best(current, candidates, now=now)
        if best is None:
            return None

        logger.info(
            f"Fallback match selected from {len(candidates)} candidates "
            f"(similarity {best.similarity:.3f}, recency {best.recency:.3f})",
            extra={
                "distance": round(best.distance, 6),
                "score": round(best.score, 6),
                "produced_at": best.record.produced_at.isoformat(),
            },
        )
        return best.record


def select_best_match(
    current: Mapping[str, float],
    candidates: Sequence[AnalysisRecord],
    min_ranges: Mapping[str, float],
    *,
    similarity_weight: float = 0.9,
    recency_weight: float = 0.1,
    recency_window: timedelta = timedelta(hours=24),
    now: datetime | None = None,
) -> AnalysisRecord | None:
    """Functional form of ``SimilarityScorer.select_best_match``."""
    scorer = SimilarityScorer(
        min_ranges,
        similarity_weight=similarity_weight,
        recency_weight=recency_weight,
        recency_window=recency_window,
    )
    return scorer.select_best_match(current, candidates, now=now)
