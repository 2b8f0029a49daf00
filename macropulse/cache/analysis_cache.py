"""Analysis cache facade: exact cache, fallback log and similarity scorer."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Mapping

from macropulse.cache import keys
from macropulse.cache.exact import ExactCache
from macropulse.cache.fallback_log import FallbackLog
from macropulse.cache.metrics import cache_metrics
from macropulse.cache.models import AnalysisRecord, CacheStats
from macropulse.cache.similarity import SimilarityScorer
from macropulse.cache.store import DurableStore
from macropulse.core.config import Settings, get_settings
from macropulse.core.logging import get_logger
from macropulse.indicators.registry import IndicatorRegistry, build_registry
from macropulse.services.ai.config import ModelVariant


logger = get_logger("cache.analysis")


class AnalysisCache:
    """
    Cached market analyses for one durable store.

    Usage:
        cache = AnalysisCache(ValkeyStore(client))
        record = await cache.get_exact(ModelVariant.GEMINI_2_5_FLASH, snapshot)
        if record is None:
            ...
            await cache.put_exact(variant, snapshot, fresh_record)

        # provider quota exhausted
        match = await cache.find_similar(variant, snapshot)
    """

    def __init__(
        self,
        store: DurableStore,
        registry: IndicatorRegistry | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        registry = registry or build_registry(settings)

        self._store = store
        self.registry = registry
        self.fallback_log = FallbackLog(
            store,
            ttl_seconds=settings.analysis_cache_ttl,
            max_entries=settings.fallback_log_size,
        )
        self.exact = ExactCache(
            store,
            registry.rounding_table,
            self.fallback_log,
            ttl_seconds=settings.analysis_cache_ttl,
        )
        self.scorer = SimilarityScorer(
            registry.min_ranges,
            similarity_weight=settings.similarity_weight,
            recency_weight=settings.recency_weight,
            recency_window=timedelta(seconds=settings.analysis_cache_ttl),
        )

    @property
    def store(self) -> DurableStore:
        return self._store

    def fingerprint(self, snapshot: Mapping[str, float]) -> str:
        return self.exact.fingerprint(snapshot)

    async def get_exact(
        self, variant: ModelVariant, snapshot: Mapping[str, float]
    ) -> AnalysisRecord | None:
        return await self.exact.get_exact(variant, snapshot)

    async def put_exact(
        self, variant: ModelVariant, snapshot: Mapping[str, float], record: AnalysisRecord
    ) -> None:
        await self.exact.put_exact(variant, snapshot, record)

    async def list_candidates(self, variant: ModelVariant) -> list[AnalysisRecord]:
        return await self.fallback_log.list_candidates(variant)

    async def find_similar(
        self,
        variant: ModelVariant,
        snapshot: Mapping[str, float],
        now: datetime | None = None,
    ) -> AnalysisRecord | None:
        """Best fallback candidate for the snapshot, or None if the log is empty."""
        candidates = await self.list_candidates(variant)
        match = self.scorer.select_best_match(snapshot, candidates, now=now)

        if match is None:
            cache_metrics.record_miss(f"fallback:{variant.value}")
        else:
            cache_metrics.record_hit(f"fallback:{variant.value}")
        return match

    async def stats(self, variant: ModelVariant) -> CacheStats:
        """Number of live exact and fallback keys for ``variant``."""
        exact_keys = await self._store.list_keys(keys.exact_prefix(variant))
        fallback_keys = await self._store.list_keys(keys.fallback_prefix(variant))
        return CacheStats(
            model_variant=variant,
            exact_keys=len(exact_keys),
            fallback_keys=len(fallback_keys),
        )

    async def clear(self, variant: ModelVariant | None = None) -> int:
        """Delete cached analyses for one variant, or every variant."""
        all_keys = await self._store.list_keys(keys.variant_prefix(variant))
        if not all_keys:
            return 0
        deleted = await self._store.delete(*all_keys)
        logger.info(
            f"Cleared {deleted} analysis keys",
            extra={"model": variant.value if variant else "all"},
        )
        return deleted
