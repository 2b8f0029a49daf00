"""Bounded, time-ordered log of recent analyses per model variant.

Every successful provider call lands here alongside the exact-match entry.
The log keeps at most ``max_entries`` records per variant; older ones are
pruned after each append. Pruning is advisory: its failures are logged and
never reach the caller.
"""

from __future__ import annotations

import asyncio

from macropulse.cache import keys
from macropulse.cache.models import AnalysisRecord
from macropulse.cache.store import DurableStore
from macropulse.core.exceptions import CorruptCacheEntryError, StoreUnavailableError
from macropulse.core.logging import get_logger
from macropulse.services.ai.config import ModelVariant


logger = get_logger("cache.fallback")


class FallbackLog:
    """Recency-ordered fallback candidates keyed by (variant, produced_at)."""

    def __init__(self, store: DurableStore, ttl_seconds: int, max_entries: int = 10):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._store = store
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries

    async def append(self, variant: ModelVariant, record: AnalysisRecord) -> str:
        """Write ``record`` to the log and prune the oldest overflow.

        Returns the key written.

        Raises:
            StoreUnavailableError: if the write itself fails.
        """
        if record.model_variant != variant:
            raise ValueError(
                f"Record produced by {record.model_variant.value} cannot be logged under {variant.value}"
            )

        key = keys.fallback_key(variant, record.produced_at)
        await self._store.set(key, record.dumps(), self.ttl_seconds)
        logger.debug(f"Fallback log append: {key}")

        await self._prune(variant)
        return key

    async def list_candidates(self, variant: ModelVariant) -> list[AnalysisRecord]:
        """Non-expired records for ``variant``, newest first.

        An empty list is a normal outcome. Store outages also yield an empty
        list; keys deleted mid-enumeration are skipped.
        """
        try:
            log_keys = await self._store.list_keys(keys.fallback_prefix(variant))
        except StoreUnavailableError as e:
            logger.warning(f"Fallback log unavailable for {variant.value}: {e}")
            return []

        log_keys.sort(key=keys.fallback_sort_key, reverse=True)
        loaded = await asyncio.gather(*(self._load(key) for key in log_keys))

        candidates = [
            record
            for record in loaded
            if record is not None and record.model_variant == variant
        ]
        logger.debug(
            f"Fallback candidates for {variant.value}: {len(candidates)} of {len(log_keys)} keys"
        )
        return candidates

    async def count(self, variant: ModelVariant) -> int:
        return len(await self._store.list_keys(keys.fallback_prefix(variant)))

    async def _load(self, key: str) -> AnalysisRecord | None:
        try:
            raw = await self._store.get(key)
        except StoreUnavailableError as e:
            logger.warning(f"Fallback entry {key} unreadable: {e}")
            return None
        if raw is None:
            return None
        try:
            return AnalysisRecord.loads(raw)
        except CorruptCacheEntryError as e:
            logger.error(
                f"Corrupt fallback entry {key}: {e.details.get('reason')}",
                extra={"key": key},
            )
            return None

    async def _prune(self, variant: ModelVariant) -> None:
        try:
            log_keys = await self._store.list_keys(keys.fallback_prefix(variant))
            overflow = len(log_keys) - self.max_entries
            if overflow <= 0:
                return

            log_keys.sort(key=keys.fallback_sort_key)
            stale = log_keys[:overflow]
            await self._store.delete(*stale)
            logger.info(
                f"Pruned {len(stale)} old fallback entries for {variant.value}",
                extra={"kept": self.max_entries},
            )
        except Exception as e:
            logger.warning(f"Fallback log pruning failed for {variant.value}: {e}")
