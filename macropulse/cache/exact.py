"""Exact-match analysis cache keyed by (model variant, fingerprint)."""

from __future__ import annotations

import asyncio
from typing import Mapping

from macropulse.cache import keys
from macropulse.cache.fallback_log import FallbackLog
from macropulse.cache.fingerprint import fingerprint
from macropulse.cache.metrics import CacheTimer
from macropulse.cache.models import AnalysisRecord
from macropulse.cache.store import DurableStore
from macropulse.core.exceptions import CorruptCacheEntryError, StoreUnavailableError
from macropulse.core.logging import get_logger
from macropulse.indicators.registry import RoundingTable
from macropulse.services.ai.config import ModelVariant


logger = get_logger("cache.exact")


class ExactCache:
    """Fast path: analyses for snapshots that round to the same fingerprint."""

    def __init__(
        self,
        store: DurableStore,
        rounding_table: RoundingTable,
        fallback_log: FallbackLog,
        ttl_seconds: int,
    ):
        self._store = store
        self._rounding_table = dict(rounding_table)
        self._fallback_log = fallback_log
        self.ttl_seconds = ttl_seconds

    def fingerprint(self, snapshot: Mapping[str, float]) -> str:
        return fingerprint(snapshot, self._rounding_table)

    async def get_exact(
        self, variant: ModelVariant, snapshot: Mapping[str, float]
    ) -> AnalysisRecord | None:
        """Cached analysis for the snapshot's fingerprint, or None.

        A store outage or a corrupt entry reads as a miss.

        Raises:
            MissingIndicatorError: if the snapshot is incomplete.
        """
        fp = self.fingerprint(snapshot)
        key = keys.exact_key(variant, fp)

        with CacheTimer(f"exact:{variant.value}") as timer:
            try:
                raw = await self._store.get(key)
            except StoreUnavailableError as e:
                timer.failed = True
                logger.warning(f"Exact cache read failed, treating as miss: {e}")
                return None

            if raw is None:
                logger.debug(f"Cache miss: {fp}", extra={"model": variant.value})
                return None

            try:
                record = AnalysisRecord.loads(raw)
            except CorruptCacheEntryError as e:
                logger.error(
                    f"Corrupt exact cache entry {key}: {e.details.get('reason')}",
                    extra={"key": key},
                )
                return None

            if record.model_variant != variant or record.fingerprint != fp:
                logger.error(f"Exact cache entry {key} belongs to another snapshot or model")
                return None

            timer.was_hit = True

        logger.debug(
            f"Cache hit: {fp}",
            extra={"model": variant.value, "produced_at": record.produced_at.isoformat()},
        )
        return record

    async def put_exact(
        self,
        variant: ModelVariant,
        snapshot: Mapping[str, float],
        record: AnalysisRecord,
    ) -> None:
        """Store ``record`` under the snapshot's fingerprint and log it for fallback.

        Both writes run concurrently.

        Raises:
            StoreUnavailableError: if either write fails.
        """
        fp = self.fingerprint(snapshot)
        if record.fingerprint != fp:
            raise ValueError("Record fingerprint does not match the snapshot")
        if record.model_variant != variant:
            raise ValueError(
                f"Record produced by {record.model_variant.value} cannot be cached under {variant.value}"
            )

        key = keys.exact_key(variant, fp)
        results = await asyncio.gather(
            self._store.set(key, record.dumps(), self.ttl_seconds),
            self._fallback_log.append(variant, record),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        logger.info(
            f"Cached analysis: {fp}",
            extra={"model": variant.value, "ttl": self.ttl_seconds},
        )
