"""Tests for the exact cache, fallback log and cache facade."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from macropulse.cache import keys
from macropulse.cache.fallback_log import FallbackLog
from macropulse.cache.metrics import cache_metrics
from macropulse.cache.models import AnalysisRecord
from macropulse.core.exceptions import CorruptCacheEntryError, MissingIndicatorError, StoreUnavailableError
from macropulse.services.ai.config import ModelVariant

from conftest import MemoryStore


FLASH = ModelVariant.GEMINI_2_5_FLASH
PRO = ModelVariant.GEMINI_2_5_PRO


# =============================================================================
# Exact cache
# =============================================================================


class TestExactCache:
    """Tests for get_exact / put_exact."""

    @pytest.mark.asyncio
    async def test_miss_on_empty_store(self, cache, snapshot):
        assert await cache.get_exact(FLASH, snapshot) is None

    @pytest.mark.asyncio
    async def test_put_then_get_same_bucket(self, cache, snapshot, record_factory):
        """A snapshot rounding to the same values hits the stored record."""
        record = record_factory(snapshot)
        await cache.put_exact(FLASH, snapshot, record)

        hit = await cache.get_exact(FLASH, {"yieldPct": 4.524, "dxy": 104.96})
        assert hit == record

    @pytest.mark.asyncio
    async def test_put_writes_exact_and_fallback_with_ttl(self, cache, store, snapshot, record_factory):
        """Every exact write is also a fallback-log write, both with the TTL."""
        await cache.put_exact(FLASH, snapshot, record_factory(snapshot))

        written = dict(store.set_calls)
        assert len(written) == 2
        assert all(ttl == 86400 for ttl in written.values())
        assert any(key.startswith(keys.exact_prefix(FLASH)) for key in written)
        assert any(key.startswith(keys.fallback_prefix(FLASH)) for key in written)

    @pytest.mark.asyncio
    async def test_variants_isolated(self, cache, snapshot, record_factory):
        """A record cached for one model never satisfies another."""
        await cache.put_exact(FLASH, snapshot, record_factory(snapshot))
        assert await cache.get_exact(PRO, snapshot) is None

    @pytest.mark.asyncio
    async def test_expired_entry_is_miss(self, cache, store, snapshot, record_factory):
        await cache.put_exact(FLASH, snapshot, record_factory(snapshot))
        store.expire(keys.exact_key(FLASH, cache.fingerprint(snapshot)))
        assert await cache.get_exact(FLASH, snapshot) is None

    @pytest.mark.asyncio
    async def test_store_down_reads_as_miss(self, cache, store, snapshot):
        store.fail_reads = True
        assert await cache.get_exact(FLASH, snapshot) is None

    @pytest.mark.asyncio
    async def test_corrupt_entry_reads_as_miss(self, cache, store, snapshot):
        await store.set(keys.exact_key(FLASH, cache.fingerprint(snapshot)), '{"sentiment": "up"}', 60)
        assert await cache.get_exact(FLASH, snapshot) is None

    @pytest.mark.asyncio
    async def test_missing_indicator_raises(self, cache):
        with pytest.raises(MissingIndicatorError):
            await cache.get_exact(FLASH, {"yieldPct": 4.5})

    @pytest.mark.asyncio
    async def test_put_rejects_mismatched_record(self, cache, snapshot, record_factory):
        """Records must carry the snapshot's fingerprint and the target variant."""
        other = record_factory({"yieldPct": 3.0, "dxy": 99.0})
        with pytest.raises(ValueError):
            await cache.put_exact(FLASH, snapshot, other)
        with pytest.raises(ValueError):
            await cache.put_exact(PRO, snapshot, record_factory(snapshot))

    @pytest.mark.asyncio
    async def test_put_propagates_store_failure(self, cache, store, snapshot, record_factory):
        store.fail_writes = True
        with pytest.raises(StoreUnavailableError):
            await cache.put_exact(FLASH, snapshot, record_factory(snapshot))

    @pytest.mark.asyncio
    async def test_hit_and_miss_recorded(self, cache, snapshot, record_factory):
        await cache.get_exact(FLASH, snapshot)
        await cache.put_exact(FLASH, snapshot, record_factory(snapshot))
        await cache.get_exact(FLASH, snapshot)

        stats = cache_metrics.get_stats(f"exact:{FLASH.value}")[f"exact:{FLASH.value}"]
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    @pytest.mark.asyncio
    async def test_store_outage_recorded_as_error(self, cache, store, snapshot):
        store.fail_reads = True
        await cache.get_exact(FLASH, snapshot)

        stats = cache_metrics.get_stats(f"exact:{FLASH.value}")[f"exact:{FLASH.value}"]
        assert stats["errors"] == 1
        assert stats["misses"] == 0

    @pytest.mark.asyncio
    async def test_failed_exact_write_waits_for_fallback_append(self, cache, store, snapshot, record_factory):
        """Both writes settle before the exact-write failure surfaces."""
        original_set = store.set

        async def failing_exact_set(key, value, ttl_seconds):
            if key.startswith(keys.exact_prefix(FLASH)):
                raise StoreUnavailableError("exact write refused")
            await asyncio.sleep(0)
            await original_set(key, value, ttl_seconds)

        store.set = failing_exact_set
        with pytest.raises(StoreUnavailableError):
            await cache.put_exact(FLASH, snapshot, record_factory(snapshot))

        assert any(key.startswith(keys.fallback_prefix(FLASH)) for key in store.data)


# =============================================================================
# Fallback log
# =============================================================================


class TestFallbackLog:
    """Tests for FallbackLog append / list_candidates / pruning."""

    @pytest.mark.asyncio
    async def test_bounded_log_keeps_newest(self, store, record_factory):
        """After N > K appends exactly K entries remain, oldest evicted first."""
        log = FallbackLog(store, ttl_seconds=3600, max_entries=3)
        now = datetime.now(UTC)
        records = [
            record_factory({"yieldPct": 4.0 + i / 10, "dxy": 100.0}, age=timedelta(minutes=10 - i), now=now)
            for i in range(5)
        ]
        for record in records:
            await log.append(FLASH, record)

        assert await log.count(FLASH) == 3
        candidates = await log.list_candidates(FLASH)
        assert candidates == [records[4], records[3], records[2]]

    @pytest.mark.asyncio
    async def test_same_millisecond_appends_do_not_collide(self, store, record_factory):
        log = FallbackLog(store, ttl_seconds=3600, max_entries=10)
        now = datetime.now(UTC)
        first = record_factory({"yieldPct": 4.0, "dxy": 100.0}, now=now)
        second = record_factory({"yieldPct": 4.1, "dxy": 100.0}, now=now)

        key_a = await log.append(FLASH, first)
        key_b = await log.append(FLASH, second)
        assert key_a != key_b
        assert await log.count(FLASH) == 2

    @pytest.mark.asyncio
    async def test_cross_variant_isolation(self, store, record_factory):
        log = FallbackLog(store, ttl_seconds=3600)
        await log.append(FLASH, record_factory({"yieldPct": 4.0, "dxy": 100.0}))

        assert await log.list_candidates(PRO) == []
        assert len(await log.list_candidates(FLASH)) == 1

    @pytest.mark.asyncio
    async def test_append_rejects_foreign_variant(self, store, record_factory):
        log = FallbackLog(store, ttl_seconds=3600)
        with pytest.raises(ValueError):
            await log.append(PRO, record_factory({"yieldPct": 4.0, "dxy": 100.0}))

    @pytest.mark.asyncio
    async def test_pruning_failure_swallowed(self, store, record_factory):
        """Delete failures never fail the append."""
        log = FallbackLog(store, ttl_seconds=3600, max_entries=1)
        store.fail_delete = True
        await log.append(FLASH, record_factory({"yieldPct": 4.0, "dxy": 100.0}))
        key = await log.append(FLASH, record_factory({"yieldPct": 4.1, "dxy": 100.0}))

        assert key in store.data
        assert await log.count(FLASH) == 2

    @pytest.mark.asyncio
    async def test_listing_failure_is_empty(self, store, record_factory):
        log = FallbackLog(store, ttl_seconds=3600)
        await log.append(FLASH, record_factory({"yieldPct": 4.0, "dxy": 100.0}))
        store.fail_list = True
        assert await log.list_candidates(FLASH) == []

    @pytest.mark.asyncio
    async def test_corrupt_and_vanished_entries_skipped(self, store, record_factory):
        """Corrupt payloads and keys deleted mid-enumeration are not candidates."""
        log = FallbackLog(store, ttl_seconds=3600)
        good = record_factory({"yieldPct": 4.0, "dxy": 100.0})
        await log.append(FLASH, good)
        await store.set(keys.fallback_key(FLASH, datetime.now(UTC)), "not json", 3600)
        vanished = await log.append(FLASH, record_factory({"yieldPct": 4.2, "dxy": 100.0}))
        store.expire(vanished)

        assert await log.list_candidates(FLASH) == [good]

    def test_rejects_zero_capacity(self, store):
        with pytest.raises(ValueError):
            FallbackLog(store, ttl_seconds=3600, max_entries=0)


# =============================================================================
# Facade
# =============================================================================


class TestAnalysisCache:
    """Tests for find_similar, stats and clear."""

    @pytest.mark.asyncio
    async def test_find_similar_none_without_log(self, cache, snapshot):
        assert await cache.find_similar(FLASH, snapshot) is None
        stats = cache_metrics.get_stats(f"fallback:{FLASH.value}")
        assert stats[f"fallback:{FLASH.value}"]["misses"] == 1

    @pytest.mark.asyncio
    async def test_find_similar_returns_closest(self, cache, record_factory):
        far = {"yieldPct": 4.0, "dxy": 100.0}
        near = {"yieldPct": 4.5, "dxy": 104.9}
        await cache.put_exact(FLASH, far, record_factory(far, reasoning="far"))
        await cache.put_exact(FLASH, near, record_factory(near, reasoning="near"))

        match = await cache.find_similar(FLASH, {"yieldPct": 4.51, "dxy": 105.0})
        assert match is not None
        assert match.reasoning == "near"

    @pytest.mark.asyncio
    async def test_stats_counts_keys(self, cache, record_factory):
        a = {"yieldPct": 4.0, "dxy": 100.0}
        b = {"yieldPct": 4.5, "dxy": 104.9}
        await cache.put_exact(FLASH, a, record_factory(a))
        await cache.put_exact(FLASH, b, record_factory(b))

        stats = await cache.stats(FLASH)
        assert stats.exact_keys == 2
        assert stats.fallback_keys == 2
        assert (await cache.stats(PRO)).exact_keys == 0

    @pytest.mark.asyncio
    async def test_clear_one_variant(self, cache, snapshot, record_factory):
        await cache.put_exact(FLASH, snapshot, record_factory(snapshot))
        await cache.put_exact(PRO, snapshot, record_factory(snapshot, variant=PRO))

        assert await cache.clear(FLASH) == 2
        assert await cache.get_exact(FLASH, snapshot) is None
        assert await cache.get_exact(PRO, snapshot) is not None

    @pytest.mark.asyncio
    async def test_clear_all(self, cache, snapshot, record_factory):
        await cache.put_exact(FLASH, snapshot, record_factory(snapshot))
        await cache.put_exact(PRO, snapshot, record_factory(snapshot, variant=PRO))

        assert await cache.clear() == 4
        assert await cache.clear() == 0


class TestAnalysisRecord:
    """Tests for record (de)serialization."""

    def test_round_trip(self, record_factory):
        record = record_factory({"yieldPct": 4.5, "dxy": 105.0})
        assert AnalysisRecord.loads(record.dumps()) == record

    def test_serialized_with_camel_case(self, record_factory):
        raw = record_factory({"yieldPct": 4.5, "dxy": 105.0}).model_dump(by_alias=True)
        assert {"producedAt", "isFallback", "modelVariant", "fallbackNote"} <= set(raw)

    def test_missing_fields_fail_loudly(self):
        with pytest.raises(CorruptCacheEntryError):
            AnalysisRecord.loads('{"sentiment": "bullish", "reasoning": "x"}')

    def test_naive_timestamps_become_utc(self, record_factory):
        record = record_factory({"yieldPct": 4.5, "dxy": 105.0})
        restored = AnalysisRecord.model_validate(
            {**record.model_dump(), "produced_at": datetime(2026, 1, 1, 8, 0)}
        )
        assert restored.produced_at == datetime(2026, 1, 1, 8, 0, tzinfo=UTC)

    def test_as_fallback_marks_copy(self, record_factory):
        record = record_factory({"yieldPct": 4.5, "dxy": 105.0})
        fallback = record.as_fallback("stale")
        assert fallback.is_fallback and fallback.fallback_note == "stale"
        assert not record.is_fallback


def test_memory_store_satisfies_protocol():
    from macropulse.cache.store import DurableStore

    assert isinstance(MemoryStore(), DurableStore)
