"""Analysis cache metrics.

In-process hit/miss tracking for the exact cache and the similarity
fallback, per model variant.

Usage:
    from macropulse.cache.metrics import cache_metrics

    cache_metrics.record_hit("exact:gemini-2.5-flash")
    cache_metrics.record_miss("exact:gemini-2.5-flash")

    stats = cache_metrics.get_stats()
    # {"exact:gemini-2.5-flash": {"hits": 150, "misses": 10, "hit_rate": 0.9375, ...}}
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass

from macropulse.core.logging import get_logger


logger = get_logger("cache.metrics")


@dataclass
class OperationStats:
    """Statistics for a single cache prefix."""

    hits: int = 0
    misses: int = 0
    errors: int = 0
    total_get_time_ms: float = 0.0
    get_count: int = 0
    last_hit: float | None = None
    last_miss: float | None = None

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    @property
    def avg_get_time_ms(self) -> float:
        """Average lookup time in milliseconds."""
        return self.total_get_time_ms / self.get_count if self.get_count > 0 else 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "hit_rate": round(self.hit_rate, 4),
            "avg_get_time_ms": round(self.avg_get_time_ms, 2),
            "total_operations": self.hits + self.misses,
        }


class CacheMetrics:
    """Process-local cache metrics collector."""

    def __init__(self):
        self._stats: dict[str, OperationStats] = defaultdict(OperationStats)
        self._start_time = time.time()

    def record_hit(self, prefix: str, duration_ms: float = 0.0) -> None:
        """Record a cache hit."""
        stats = self._stats[prefix]
        stats.hits += 1
        stats.last_hit = time.time()
        if duration_ms > 0:
            stats.total_get_time_ms += duration_ms
            stats.get_count += 1

    def record_miss(self, prefix: str, duration_ms: float = 0.0) -> None:
        """Record a cache miss."""
        stats = self._stats[prefix]
        stats.misses += 1
        stats.last_miss = time.time()
        if duration_ms > 0:
            stats.total_get_time_ms += duration_ms
            stats.get_count += 1

    def record_error(self, prefix: str) -> None:
        """Record a cache error."""
        self._stats[prefix].errors += 1

    def get_stats(self, prefix: str | None = None) -> dict:
        """Get cache statistics, for one prefix or all of them."""
        if prefix:
            if prefix in self._stats:
                return {prefix: self._stats[prefix].to_dict()}
            return {}

        return {p: s.to_dict() for p, s in self._stats.items()}

    def get_summary(self) -> dict:
        """Get summary statistics across all caches."""
        total_hits = sum(s.hits for s in self._stats.values())
        total_misses = sum(s.misses for s in self._stats.values())
        total_errors = sum(s.errors for s in self._stats.values())
        total = total_hits + total_misses

        return {
            "total_hits": total_hits,
            "total_misses": total_misses,
            "total_errors": total_errors,
            "overall_hit_rate": round(total_hits / total, 4) if total > 0 else 0.0,
            "uptime_seconds": round(time.time() - self._start_time, 0),
            "caches_tracked": len(self._stats),
            "by_cache": self.get_stats(),
        }

    def reset(self) -> None:
        """Reset all statistics."""
        self._stats.clear()
        self._start_time = time.time()
        logger.info("Cache metrics reset")


# Global singleton instance
cache_metrics = CacheMetrics()


class CacheTimer:
    """Context manager for timing cache lookups.

    Usage:
        with CacheTimer("exact:gemini-2.5-flash") as timer:
            value = await store.get(key)
            timer.was_hit = value is not None
    """

    def __init__(self, prefix: str, metrics: CacheMetrics | None = None):
        self.prefix = prefix
        self.metrics = metrics or cache_metrics
        self.start_time: float = 0.0
        self.was_hit: bool = False
        self.failed: bool = False

    def __enter__(self) -> CacheTimer:
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type or self.failed:
            self.metrics.record_error(self.prefix)
        elif self.was_hit:
            self.metrics.record_hit(self.prefix, duration_ms)
        else:
            self.metrics.record_miss(self.prefix, duration_ms)
