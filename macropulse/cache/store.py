"""Durable key/value store contract and its Valkey implementation.

The analysis cache only needs four operations: get, set with TTL, prefix
enumeration and best-effort delete. Anything that provides them (a Valkey
client, an in-memory double in tests) can back the cache.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import redis.asyncio as redis
from redis.asyncio import Redis

from macropulse.cache.client import valkey_healthcheck
from macropulse.core.exceptions import StoreUnavailableError


@runtime_checkable
class DurableStore(Protocol):
    """Remote key/value store with per-key expiry and prefix enumeration."""

    async def get(self, key: str) -> str | None:
        """Value for ``key``, or None if absent or expired."""

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Write ``value``, overwriting and resetting the TTL."""

    async def list_keys(self, prefix: str) -> list[str]:
        """Keys starting with ``prefix``; may lag behind recent writes."""

    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many existed."""


class ValkeyStore:
    """DurableStore backed by a Valkey (Redis-compatible) client."""

    def __init__(self, client: Redis, scan_count: int = 100):
        self._client = client
        self._scan_count = scan_count

    @property
    def client(self) -> Redis:
        return self._client

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailableError(f"GET {key} failed: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailableError(f"SET {key} failed: {e}") from e

    async def list_keys(self, prefix: str) -> list[str]:
        keys: list[str] = []
        try:
            async for key in self._client.scan_iter(
                match=f"{_escape_glob(prefix)}*", count=self._scan_count
            ):
                keys.append(key)
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailableError(f"SCAN {prefix}* failed: {e}") from e
        # SCAN may return a key more than once
        return list(dict.fromkeys(keys))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self._client.delete(*keys))
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailableError(f"DEL of {len(keys)} keys failed: {e}") from e

    async def ping(self) -> bool:
        return await valkey_healthcheck(self._client)


def _escape_glob(prefix: str) -> str:
    """Escape glob metacharacters so the prefix matches literally."""
    for char in ("\\", "*", "?", "[", "]"):
        prefix = prefix.replace(char, f"\\{char}")
    return prefix
