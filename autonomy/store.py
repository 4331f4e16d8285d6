"""Shared key-value store used for daily-cap counters, the managed position
registry and the run log.

Two implementations share one interface:

- ``RedisStore``: redis-py asyncio client. The capped increment runs as a
  single Lua script so that overlapping ticks, even from different
  processes, cannot jointly overshoot a cap.
- ``MemoryStore``: in-process dictionaries. No await happens between a read
  and the matching write, so each operation is atomic within one event
  loop. Used when no Redis URL is configured and in tests.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from autonomy.config import REDIS_SOCKET_TIMEOUT, REDIS_URL
from autonomy.errors import StoreError

logger = logging.getLogger(__name__)


# KEYS[1] counter key; ARGV amount, cap (<= 0 means uncapped), ttl seconds
_INCREMENT_WITH_CAP = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
local amount = tonumber(ARGV[1])
local cap = tonumber(ARGV[2])
if cap > 0 and current + amount > cap then
  return 0
end
redis.call('INCRBYFLOAT', KEYS[1], amount)
redis.call('EXPIRE', KEYS[1], tonumber(ARGV[3]))
return 1
"""


class SharedStore(ABC):
    """Atomic primitives the engine relies on instead of in-process locks."""

    @abstractmethod
    async def atomic_increment_with_cap(
        self, key: str, amount: float, cap: float, ttl_seconds: int
    ) -> bool:
        """Add ``amount`` to ``key`` unless the total would exceed ``cap``.

        Returns True if the increment was applied.
        """

    @abstractmethod
    async def get_float(self, key: str) -> float: ...

    @abstractmethod
    async def hash_upsert(self, key: str, field: str, value: str) -> None: ...

    @abstractmethod
    async def hash_delete(self, key: str, field: str) -> None: ...

    @abstractmethod
    async def hash_get_all(self, key: str) -> dict[str, str]: ...

    @abstractmethod
    async def list_push_trim(self, key: str, value: str, max_len: int) -> None:
        """Prepend ``value`` and keep only the newest ``max_len`` entries."""

    @abstractmethod
    async def list_range(self, key: str, limit: int) -> list[str]: ...

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


class RedisStore(SharedStore):
    def __init__(
        self,
        url: str = REDIS_URL,
        socket_timeout: float = REDIS_SOCKET_TIMEOUT,
        client: Optional[aioredis.Redis] = None,
    ) -> None:
        # An injected client must be created with decode_responses=True.
        if client is None:
            client = aioredis.from_url(
                url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        self._client = client
        self._increment_with_cap = self._client.register_script(_INCREMENT_WITH_CAP)

    async def atomic_increment_with_cap(
        self, key: str, amount: float, cap: float, ttl_seconds: int
    ) -> bool:
        try:
            applied = await self._increment_with_cap(
                keys=[key], args=[amount, cap, max(1, int(ttl_seconds))]
            )
        except RedisError as exc:
            raise StoreError(f"increment failed for {key}: {exc}") from exc
        return int(applied) == 1

    async def get_float(self, key: str) -> float:
        try:
            value = await self._client.get(key)
        except RedisError as exc:
            raise StoreError(str(exc)) from exc
        return float(value) if value is not None else 0.0

    async def hash_upsert(self, key: str, field: str, value: str) -> None:
        try:
            await self._client.hset(key, field, value)
        except RedisError as exc:
            raise StoreError(str(exc)) from exc

    async def hash_delete(self, key: str, field: str) -> None:
        try:
            await self._client.hdel(key, field)
        except RedisError as exc:
            raise StoreError(str(exc)) from exc

    async def hash_get_all(self, key: str) -> dict[str, str]:
        try:
            return dict(await self._client.hgetall(key))
        except RedisError as exc:
            raise StoreError(str(exc)) from exc

    async def list_push_trim(self, key: str, value: str, max_len: int) -> None:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.lpush(key, value)
                pipe.ltrim(key, 0, max_len - 1)
                await pipe.execute()
        except RedisError as exc:
            raise StoreError(str(exc)) from exc

    async def list_range(self, key: str, limit: int) -> list[str]:
        try:
            return list(await self._client.lrange(key, 0, limit - 1))
        except RedisError as exc:
            raise StoreError(str(exc)) from exc

    async def close(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# In-process fallback
# ---------------------------------------------------------------------------


class MemoryStore(SharedStore):
    def __init__(self) -> None:
        self._values: dict[str, float] = {}
        self._expiry: dict[str, float] = {}
        self._hashes: dict[str, dict[str, str]] = {}
        self._lists: dict[str, list[str]] = {}

    def _live_value(self, key: str) -> float:
        expires_at = self._expiry.get(key)
        if expires_at is not None and expires_at <= time.time():
            self._values.pop(key, None)
            self._expiry.pop(key, None)
        return self._values.get(key, 0.0)

    async def atomic_increment_with_cap(
        self, key: str, amount: float, cap: float, ttl_seconds: int
    ) -> bool:
        current = self._live_value(key)
        if cap > 0 and current + amount > cap:
            return False
        self._values[key] = current + amount
        self._expiry[key] = time.time() + max(1, int(ttl_seconds))
        return True

    async def get_float(self, key: str) -> float:
        return self._live_value(key)

    async def hash_upsert(self, key: str, field: str, value: str) -> None:
        self._hashes.setdefault(key, {})[field] = value

    async def hash_delete(self, key: str, field: str) -> None:
        self._hashes.get(key, {}).pop(field, None)

    async def hash_get_all(self, key: str) -> dict[str, str]:
        return dict(self._hashes.get(key, {}))

    async def list_push_trim(self, key: str, value: str, max_len: int) -> None:
        items = self._lists.setdefault(key, [])
        items.insert(0, value)
        del items[max_len:]

    async def list_range(self, key: str, limit: int) -> list[str]:
        return list(self._lists.get(key, [])[:limit])


def build_store(url: str = REDIS_URL) -> SharedStore:
    """Return a Redis-backed store when a URL is configured, else in-memory."""
    if url:
        logger.info("store_init", extra={"backend": "redis"})
        return RedisStore(url)
    logger.warning("store_init", extra={"backend": "memory"})
    return MemoryStore()
