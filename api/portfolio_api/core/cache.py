"""
Key-Value Cache Module

Short-lived authentication state (WebAuthn challenges, registration tokens,
lockout counters, one-time codes, login flow records) lives behind the
KeyValueStore interface. A single instance can run on the in-process
MemoryStore; multi-instance deployments point PORTFOLIO_REDIS_URL at Redis.
"""

import logging
import math
import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as redis

from portfolio_api.config import get_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class KeyValueStore(Protocol):
    """String key-value store with per-key expiry."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: float) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def pop(self, key: str) -> str | None:
        """Atomically read and delete a key."""
        ...

    async def keys(self, prefix: str) -> list[str]: ...


class MemoryStore:
    """
    In-process store for single-instance deployments and tests.

    Expired entries are dropped on access, and every write at least
    purge_interval seconds after the last purge drops all expired entries.
    The clock is injectable so expiry can be driven deterministically.
    """

    def __init__(self, clock: Clock = time.time, purge_interval: float = 60.0):
        self.clock = clock
        self.purge_interval = purge_interval
        self._data: dict[str, tuple[str, float]] = {}
        self._next_purge = clock() + purge_interval

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def purge_expired(self) -> int:
        """
        Drop every expired entry.

        Returns:
            Number of entries removed
        """
        now = self.clock()
        expired = [key for key, (_, expires_at) in self._data.items() if now >= expires_at]
        for key in expired:
            del self._data[key]
        self._next_purge = now + self.purge_interval
        return len(expired)

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        now = self.clock()
        if now >= self._next_purge:
            self.purge_expired()
        self._data[key] = (value, now + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def pop(self, key: str) -> str | None:
        value = self._live(key)
        self._data.pop(key, None)
        return value

    async def keys(self, prefix: str) -> list[str]:
        return [k for k in list(self._data) if k.startswith(prefix) and self._live(k) is not None]

    def __len__(self) -> int:
        return len(self._data)


class RedisStore:
    """KeyValueStore backed by redis.asyncio."""

    def __init__(self, client: redis.Redis):
        self.client = client

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        # Redis expiry granularity is one second
        await self.client.set(key, value, ex=max(1, math.ceil(ttl_seconds)))

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def pop(self, key: str) -> str | None:
        return await self.client.getdel(key)

    async def keys(self, prefix: str) -> list[str]:
        return [key async for key in self.client.scan_iter(match=f"{prefix}*")]

    async def aclose(self) -> None:
        await self.client.aclose()


# Module-level cache for the shared store
_store: KeyValueStore | None = None


def get_store() -> KeyValueStore:
    """
    Get the shared key-value store.

    Creates a Redis-backed store when PORTFOLIO_REDIS_URL is set, otherwise
    an in-process MemoryStore. Reused for subsequent calls.

    Returns:
        KeyValueStore instance
    """
    global _store

    if _store is None:
        settings = get_settings()
        if settings.redis_url:
            client = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=settings.redis_timeout_seconds,
                socket_connect_timeout=settings.redis_timeout_seconds,
            )
            _store = RedisStore(client)
            logger.info("Using Redis for authentication state")
        else:
            _store = MemoryStore()
            logger.info("Using in-process memory store for authentication state")

    return _store


async def close_store() -> None:
    """
    Close the shared store.

    Should be called on application shutdown.
    """
    global _store

    if isinstance(_store, RedisStore):
        await _store.aclose()
    _store = None


def reset_store() -> None:
    """Drop the shared store without closing it (for testing)."""
    global _store
    _store = None
