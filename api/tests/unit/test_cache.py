"""Unit tests for the key-value stores."""

from unittest.mock import AsyncMock

import pytest

from portfolio_api.config import clear_settings_cache
from portfolio_api.core.cache import MemoryStore, RedisStore, get_store, reset_store


@pytest.mark.unit
class TestMemoryStore:
    """Tests for MemoryStore."""

    async def test_set_and_get(self, store):
        await store.set("k", "v", 10)

        assert await store.get("k") == "v"

    async def test_entry_expires(self, store, clock):
        await store.set("k", "v", 10)

        clock.advance(9)
        assert await store.get("k") == "v"

        clock.advance(1)
        assert await store.get("k") is None
        assert len(store) == 0

    async def test_pop_is_single_use(self, store):
        await store.set("k", "v", 10)

        assert await store.pop("k") == "v"
        assert await store.pop("k") is None

    async def test_pop_expired(self, store, clock):
        await store.set("k", "v", 10)
        clock.advance(10)

        assert await store.pop("k") is None

    async def test_keys_by_prefix(self, store, clock):
        await store.set("a:1", "x", 10)
        await store.set("a:2", "x", 5)
        await store.set("b:1", "x", 10)

        assert sorted(await store.keys("a:")) == ["a:1", "a:2"]

        clock.advance(5)
        assert await store.keys("a:") == ["a:1"]

    async def test_delete_missing_key(self, store):
        await store.delete("missing")

    async def test_expired_entries_purged_on_write(self, store, clock):
        for i in range(500):
            await store.set(f"lockout:198.51.{i // 256}.{i % 256}", "x", 10)
        assert len(store) == 500

        clock.advance(61)
        await store.set("fresh", "v", 10)

        assert len(store) == 1
        assert await store.get("fresh") == "v"

    async def test_purge_waits_for_interval(self, clock):
        store = MemoryStore(clock, purge_interval=60)
        await store.set("short", "v", 5)

        clock.advance(30)
        await store.set("other", "v", 100)

        assert len(store) == 2

    async def test_purge_expired_keeps_live_entries(self, store, clock):
        await store.set("short", "v", 5)
        await store.set("long", "v", 100)
        clock.advance(5)

        assert store.purge_expired() == 1
        assert len(store) == 1
        assert await store.get("long") == "v"


@pytest.mark.unit
class TestSharedStore:
    """Tests for the process-wide store accessor."""

    def test_memory_store_without_redis_url(self, monkeypatch):
        monkeypatch.delenv("PORTFOLIO_REDIS_URL", raising=False)
        clear_settings_cache()

        store = get_store()

        assert isinstance(store, MemoryStore)
        assert get_store() is store

    def test_reset_store_drops_instance(self, monkeypatch):
        monkeypatch.delenv("PORTFOLIO_REDIS_URL", raising=False)
        clear_settings_cache()
        first = get_store()

        reset_store()

        assert get_store() is not first


@pytest.mark.unit
class TestRedisStore:
    """Tests for RedisStore command mapping."""

    async def test_set_rounds_ttl_up(self):
        client = AsyncMock()

        await RedisStore(client).set("k", "v", 0.2)

        client.set.assert_awaited_once_with("k", "v", ex=1)

    async def test_pop_uses_getdel(self):
        client = AsyncMock()
        client.getdel.return_value = "v"

        assert await RedisStore(client).pop("k") == "v"
        client.getdel.assert_awaited_once_with("k")

    async def test_keys_scans_prefix(self):
        class FakeClient:
            async def scan_iter(self, match):
                assert match == "a:*"
                for key in ("a:1", "a:2"):
                    yield key

        assert await RedisStore(FakeClient()).keys("a:") == ["a:1", "a:2"]
