# tests/storage/test_cache_backend.py
"""
Tests for the cache tier and its Redis transport.

The cache must never fail a caller: misses, expiry, undecodable payloads,
transport errors and deadlines all come back as None (fetch) or False (put).
Only contract violations raise.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from tierstore.config import CacheConfig
from tierstore.exceptions import InvalidArgumentError, InvalidKeyError
from tierstore.storage.cache import CacheBackend
from tierstore.storage.redis_cache import RedisCacheClient
from tierstore.storage.volatile import MemoryCacheClient, VolatileStore


@pytest.fixture
def memory_client(clock):
    return MemoryCacheClient(VolatileStore(clock=clock.timestamp))


@pytest.fixture
def cache(memory_client):
    return CacheBackend(memory_client, CacheConfig())


class SlowClient:
    async def get(self, key):
        await asyncio.sleep(1)
        return None

    async def set(self, key, value, ttl_seconds):
        await asyncio.sleep(1)


class TestCacheBackendBasics:
    @pytest.mark.asyncio
    async def test_put_then_fetch(self, cache, make_entity):
        entity = make_entity()
        assert await cache.put(entity) is True
        assert await cache.fetch(entity.id) == entity

    @pytest.mark.asyncio
    async def test_miss_returns_none(self, cache):
        assert await cache.fetch("nope") is None

    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self, cache, memory_client, make_entity):
        entity = make_entity()
        await cache.put(entity)
        assert memory_client.store.get(f"entity:{entity.id}") is not None
        assert memory_client.store.get(entity.id) is None

    @pytest.mark.asyncio
    async def test_put_overwrites(self, cache, make_entity):
        await cache.put(make_entity(description="old"))
        await cache.put(make_entity(description="new"))
        found = await cache.fetch(make_entity().id)
        assert found.description == "new"


class TestCacheBackendExpiry:
    @pytest.mark.asyncio
    async def test_served_before_ttl(self, cache, clock, make_entity):
        entity = make_entity()
        await cache.put(entity)
        clock.advance(minutes=9, seconds=59)
        assert await cache.fetch(entity.id) == entity

    @pytest.mark.asyncio
    async def test_absent_at_ttl(self, cache, clock, make_entity):
        entity = make_entity()
        await cache.put(entity)
        clock.advance(minutes=10)
        assert await cache.fetch(entity.id) is None

    @pytest.mark.asyncio
    async def test_read_does_not_refresh_ttl(self, cache, clock, make_entity):
        entity = make_entity()
        await cache.put(entity)
        clock.advance(minutes=8)
        assert await cache.fetch(entity.id) == entity
        clock.advance(minutes=2)
        assert await cache.fetch(entity.id) is None


class TestCacheBackendFailurePolicy:
    @pytest.mark.asyncio
    async def test_transport_error_on_fetch_is_a_miss(self, make_entity):
        client = AsyncMock()
        client.get.side_effect = ConnectionError("down")
        cache = CacheBackend(client)
        assert await cache.fetch(make_entity().id) is None

    @pytest.mark.asyncio
    async def test_transport_error_on_put_returns_false(self, make_entity):
        client = AsyncMock()
        client.set.side_effect = ConnectionError("down")
        cache = CacheBackend(client)
        assert await cache.put(make_entity()) is False

    @pytest.mark.asyncio
    async def test_deadline_on_fetch_is_a_miss(self, make_entity):
        cache = CacheBackend(SlowClient())
        assert await cache.fetch(make_entity().id, timeout=0.01) is None

    @pytest.mark.asyncio
    async def test_deadline_on_put_returns_false(self, make_entity):
        cache = CacheBackend(SlowClient())
        assert await cache.put(make_entity(), timeout=0.01) is False

    @pytest.mark.asyncio
    async def test_undecodable_payload_is_a_miss(self, cache, memory_client, caplog):
        await memory_client.set("entity:broken", "{not json", ttl_seconds=600)
        assert await cache.fetch("broken") is None
        assert "undecodable" in caplog.text

    @pytest.mark.asyncio
    async def test_empty_key_raises(self, cache):
        with pytest.raises(InvalidKeyError):
            await cache.fetch("")
        with pytest.raises(InvalidKeyError):
            await cache.fetch("   ")

    @pytest.mark.asyncio
    async def test_non_entity_put_raises(self, cache):
        with pytest.raises(InvalidArgumentError):
            await cache.put({"id": "x"})


class TestRedisCacheClient:
    @pytest.mark.asyncio
    async def test_set_uses_absolute_expiry_in_ms(self):
        redis_client = AsyncMock()
        client = RedisCacheClient(CacheConfig(backend="redis"), client=redis_client)
        await client.set("entity:abc", "payload", ttl_seconds=600)
        redis_client.set.assert_awaited_once_with("entity:abc", "payload", px=600_000)

    @pytest.mark.asyncio
    async def test_instance_name_prefixes_keys(self):
        redis_client = AsyncMock()
        redis_client.get.return_value = "payload"
        client = RedisCacheClient(CacheConfig(backend="redis", instance_name="svc:"), client=redis_client)
        assert await client.get("entity:abc") == "payload"
        redis_client.get.assert_awaited_once_with("svc:entity:abc")

    @pytest.mark.asyncio
    async def test_bytes_are_decoded(self):
        redis_client = AsyncMock()
        redis_client.get.return_value = b"payload"
        client = RedisCacheClient(CacheConfig(backend="redis"), client=redis_client)
        assert await client.get("entity:abc") == "payload"

    @pytest.mark.asyncio
    async def test_unreachable_server_at_startup_is_not_fatal(self, caplog):
        import redis.asyncio as redis

        redis_client = AsyncMock()
        redis_client.ping.side_effect = redis.ConnectionError("refused")
        client = RedisCacheClient(CacheConfig(backend="redis"), client=redis_client)
        await client.initialize()
        assert "unreachable" in caplog.text

    @pytest.mark.asyncio
    async def test_backend_over_redis_round_trip(self, make_entity):
        stored = {}
        redis_client = AsyncMock()

        async def fake_set(key, value, px):
            stored[key] = value

        async def fake_get(key):
            return stored.get(key)

        redis_client.set.side_effect = fake_set
        redis_client.get.side_effect = fake_get
        cache = CacheBackend(RedisCacheClient(CacheConfig(backend="redis"), client=redis_client))

        entity = make_entity()
        assert await cache.put(entity) is True
        assert await cache.fetch(entity.id) == entity
