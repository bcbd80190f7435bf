# tests/storage/test_volatile.py
"""
Tests for VolatileStore and its async MemoryCacheClient facade.

These tests verify:
- Basic get/set/clear operations
- Absolute TTL expiry (boundary included, no sliding refresh)
- LRU eviction when the item limit is reached
- Thread safety
- Statistics tracking
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from tierstore.storage.volatile import MemoryCacheClient, VolatileItem, VolatileStore


class ManualClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


# =============================================================================
# VOLATILE ITEM
# =============================================================================


class TestVolatileItem:
    """Tests for the VolatileItem dataclass."""

    def test_no_expiry(self):
        item = VolatileItem(key="k", value="v", created_at=0.0)
        assert not item.is_expired(10**9)

    def test_expired_at_boundary(self):
        item = VolatileItem(key="k", value="v", created_at=0.0, expires_at=600.0)
        assert not item.is_expired(599.999)
        assert item.is_expired(600.0)


# =============================================================================
# VOLATILE STORE
# =============================================================================


class TestVolatileStoreBasic:
    """Basic operations."""

    def test_set_and_get(self):
        store = VolatileStore()
        store.set("a", "1")
        assert store.get("a") == "1"

    def test_missing_key(self):
        store = VolatileStore()
        assert store.get("missing") is None

    def test_overwrite(self):
        store = VolatileStore()
        store.set("a", "1")
        store.set("a", "2")
        assert store.get("a") == "2"
        assert len(store) == 1

    def test_clear(self):
        store = VolatileStore()
        store.set("a", "1")
        store.set("b", "2")
        assert store.clear() == 2
        assert len(store) == 0


class TestVolatileStoreTTL:
    """Absolute TTL expiry."""

    def test_item_expires_exactly_at_ttl(self):
        clock = ManualClock()
        store = VolatileStore(clock=clock)
        store.set("a", "1", ttl_seconds=600)

        clock.now += 599.9
        assert store.get("a") == "1"
        clock.now += 0.1
        assert store.get("a") is None

    def test_reads_do_not_extend_lifetime(self):
        clock = ManualClock()
        store = VolatileStore(clock=clock)
        store.set("a", "1", ttl_seconds=600)
        for _ in range(5):
            clock.now += 100
            assert store.get("a") == "1"
        clock.now += 100
        assert store.get("a") is None

    def test_rewrite_resets_expiry(self):
        clock = ManualClock()
        store = VolatileStore(clock=clock)
        store.set("a", "1", ttl_seconds=600)
        clock.now += 500
        store.set("a", "2", ttl_seconds=600)
        clock.now += 500
        assert store.get("a") == "2"

    def test_default_ttl_applies(self):
        clock = ManualClock()
        store = VolatileStore(default_ttl_seconds=10, clock=clock)
        store.set("a", "1")
        clock.now += 10
        assert store.get("a") is None

    def test_periodic_sweep_removes_expired(self):
        clock = ManualClock()
        store = VolatileStore(cleanup_interval_seconds=60, clock=clock)
        store.set("a", "1", ttl_seconds=5)
        store.set("b", "2", ttl_seconds=5)
        clock.now += 61
        store.set("c", "3")
        assert len(store) == 1
        assert store.stats()["expirations"] == 2


class TestVolatileStoreEviction:
    """LRU eviction at the item limit."""

    def test_evicts_least_recently_used(self):
        clock = ManualClock()
        store = VolatileStore(max_items=3, clock=clock)
        for key in ("a", "b", "c"):
            store.set(key, key)
            clock.now += 1
        store.get("a")  # "b" is now the oldest access
        clock.now += 1
        store.set("d", "d")

        assert store.get("b") is None
        assert store.get("a") == "a"
        assert store.get("d") == "d"
        assert store.stats()["evictions"] == 1

    def test_replacing_existing_key_does_not_evict(self):
        store = VolatileStore(max_items=2)
        store.set("a", "1")
        store.set("b", "2")
        store.set("a", "3")
        assert store.stats()["evictions"] == 0


class TestVolatileStoreStats:
    def test_hit_rate(self):
        store = VolatileStore()
        store.set("a", "1")
        store.get("a")
        store.get("a")
        store.get("missing")
        stats = store.stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(2 / 3)


class TestVolatileStoreThreadSafety:
    def test_concurrent_writers(self):
        store = VolatileStore(max_items=0)

        def writer(n: int) -> None:
            for i in range(200):
                store.set(f"{n}:{i}", str(i))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(writer, range(8)))

        assert len(store) == 1600


# =============================================================================
# MEMORY CACHE CLIENT
# =============================================================================


class TestMemoryCacheClient:
    @pytest.mark.asyncio
    async def test_async_round_trip(self):
        client = MemoryCacheClient()
        await client.set("entity:1", "payload", ttl_seconds=600)
        assert await client.get("entity:1") == "payload"

    @pytest.mark.asyncio
    async def test_ttl_respected(self):
        clock = ManualClock()
        client = MemoryCacheClient(VolatileStore(clock=clock))
        await client.set("entity:1", "payload", ttl_seconds=600)
        clock.now += 600
        assert await client.get("entity:1") is None
