# src/tierstore/storage/volatile.py
"""
Volatile in-process store with absolute TTL.

This is the default transport behind the cache tier when no Redis server is
configured. It keeps serialized payloads in a dictionary guarded by an
RLock and supports:
- Absolute expiry per item (no sliding refresh on reads)
- An item limit with LRU eviction
- Hit/miss/eviction statistics

The clock is injectable so expiry boundaries can be exercised without
sleeping.

Usage:
    store = VolatileStore(max_items=10_000)
    store.set("entity:abc", payload, ttl_seconds=600)
    payload = store.get("entity:abc")   # None once 600s have elapsed

    client = MemoryCacheClient(store)   # async facade used by CacheBackend
    await client.set("entity:abc", payload, ttl_seconds=600)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class VolatileItem:
    """An item stored in volatile memory.

    Attributes:
        key: Unique identifier for the item.
        value: The stored payload.
        created_at: Clock reading when the item was written.
        expires_at: Clock reading at which the item stops being served (None = never).
        last_accessed: Clock reading of the last successful read.
    """

    key: str
    value: Any
    created_at: float
    expires_at: float | None = None
    last_accessed: float = field(default=0.0)

    def is_expired(self, now: float) -> bool:
        """An item is expired from the instant its expiry is reached."""
        return self.expires_at is not None and now >= self.expires_at


class VolatileStore:
    """Thread-safe dictionary store with absolute TTL and LRU eviction.

    Expired items are removed lazily on access and periodically during
    writes; no background thread is started.

    Attributes:
        max_items: Maximum number of items (0 = unlimited).
        default_ttl_seconds: TTL used when `set` is called without one (None = no expiry).
        cleanup_interval: Seconds between sweeps of expired items.
    """

    def __init__(
        self,
        max_items: int = 10_000,
        default_ttl_seconds: float | None = None,
        cleanup_interval_seconds: float = 60.0,
        clock: Clock = time.time,
    ) -> None:
        self.max_items = max_items
        self.default_ttl_seconds = default_ttl_seconds
        self.cleanup_interval = cleanup_interval_seconds
        self._clock = clock

        self._store: dict[str, VolatileItem] = {}
        self._lock = threading.RLock()
        self._last_cleanup = clock()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "evictions": 0,
            "expirations": 0,
        }

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup > self.cleanup_interval:
            expired = [k for k, v in self._store.items() if v.is_expired(now)]
            for key in expired:
                del self._store[key]
            self._stats["expirations"] += len(expired)
            self._last_cleanup = now
            if expired:
                logger.debug("Swept %d expired items", len(expired))

    def _evict_lru(self) -> None:
        # Evict 10% of items (at least one), oldest access first.
        count = max(1, len(self._store) // 10)
        oldest = sorted(self._store.values(), key=lambda item: item.last_accessed)[:count]
        for item in oldest:
            del self._store[item.key]
        self._stats["evictions"] += len(oldest)
        logger.debug("Evicted %d LRU items", len(oldest))

    def get(self, key: str) -> Any | None:
        """Return the payload for `key`, or None when missing or expired."""
        with self._lock:
            now = self._clock()
            self._maybe_cleanup(now)
            item = self._store.get(key)
            if item is None:
                self._stats["misses"] += 1
                return None
            if item.is_expired(now):
                del self._store[key]
                self._stats["misses"] += 1
                self._stats["expirations"] += 1
                return None
            item.last_accessed = now
            self._stats["hits"] += 1
            return item.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store `value` under `key`, replacing any previous item and resetting its expiry."""
        with self._lock:
            now = self._clock()
            self._maybe_cleanup(now)
            if self.max_items > 0 and key not in self._store and len(self._store) >= self.max_items:
                self._evict_lru()

            ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
            self._store[key] = VolatileItem(
                key=key,
                value=value,
                created_at=now,
                expires_at=now + ttl if ttl is not None else None,
                last_accessed=now,
            )
            self._stats["sets"] += 1

    def clear(self) -> int:
        with self._lock:
            count = len(self._store)
            self._store.clear()
            return count

    def stats(self) -> dict[str, Any]:
        """Return item count, hit rate and raw counters."""
        with self._lock:
            total = self._stats["hits"] + self._stats["misses"]
            return {
                "item_count": len(self._store),
                "max_items": self.max_items,
                "hit_rate": self._stats["hits"] / total if total > 0 else 0.0,
                **self._stats,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


class MemoryCacheClient:
    """Async cache-client facade over a :class:`VolatileStore`."""

    def __init__(self, store: VolatileStore | None = None) -> None:
        self.store = store or VolatileStore()

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        self.store.set(key, value, ttl_seconds=ttl_seconds)

    async def initialize(self) -> None:
        logger.debug("MemoryCacheClient ready (max_items=%d).", self.store.max_items)

    async def close(self) -> None:
        self.store.clear()
