# src/tierstore/storage/redis_cache.py
"""
Redis transport for the cache tier.

Payloads are stored as strings with an absolute expiry set on every write
(`SET key value PX ttl`), so a read never extends an item's lifetime.
Key naming: ``{instance_name}{key}``, where `key` already carries the cache
tier's ``entity:`` namespace.

This client raises whatever redis-py raises; the cache backend decides
which failures are swallowed.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis

from ..config import CacheConfig

logger = logging.getLogger(__name__)


class RedisCacheClient:
    """Async Redis client used by :class:`~tierstore.storage.cache.CacheBackend`.

    The underlying connection pool is long-lived and shared by every
    concurrent call.

    Args:
        config: Cache configuration carrying the Redis connection settings.
        client: Optional pre-built ``redis.asyncio.Redis`` (tests, custom pools).
    """

    def __init__(self, config: CacheConfig, client: redis.Redis | None = None) -> None:
        self._config = config
        self._prefix = config.instance_name
        self.client = client or redis.Redis(
            host=config.host,
            port=config.port,
            db=config.db,
            username=config.username,
            password=config.password,
            ssl=config.ssl,
            socket_connect_timeout=config.connect_timeout_ms / 1000,
            socket_timeout=config.socket_timeout_ms / 1000,
            decode_responses=True,  # Return strings, not bytes
        )

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def initialize(self) -> None:
        """Ping the server; an unreachable server is logged, not fatal."""
        try:
            await self.client.ping()
            logger.info(
                "Redis cache connected (host=%s, port=%d, db=%d).",
                self._config.host,
                self._config.port,
                self._config.db,
            )
        except redis.RedisError as e:
            # The cache is never a hard dependency for availability.
            logger.warning("Redis cache unreachable at startup: %s", e)

    async def get(self, key: str) -> str | None:
        value = await self.client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        await self.client.set(self._key(key), value, px=int(ttl_seconds * 1000))

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Redis cache connection closed.")
