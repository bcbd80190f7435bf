# src/tierstore/storage/cache.py
"""
Cache Tier: volatile, lowest-latency storage.

The cache tier is never a hard dependency: it must not be able to fail a
read or a write of the tiers behind it.

Failure policy (owned by this module, not by callers):
- `fetch` of a missing or expired key returns None.
- Any transport, decode or deadline failure on `fetch` is logged and
  returned as None.
- Any transport or deadline failure on `put` is logged and swallowed;
  `put` returns False.
- Contract violations (empty key, entity without id) still raise.

Key naming: ``entity:{id}``. Every write sets an absolute expiry of
``ttl_seconds`` (600 by default) with no sliding refresh.

Architecture:
    **CacheBackend (hot)** → SnapshotBackend (warm) → AuthoritativeBackend (cold)
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from pydantic import ValidationError

from ..config import CacheConfig
from ..models import Entity
from .base import StorageKind, require_entity, require_key, with_deadline

logger = logging.getLogger(__name__)


class CacheClient(Protocol):
    """Transport used by the cache tier: string payloads with absolute TTL."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        ...


class CacheBackend:
    """Cache tier over a pluggable :class:`CacheClient`.

    Args:
        client: Shared cache transport (in-process or Redis).
        config: Cache configuration (key prefix, TTL, default deadline).
    """

    kind = StorageKind.CACHE
    name = StorageKind.CACHE.value

    def __init__(self, client: CacheClient, config: CacheConfig | None = None) -> None:
        self._client = client
        self._config = config or CacheConfig()

    def cache_key(self, entity_id: str) -> str:
        return f"{self._config.key_prefix}{entity_id}"

    def _deadline(self, timeout: Optional[float]) -> float:
        return timeout if timeout is not None else self._config.operation_timeout_seconds

    async def fetch(self, key: str, timeout: Optional[float] = None) -> Optional[Entity]:
        """Return the cached entity for `key`, or None on miss, expiry or any failure."""
        require_key(key, self.name)
        cache_key = self.cache_key(key)
        try:
            payload = await with_deadline(self._client.get(cache_key), self._deadline(timeout))
            if payload is None:
                return None
            return Entity.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("Discarding undecodable cache payload for '%s': %s", cache_key, e)
            return None
        except Exception as e:
            logger.warning("Cache read failed for '%s'; treating as miss: %s", cache_key, e)
            return None

    async def put(self, entity: Entity, timeout: Optional[float] = None) -> bool:
        """Write `entity` with an absolute TTL. Transport failures are logged and return False."""
        require_entity(entity, self.name)
        cache_key = self.cache_key(entity.id)
        try:
            payload = entity.model_dump_json()
            await with_deadline(
                self._client.set(cache_key, payload, self._config.ttl_seconds),
                self._deadline(timeout),
            )
            return True
        except Exception as e:
            logger.warning("Cache write failed for '%s'; continuing without cache: %s", cache_key, e)
            return False
