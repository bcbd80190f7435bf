# src/tierstore/storage/factory.py
"""
Storage Factory for tierstore.

Builds a StorageBackend of a requested kind, bound to the factory's shared,
long-lived tier dependency (cache client, snapshot store handle, entity
repository), and always wraps it in an ObservabilityDecorator.

The factory holds no per-call state: every `create_backend` call returns a
fresh, independent handle, and handles for the same kind share the same
underlying dependency (in particular the snapshot store's write lock).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from ..config import TierStoreConfig
from ..exceptions import InvalidArgumentError
from .authoritative import AuthoritativeBackend
from .base import StorageBackend, StorageKind
from .cache import CacheBackend, CacheClient
from .decorator import ObservabilityDecorator
from .instrumentation import StorageInstrumentation
from .repository import EntityRepository
from .snapshot import SnapshotBackend, SnapshotStore, UtcClock, utc_now
from .volatile import MemoryCacheClient, VolatileStore

logger = logging.getLogger(__name__)


def build_cache_client(config: TierStoreConfig) -> CacheClient:
    """Create the cache transport named by ``config.cache.backend``."""
    if config.cache.backend == "redis":
        from .redis_cache import RedisCacheClient

        return RedisCacheClient(config.cache)
    return MemoryCacheClient(
        VolatileStore(max_items=config.cache.max_items, default_ttl_seconds=config.cache.ttl_seconds)
    )


class StorageFactory:
    """
    Creates decorated storage backends from explicit, injected dependencies.

    Args:
        config: Full tierstore configuration.
        cache_client: Cache transport shared by every cache backend.
        snapshot_store: Snapshot file handle shared by every snapshot backend.
        repository: Database driver shared by every authoritative backend.
        instrumentation: Statistics sink shared by every decorator.
        clock: UTC clock handed to snapshot backends.
    """

    def __init__(
        self,
        config: TierStoreConfig,
        cache_client: CacheClient,
        snapshot_store: SnapshotStore,
        repository: EntityRepository,
        instrumentation: Optional[StorageInstrumentation] = None,
        clock: UtcClock = utc_now,
    ) -> None:
        self.config = config
        self.cache_client = cache_client
        self.snapshot_store = snapshot_store
        self.repository = repository
        self.instrumentation = instrumentation or StorageInstrumentation(config.instrumentation)
        self._clock = clock
        self._builders: Dict[StorageKind, Callable[[], StorageBackend]] = {
            StorageKind.CACHE: lambda: CacheBackend(self.cache_client, self.config.cache),
            StorageKind.SNAPSHOT: lambda: SnapshotBackend(self.snapshot_store, self.config.snapshot, clock=self._clock),
            StorageKind.AUTHORITATIVE: lambda: AuthoritativeBackend(self.repository, self.config.authoritative),
        }

    @classmethod
    def from_config(cls, config: Optional[TierStoreConfig] = None, clock: UtcClock = utc_now) -> "StorageFactory":
        """Build every tier dependency from configuration (not yet initialized)."""
        config = config or TierStoreConfig()
        return cls(
            config=config,
            cache_client=build_cache_client(config),
            snapshot_store=SnapshotStore(config.snapshot.path, indent=config.snapshot.indent),
            repository=EntityRepository(config.authoritative),
            clock=clock,
        )

    async def initialize(self) -> None:
        """Open the tier dependencies (cache connection, snapshot file, database)."""
        initialize_cache = getattr(self.cache_client, "initialize", None)
        if initialize_cache is not None:
            await initialize_cache()
        await self.snapshot_store.initialize()
        await self.repository.initialize()
        logger.info(
            "StorageFactory initialized (cache=%s, authoritative=%s).",
            self.config.cache.backend,
            self.config.authoritative.backend,
        )

    async def close(self) -> None:
        close_cache = getattr(self.cache_client, "close", None)
        if close_cache is not None:
            await close_cache()
        await self.repository.close()

    async def __aenter__(self) -> "StorageFactory":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def create_backend(self, kind: StorageKind | str) -> StorageBackend:
        """
        Construct the raw backend for `kind`, wrapped in an ObservabilityDecorator.

        Raises:
            InvalidArgumentError: If `kind` is not a known StorageKind.
        """
        try:
            resolved = StorageKind(kind)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid storage kind: {kind!r}") from e

        inner = self._builders[resolved]()
        return ObservabilityDecorator(inner, tier=resolved.value, instrumentation=self.instrumentation)
