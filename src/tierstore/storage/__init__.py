# src/tierstore/storage/__init__.py
"""
Storage tiers for tierstore.

Tiers, fastest to most durable:
- **CacheBackend** (hot): in-process or Redis, absolute 10 minute TTL
- **SnapshotBackend** (warm): local JSON snapshot, 30 minute freshness window
- **AuthoritativeBackend** (cold): SQLite/PostgreSQL source of truth

Every backend built by :class:`StorageFactory` is wrapped in an
:class:`ObservabilityDecorator`.
"""

from .authoritative import AuthoritativeBackend
from .base import StorageBackend, StorageKind
from .cache import CacheBackend, CacheClient
from .decorator import ObservabilityDecorator
from .factory import StorageFactory, build_cache_client
from .instrumentation import StorageInstrumentation
from .repository import EntityRepository
from .snapshot import SnapshotBackend, SnapshotStore
from .volatile import MemoryCacheClient, VolatileStore

__all__ = [
    "StorageBackend",
    "StorageKind",
    "CacheBackend",
    "CacheClient",
    "MemoryCacheClient",
    "VolatileStore",
    "SnapshotBackend",
    "SnapshotStore",
    "AuthoritativeBackend",
    "EntityRepository",
    "ObservabilityDecorator",
    "StorageInstrumentation",
    "StorageFactory",
    "build_cache_client",
]
