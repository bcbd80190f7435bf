# src/tierstore/__init__.py
"""
tierstore - tiered entity storage with read-through backfill and write-through fan-out.

A volatile cache, a local snapshot file and an authoritative database sit
behind one fetch/put contract; `EntityService` composes them into lookup,
create and edit workflows.
"""

from importlib.metadata import PackageNotFoundError, version

from .config import TierStoreConfig, load_config
from .exceptions import (
    BackendFailureError,
    ConfigError,
    EntityValidationError,
    InvalidArgumentError,
    InvalidKeyError,
    StorageError,
    TierStoreError,
    WriteThroughError,
)
from .models import Entity, Role, SnapshotRecord, generate_entity_id
from .service import EntityService
from .storage import StorageFactory, StorageKind

try:
    __version__ = version("tierstore")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "Entity",
    "Role",
    "SnapshotRecord",
    "generate_entity_id",
    "EntityService",
    "StorageFactory",
    "StorageKind",
    "TierStoreConfig",
    "load_config",
    "TierStoreError",
    "ConfigError",
    "InvalidArgumentError",
    "InvalidKeyError",
    "EntityValidationError",
    "StorageError",
    "BackendFailureError",
    "WriteThroughError",
]
