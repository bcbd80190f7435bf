# src/tierstore/storage/base.py
"""
Uniform storage contract shared by every tier.

Each tier (and the observability decorator wrapping it) implements the same
two-operation capability: fetch an entity by key, and store an entity under
its id. Tiers are selected by the `StorageKind` enumeration rather than by
a class hierarchy; `StorageBackend` is a structural protocol.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Optional, Protocol, TypeVar, runtime_checkable

from ..exceptions import InvalidArgumentError, InvalidKeyError
from ..models import Entity

T = TypeVar("T")


class StorageKind(str, Enum):
    """The three storage tiers, ordered fastest to most durable."""
    CACHE = "cache"
    SNAPSHOT = "snapshot"
    AUTHORITATIVE = "authoritative"


@runtime_checkable
class StorageBackend(Protocol):
    """
    Capability contract implemented by every tier.

    `fetch` returns None when the key is absent or expired under the tier's
    own staleness policy. `put` upserts the entity under `entity.id` and
    returns False only when the tier's own failure policy dropped the write.

    `timeout` is a caller-supplied deadline in seconds; None uses the tier's
    configured default. An exceeded deadline counts as a backend failure.
    """

    kind: StorageKind
    name: str

    async def fetch(self, key: str, timeout: Optional[float] = None) -> Optional[Entity]:
        ...

    async def put(self, entity: Entity, timeout: Optional[float] = None) -> bool:
        ...


def require_key(key: str, tier: str) -> None:
    """Raise InvalidKeyError for an empty or blank key."""
    if not isinstance(key, str) or not key.strip():
        raise InvalidKeyError(operation=f"{tier}.fetch")


def require_entity(entity: Entity, tier: str) -> None:
    """Raise InvalidArgumentError unless `entity` is an Entity with a non-empty id."""
    if not isinstance(entity, Entity) or not entity.id:
        raise InvalidArgumentError(f"A valid entity with an id is required for '{tier}.put'.")


async def with_deadline(awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """Await `awaitable`, raising asyncio.TimeoutError once `timeout` seconds elapse."""
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)
