# src/tierstore/service.py
"""
Entity service: read-through / write-through orchestration over the tiers.

The service holds one decorated backend per tier, acquired once from a
StorageFactory in the order Cache, Snapshot, Authoritative, and only ever
talks to them through the uniform fetch/put contract.

Reads (`get` / `lookup`) walk the tiers fastest first and backfill the
faster tiers on a hit further down. Any failure during a read degrades to
"not found" so reads stay available when a tier is unhealthy; such
degradations are logged and counted separately from genuine misses.

Writes (`create` / `edit`) fan the entity out to every tier concurrently.
All legs run to completion; if any leg raised, the operation fails with
WriteThroughError and legs that succeeded are not rolled back. Cache write
failures never reach this layer (the cache tier swallows them).

Usage:
    async with StorageFactory.from_config(config) as factory:
        service = EntityService(factory)
        entity = await service.create("admin", "Operations lead")
        same = await service.lookup(entity.id)
        edited = await service.edit(entity.id, "Platform lead")
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Sequence

from .exceptions import EntityValidationError, WriteThroughError
from .models import Entity, Role, generate_entity_id
from .storage.base import StorageBackend, StorageKind
from .storage.factory import StorageFactory

logger = logging.getLogger(__name__)


class EntityService:
    """
    Orchestrates entity lookups, creation and edits across the storage tiers.

    Args:
        factory: Source of the three decorated tier handles.
        clock: Returns the current UTC time, used for `created_at`.
        id_factory: Produces new entity ids.
    """

    def __init__(
        self,
        factory: StorageFactory,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        id_factory: Callable[[], str] = generate_entity_id,
    ) -> None:
        self.cache = factory.create_backend(StorageKind.CACHE)
        self.snapshot = factory.create_backend(StorageKind.SNAPSHOT)
        self.authoritative = factory.create_backend(StorageKind.AUTHORITATIVE)
        self._clock = clock
        self._id_factory = id_factory
        self.degraded_lookups = 0

    @property
    def tiers(self) -> Sequence[StorageBackend]:
        return (self.cache, self.snapshot, self.authoritative)

    async def get(self, entity_id: str) -> Optional[Entity]:
        """
        Resolve an entity through Cache, then Snapshot, then Authoritative.

        A Snapshot hit is written back to the Cache; an Authoritative hit is
        written back to Cache and Snapshot concurrently. Returns None when no
        tier holds the entity, and also when any step fails.
        """
        try:
            entity = await self.cache.fetch(entity_id)
            if entity is not None:
                return entity

            entity = await self.snapshot.fetch(entity_id)
            if entity is not None:
                await self.cache.put(entity)
                return entity

            entity = await self.authoritative.fetch(entity_id)
            if entity is not None:
                await asyncio.gather(self.cache.put(entity), self.snapshot.put(entity))
            return entity
        except Exception as e:
            self.degraded_lookups += 1
            logger.warning(
                "Lookup of '%s' degraded to not-found: %s",
                entity_id,
                e,
                exc_info=True,
                extra={"event": "lookup_degraded", "entity_id": entity_id, "error": repr(e)},
            )
            return None

    lookup = get

    async def create(self, role: str, description: str) -> Entity:
        """
        Create a new entity and write it through to every tier.

        Raises:
            EntityValidationError: If `role` or `description` is empty; no tier is written.
            WriteThroughError: If any tier write failed. No entity is returned.
        """
        if not role:
            raise EntityValidationError("role", "A role is required.")
        if not description:
            raise EntityValidationError("description", "A description is required.")

        entity = Entity(
            id=self._id_factory(),
            role=Role.parse(role),
            created_at=self._clock(),
            description=description,
        )
        await self._write_through("create", entity, self.tiers)
        logger.info("Created entity '%s' (role=%s).", entity.id, entity.role.value)
        return entity

    async def edit(self, entity_id: str, description: Optional[str] = None) -> Optional[Entity]:
        """
        Edit an entity's description and write it through to every tier.

        An empty or missing `description` means "no change"; the entity is
        still written through. Returns None (and writes nothing) when the
        entity cannot be resolved.

        Raises:
            WriteThroughError: If the Snapshot or Authoritative write failed.
        """
        entity = await self.get(entity_id)
        if entity is None:
            logger.info("Edit of '%s' skipped: not found.", entity_id)
            return None

        if description:
            entity.description = description

        await self._write_through("edit", entity, self.tiers)
        return entity

    async def _write_through(self, operation: str, entity: Entity, tiers: Sequence[StorageBackend]) -> None:
        results = await asyncio.gather(*(tier.put(entity) for tier in tiers), return_exceptions=True)
        failures: Dict[str, BaseException] = {
            tier.name: result for tier, result in zip(tiers, results) if isinstance(result, BaseException)
        }
        if failures:
            error = WriteThroughError(operation, entity.id, failures)
            logger.error("%s", error, extra={"event": "write_through_failed", "failed_tiers": sorted(failures)})
            raise error from next(iter(failures.values()))
