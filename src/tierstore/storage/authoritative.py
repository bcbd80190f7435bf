# src/tierstore/storage/authoritative.py
"""
Authoritative Tier: the source of truth.

A thin adapter that gives :class:`~tierstore.storage.repository.EntityRepository`
the uniform fetch/put contract. Data here never expires. Every failure is
re-raised as BackendFailureError carrying the tier name and the original cause.

Architecture:
    CacheBackend (hot) → SnapshotBackend (warm) → **AuthoritativeBackend (cold)**
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config import AuthoritativeConfig
from ..exceptions import BackendFailureError
from ..models import Entity
from .base import StorageKind, require_entity, require_key, with_deadline
from .repository import EntityRepository

logger = logging.getLogger(__name__)


class AuthoritativeBackend:
    """Authoritative tier delegating to a shared repository.

    `put` is an upsert: an existence check followed by either an update of
    the mutable description or an insert of the full entity.
    """

    kind = StorageKind.AUTHORITATIVE
    name = StorageKind.AUTHORITATIVE.value

    def __init__(self, repository: EntityRepository, config: AuthoritativeConfig | None = None) -> None:
        self._repository = repository
        self._config = config or AuthoritativeConfig()

    def _deadline(self, timeout: Optional[float]) -> float:
        return timeout if timeout is not None else self._config.operation_timeout_seconds

    async def fetch(self, key: str, timeout: Optional[float] = None) -> Optional[Entity]:
        require_key(key, self.name)
        try:
            return await with_deadline(self._repository.get(key), self._deadline(timeout))
        except Exception as e:
            raise BackendFailureError(self.name, f"Lookup of '{key}' failed", e) from e

    async def put(self, entity: Entity, timeout: Optional[float] = None) -> bool:
        require_entity(entity, self.name)
        try:
            await with_deadline(self._upsert(entity), self._deadline(timeout))
        except Exception as e:
            raise BackendFailureError(self.name, f"Upsert of '{entity.id}' failed", e) from e
        return True

    async def _upsert(self, entity: Entity) -> None:
        if await self._repository.exists(entity.id):
            await self._repository.update(entity)
            logger.debug("Updated description of '%s'.", entity.id)
        else:
            await self._repository.insert(entity)
            logger.debug("Inserted '%s'.", entity.id)
