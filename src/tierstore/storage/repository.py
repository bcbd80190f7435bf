# src/tierstore/storage/repository.py
"""
Entity Repository: driver for the authoritative database.

Translates point lookups and writes into the database's native queries.
Two backends are supported, selected by configuration:

- ``sqlite`` (default): aiosqlite, one long-lived connection.
- ``postgres``: asyncpg connection pool.

Schema::

    CREATE TABLE entities (
        id TEXT PRIMARY KEY,
        role TEXT NOT NULL,
        created_at TEXT NOT NULL,     -- ISO-8601 UTC
        description TEXT NOT NULL
    )

`update` only ever touches the mutable ``description`` column; ``role`` and
``created_at`` are written once by `insert`.

Example::

    repo = EntityRepository(AuthoritativeConfig(db_path="/tmp/entities.db"))
    await repo.initialize()
    await repo.insert(entity)
    found = await repo.get(entity.id)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import aiosqlite

from ..config import AuthoritativeConfig
from ..exceptions import ConfigError, StorageError
from ..models import Entity

logger = logging.getLogger(__name__)


class EntityRepository:
    """Database access for entities.

    The connection (or pool) is opened once by :meth:`initialize` and shared
    by all concurrent callers.

    Args:
        config: Authoritative tier configuration.
    """

    def __init__(self, config: AuthoritativeConfig | None = None) -> None:
        self._config = config or AuthoritativeConfig()
        self._table = self._config.table_name
        self._db: Any = None
        logger.debug("EntityRepository created (backend=%s).", self._config.backend)

    @property
    def backend(self) -> str:
        return self._config.backend

    async def initialize(self) -> None:
        """Open the database and ensure the entity table exists."""
        if self._db is not None:
            return
        if self._config.backend == "sqlite":
            await self._init_sqlite()
        else:
            await self._init_postgres()

    def _require_open(self) -> None:
        if self._db is None:
            raise StorageError("EntityRepository is not initialized; call initialize() first.")

    async def get(self, entity_id: str) -> Entity | None:
        """Exact-id point lookup."""
        self._require_open()
        if self._config.backend == "sqlite":
            async with self._db.execute(
                f"SELECT id, role, created_at, description FROM {self._table} WHERE id = ?",
                (entity_id,),
            ) as cur:
                row = await cur.fetchone()
        else:
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT id, role, created_at, description FROM {self._table} WHERE id = $1",
                    entity_id,
                )
        if row is None:
            return None
        return Entity(id=row[0], role=row[1], created_at=row[2], description=row[3])

    async def exists(self, entity_id: str) -> bool:
        self._require_open()
        if self._config.backend == "sqlite":
            async with self._db.execute(f"SELECT 1 FROM {self._table} WHERE id = ?", (entity_id,)) as cur:
                return (await cur.fetchone()) is not None
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(f"SELECT 1 FROM {self._table} WHERE id = $1", entity_id)
            return row is not None

    async def insert(self, entity: Entity) -> None:
        """Insert the full entity. Fails if the id already exists."""
        self._require_open()
        values = (
            entity.id,
            entity.role.value,
            entity.created_at.isoformat(),
            entity.description,
        )
        if self._config.backend == "sqlite":
            await self._db.execute(
                f"INSERT INTO {self._table} (id, role, created_at, description) VALUES (?, ?, ?, ?)",
                values,
            )
            await self._db.commit()
        else:
            async with self._db.acquire() as conn:
                await conn.execute(
                    f"INSERT INTO {self._table} (id, role, created_at, description) VALUES ($1, $2, $3, $4)",
                    *values,
                )

    async def update(self, entity: Entity) -> None:
        """Update the mutable description of an existing entity."""
        self._require_open()
        if self._config.backend == "sqlite":
            await self._db.execute(
                f"UPDATE {self._table} SET description = ? WHERE id = ?",
                (entity.description, entity.id),
            )
            await self._db.commit()
        else:
            async with self._db.acquire() as conn:
                await conn.execute(
                    f"UPDATE {self._table} SET description = $1 WHERE id = $2",
                    entity.description,
                    entity.id,
                )

    async def close(self) -> None:
        """Close the database connection or pool."""
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("EntityRepository closed.")

    # -- Backend setup -------------------------------------------------------

    def _ddl(self) -> str:
        return f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id TEXT PRIMARY KEY,
                role TEXT NOT NULL,
                created_at TEXT NOT NULL,
                description TEXT NOT NULL
            )
        """

    async def _init_sqlite(self) -> None:
        db_path = Path(os.path.expanduser(self._config.db_path))
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(db_path)
            await self._db.execute(self._ddl())
            await self._db.commit()
        except (OSError, aiosqlite.Error) as e:
            raise StorageError(f"Could not open entity database at {db_path}: {e}") from e
        logger.info("EntityRepository(sqlite) initialized at %s.", db_path)

    async def _init_postgres(self) -> None:
        try:
            import asyncpg
        except ImportError as e:
            raise ConfigError(
                "asyncpg library is not installed. Please install `asyncpg` or `tierstore[postgres]`."
            ) from e

        self._db = await asyncpg.create_pool(self._config.connection_string)
        async with self._db.acquire() as conn:
            await conn.execute(self._ddl())
        logger.info("EntityRepository(postgres) initialized.")
