# src/tierstore/storage/snapshot.py
"""
Snapshot Tier: durable local JSON snapshot of recently seen entities.

The whole tier lives in a single JSON file containing a list of
``{"entity": {...}, "stored_at": "<UTC ISO-8601>"}`` records. It uses
aiofiles for asynchronous file operations.

- `fetch` matches ids case-insensitively and only serves records younger
  than ``ttl_seconds`` (30 minutes by default). Expired records stay in the
  file, so freshness is re-checked on every read.
- `put` is a full read-modify-write: load every record, drop the one for
  this id, append a fresh record, rewrite the file. Writes are serialized
  by the store's lock and land via a temp file + atomic replace, so
  concurrent writers cannot lose each other's records and readers never
  observe a partially written file.
- I/O, decode and deadline failures propagate as BackendFailureError.

Architecture:
    CacheBackend (hot) → **SnapshotBackend (warm)** → AuthoritativeBackend (cold)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import pathlib
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import aiofiles
import aiofiles.os as aios
from pydantic import ValidationError

from ..config import SnapshotConfig
from ..exceptions import BackendFailureError
from ..models import Entity, SnapshotRecord
from .base import StorageKind, require_entity, require_key, with_deadline

logger = logging.getLogger(__name__)

UtcClock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotStore:
    """
    Handle on the snapshot file shared by every SnapshotBackend built from it.

    Owns the single-writer lock: every read-modify-write of the record set
    must run inside :meth:`write_lock`.
    """

    def __init__(self, path: str | os.PathLike, indent: Optional[int] = 2) -> None:
        self.path = pathlib.Path(os.path.expanduser(path))
        self._tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        self._indent = indent
        self._lock = asyncio.Lock()

    @property
    def write_lock(self) -> asyncio.Lock:
        return self._lock

    async def initialize(self) -> None:
        """Create the parent directory and an empty record set if the file is absent."""
        try:
            await aios.makedirs(self.path.parent, exist_ok=True)
            if not await aios.path.exists(self.path):
                async with aiofiles.open(self.path, mode="w", encoding="utf-8") as f:
                    await f.write("[]")
                logger.info("Snapshot store created at: %s", self.path)
            else:
                logger.info("Snapshot store opened at: %s", self.path)
        except OSError as e:
            raise BackendFailureError(StorageKind.SNAPSHOT.value, f"Could not initialize snapshot file {self.path}", e) from e

    async def load(self) -> List[SnapshotRecord]:
        """Read every record. A missing file is an empty record set."""
        if not await aios.path.exists(self.path):
            return []
        async with aiofiles.open(self.path, mode="r", encoding="utf-8") as f:
            content = await f.read()
        raw = json.loads(content) if content.strip() else []
        if not isinstance(raw, list):
            raise ValueError(f"Snapshot file {self.path} does not contain a list")
        return [SnapshotRecord.model_validate(item) for item in raw]

    async def save(self, records: List[SnapshotRecord]) -> None:
        """Rewrite the whole record set atomically."""
        payload = json.dumps([r.model_dump(mode="json") for r in records], indent=self._indent)
        async with aiofiles.open(self._tmp_path, mode="w", encoding="utf-8") as f:
            await f.write(payload)
        await aios.replace(self._tmp_path, self.path)


class SnapshotBackend:
    """Snapshot tier over a shared :class:`SnapshotStore`.

    Args:
        store: Shared file handle (owns the write lock).
        config: Snapshot configuration (TTL, default deadline).
        clock: Returns the current UTC time; injectable for expiry tests.
    """

    kind = StorageKind.SNAPSHOT
    name = StorageKind.SNAPSHOT.value

    def __init__(
        self,
        store: SnapshotStore,
        config: SnapshotConfig | None = None,
        clock: UtcClock = utc_now,
    ) -> None:
        self._store = store
        self._config = config or SnapshotConfig()
        self._ttl = timedelta(seconds=self._config.ttl_seconds)
        self._clock = clock

    def _deadline(self, timeout: Optional[float]) -> float:
        return timeout if timeout is not None else self._config.operation_timeout_seconds

    async def fetch(self, key: str, timeout: Optional[float] = None) -> Optional[Entity]:
        """Return the fresh record for `key` (case-insensitive id match), else None."""
        require_key(key, self.name)
        try:
            records = await with_deadline(self._store.load(), self._deadline(timeout))
        except (OSError, ValueError, ValidationError, asyncio.TimeoutError) as e:
            raise BackendFailureError(self.name, f"Failed to read snapshot for '{key}'", e) from e

        now = self._clock()
        wanted = key.casefold()
        for record in records:
            if record.entity.id.casefold() == wanted and not record.is_expired(now, self._ttl):
                return record.entity
        return None

    async def put(self, entity: Entity, timeout: Optional[float] = None) -> bool:
        """Replace any record for `entity.id` with a freshly stamped one."""
        require_entity(entity, self.name)
        try:
            await with_deadline(self._replace_record(entity), self._deadline(timeout))
        except (OSError, ValueError, ValidationError, TypeError, asyncio.TimeoutError) as e:
            raise BackendFailureError(self.name, f"Failed to store '{entity.id}'", e) from e
        return True

    async def _replace_record(self, entity: Entity) -> None:
        async with self._store.write_lock:
            records = await self._store.load()
            wanted = entity.id.casefold()
            records = [r for r in records if r.entity.id.casefold() != wanted]
            records.append(SnapshotRecord(entity=entity.model_copy(), stored_at=self._clock()))
            await self._store.save(records)
        logger.debug("Snapshot record for '%s' written (%d records).", entity.id, len(records))
