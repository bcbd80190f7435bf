# tests/conftest.py
"""
Shared fixtures for tierstore tests.

All tiers run locally: the cache tier uses the in-process volatile client,
the snapshot tier a JSON file under ``tmp_path`` and the authoritative tier a
SQLite database under ``tmp_path``. A single FakeClock drives both the
volatile store (float seconds) and the snapshot tier (UTC datetimes) so TTL
boundaries can be hit exactly.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from tierstore.config import AuthoritativeConfig, SnapshotConfig, TierStoreConfig
from tierstore.models import Entity, Role
from tierstore.service import EntityService
from tierstore.storage.factory import StorageFactory
from tierstore.storage.repository import EntityRepository
from tierstore.storage.snapshot import SnapshotStore
from tierstore.storage.volatile import MemoryCacheClient, VolatileStore

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock; call it for a UTC datetime, `.timestamp()` for epoch seconds."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def timestamp(self) -> float:
        return self.now.timestamp()

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def _make_entity(entity_id: str = "65f1c0ffee0000000000abcd", description: str = "original", role: Role = Role.USER) -> Entity:
    return Entity(id=entity_id, role=role, created_at=T0, description=description)


@pytest.fixture
def make_entity():
    """Factory for entities created at T0 (2024-05-01 12:00 UTC)."""
    return _make_entity


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(tmp_path: Path) -> TierStoreConfig:
    return TierStoreConfig(
        snapshot=SnapshotConfig(path=str(tmp_path / "snapshot.json")),
        authoritative=AuthoritativeConfig(db_path=str(tmp_path / "entities.db")),
    )


@pytest_asyncio.fixture
async def factory(config: TierStoreConfig, clock: FakeClock):
    factory = StorageFactory(
        config=config,
        cache_client=MemoryCacheClient(VolatileStore(max_items=100, clock=clock.timestamp)),
        snapshot_store=SnapshotStore(config.snapshot.path),
        repository=EntityRepository(config.authoritative),
        clock=clock,
    )
    await factory.initialize()
    yield factory
    await factory.close()


@pytest_asyncio.fixture
async def service(factory: StorageFactory, clock: FakeClock) -> EntityService:
    return EntityService(factory, clock=clock)
