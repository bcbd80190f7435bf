# src/tierstore/models.py
"""
Core data models for the tierstore library.

This module defines the Pydantic models shared by every storage tier: the
`Entity` itself, its `Role`, and the `SnapshotRecord` envelope the snapshot
tier persists. It also provides the id generator used when entities are
created, which yields 24-hex-character ids compatible with the
12-byte timestamp + random + counter scheme of document databases.
"""

import itertools
import os
import threading
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    """
    Enumeration of entity roles.
    Role values are matched case-insensitively when parsed from stored data.
    """
    ADMIN = "Admin"
    USER = "User"

    @classmethod
    def _missing_(cls, value: object):  # type: ignore[misc] # Pydantic uses this signature
        if isinstance(value, str):
            lower_value = value.lower()
            for member in cls:
                if member.value.lower() == lower_value:
                    return member
        return None

    @classmethod
    def parse(cls, raw: str) -> "Role":
        """
        Map free-form role text to a Role.

        Only the literal "admin" (any casing) maps to ADMIN; every other
        value maps to USER.
        """
        return cls.ADMIN if raw.lower() == "admin" else cls.USER


def _ensure_utc(v: Any) -> Any:
    if isinstance(v, str):
        v = datetime.fromisoformat(v[:-1] + "+00:00" if v.endswith("Z") else v)
    if isinstance(v, datetime):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
    return v


class Entity(BaseModel):
    """
    The unit of storage shared by all tiers.

    Attributes:
        id: Opaque identifier assigned at creation; never reused or changed.
        role: Role of the entity; immutable after creation.
        created_at: UTC timestamp of creation; never modified.
        description: Free text; the only field editable after creation.
    """
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(min_length=1, description="Unique identifier of the entity.")
    role: Role = Field(description="Role of the entity (Admin or User).")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation timestamp (UTC).")
    description: str = Field(default="", description="Mutable free-text description.")

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Entity id must not be blank")
        return v

    @field_validator("created_at", mode="before")
    @classmethod
    def ensure_utc_timestamp(cls, v: Any) -> Any:
        """Ensure the timestamp is timezone-aware and in UTC if naive."""
        return _ensure_utc(v)


class SnapshotRecord(BaseModel):
    """
    An entity as persisted by the snapshot tier, stamped with the time it was stored.
    """
    entity: Entity
    stored_at: datetime

    @field_validator("stored_at", mode="before")
    @classmethod
    def ensure_utc_timestamp(cls, v: Any) -> Any:
        return _ensure_utc(v)

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        """A record is expired once `ttl` or more has elapsed since it was stored."""
        return now - self.stored_at >= ttl


# --- Entity id generation ---

_PROCESS_RANDOM = os.urandom(5)
_COUNTER = itertools.count(int.from_bytes(os.urandom(3), "big"))
_COUNTER_LOCK = threading.Lock()


def generate_entity_id(timestamp: float | None = None) -> str:
    """
    Generate a new 24-hex-character entity id.

    Layout (12 bytes): 4-byte big-endian seconds since the epoch, 5 bytes of
    per-process randomness, 3-byte big-endian counter.

    Args:
        timestamp: Seconds since the epoch to embed; defaults to now.

    Returns:
        Lowercase hexadecimal id string.
    """
    seconds = int(time.time() if timestamp is None else timestamp) & 0xFFFFFFFF
    with _COUNTER_LOCK:
        count = next(_COUNTER) & 0xFFFFFF
    raw = seconds.to_bytes(4, "big") + _PROCESS_RANDOM + count.to_bytes(3, "big")
    return raw.hex()
