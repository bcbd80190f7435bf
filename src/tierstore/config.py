# src/tierstore/config.py
"""
Configuration models for tierstore.

Each storage tier receives its own explicit configuration object at
construction time; nothing is read from ambient global state once a
`TierStoreConfig` has been built.

Example TOML::

    [tierstore.cache]
    backend = "redis"
    host = "cache.internal"
    port = 6380
    ssl = true

    [tierstore.snapshot]
    path = "/var/lib/tierstore/entities.json"

    [tierstore.authoritative]
    backend = "postgres"
    connection_string = "postgresql://app:secret@db/entities"

Usage:
    config = load_config("tierstore.toml")
    config = load_config(config_dict={"cache": {"ttl_seconds": 60}})
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TIERSTORE_CONFIG"
DEFAULT_CONFIG_FILENAME = "tierstore.toml"


class CacheConfig(BaseModel):
    """Configuration for the cache tier.

    Attributes:
        backend: Cache client type (``"memory"`` or ``"redis"``).
        key_prefix: Namespace prepended to every entity id.
        ttl_seconds: Absolute expiry applied on every write.
        max_items: Item limit for the in-process client (0 = unlimited).
        operation_timeout_seconds: Default deadline for a single cache call.
        host, port, db, username, password, ssl: Redis connection settings.
        instance_name: Optional prefix prepended to all Redis keys.
        connect_timeout_ms: Redis connect timeout.
        socket_timeout_ms: Redis socket (command) timeout.
    """

    backend: Literal["memory", "redis"] = Field(default="memory", description="Cache client type")
    key_prefix: str = Field(default="entity:", description="Namespace for entity keys")
    ttl_seconds: float = Field(default=600.0, gt=0, description="Absolute TTL per write")
    max_items: int = Field(default=10_000, ge=0, description="Max in-process items (0=unlimited)")
    operation_timeout_seconds: float = Field(default=2.0, gt=0, description="Default per-call deadline")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, ge=1, le=65535, description="Redis port")
    db: int = Field(default=0, ge=0, description="Redis database number")
    username: str | None = Field(default=None, description="Redis ACL user")
    password: str | None = Field(default=None, description="Redis password")
    ssl: bool = Field(default=False, description="Use TLS for Redis")
    instance_name: str = Field(default="", description="Prefix for all Redis keys")
    connect_timeout_ms: int = Field(default=8000, ge=1, description="Redis connect timeout")
    socket_timeout_ms: int = Field(default=8000, ge=1, description="Redis command timeout")


class SnapshotConfig(BaseModel):
    """Configuration for the snapshot tier.

    Attributes:
        path: JSON file holding the record collection.
        ttl_seconds: Age at which a stored record stops being served.
        operation_timeout_seconds: Default deadline for a single snapshot call.
        indent: JSON indentation used when the collection is rewritten.
    """

    path: str = Field(
        default="~/.local/share/tierstore/entities_snapshot.json",
        description="Snapshot file path",
    )
    ttl_seconds: float = Field(default=1800.0, gt=0, description="Record freshness window")
    operation_timeout_seconds: float = Field(default=5.0, gt=0)
    indent: int | None = Field(default=2, ge=0)


class AuthoritativeConfig(BaseModel):
    """Configuration for the authoritative tier.

    Attributes:
        backend: Database type (``"sqlite"`` or ``"postgres"``).
        db_path: SQLite file path (when backend == ``"sqlite"``).
        connection_string: PostgreSQL URL (when backend == ``"postgres"``).
        table_name: Table holding entities.
        operation_timeout_seconds: Default deadline for a single database call.
    """

    backend: Literal["sqlite", "postgres"] = Field(default="sqlite", description="Database type")
    db_path: str = Field(
        default="~/.local/share/tierstore/entities.db",
        description="SQLite database path",
    )
    connection_string: str = Field(default="", description="PostgreSQL connection string")
    table_name: str = Field(default="entities", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    operation_timeout_seconds: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def check_connection_info(self) -> "AuthoritativeConfig":
        """Validate that a connection string is present for PostgreSQL."""
        if self.backend == "postgres" and not self.connection_string:
            raise ValueError("'connection_string' is required when backend is 'postgres'.")
        return self


class InstrumentationConfig(BaseModel):
    """Configuration for storage call instrumentation.

    Attributes:
        enabled: Record timing history and statistics.
        slow_operation_threshold_ms: Calls slower than this log a warning.
        history_size: Bounded number of recent operations kept in memory.
    """

    enabled: bool = Field(default=True)
    slow_operation_threshold_ms: float = Field(default=250.0, gt=0)
    history_size: int = Field(default=1000, ge=0)


class TierStoreConfig(BaseModel):
    """Root configuration for a tierstore deployment."""

    cache: CacheConfig = Field(default_factory=CacheConfig)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    authoritative: AuthoritativeConfig = Field(default_factory=AuthoritativeConfig)
    instrumentation: InstrumentationConfig = Field(default_factory=InstrumentationConfig)
    logging: dict[str, Any] = Field(default_factory=dict)


def _find_config_file() -> Path | None:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
    return candidate if candidate.exists() else None


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict[str, Any] | None = None,
) -> TierStoreConfig:
    """Load and validate tierstore configuration.

    Resolution order: ``config_dict`` (if given) wins over a file; the file
    is ``config_path``, else ``$TIERSTORE_CONFIG``, else ``./tierstore.toml``.
    When the loaded data contains a ``tierstore`` table only that table is
    used. With no source at all, defaults are returned.

    Raises:
        ConfigError: If an explicit file is missing, unreadable, or any
            value fails validation.
    """
    data: dict[str, Any] = {}

    path = Path(config_path).expanduser() if config_path is not None else _find_config_file()
    if path is not None and config_dict is None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e
        logger.debug("Loaded tierstore config from %s", path)

    if config_dict is not None:
        data = config_dict

    if "tierstore" in data:
        data = data["tierstore"]

    try:
        return TierStoreConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid tierstore configuration: {e}") from e
