# src/tierstore/storage/decorator.py
"""
Observability decorator for storage tiers.

`ObservabilityDecorator` wraps any StorageBackend by composition and exposes
the identical contract. Every call is timed on the monotonic clock and
logged in milliseconds:

    storage[cache].fetch key=... hit=True elapsed_ms=0.412
    storage[snapshot].put id=... ok=True elapsed_ms=3.870
    storage[authoritative].fetch key=... failed after 10002.118ms

Structured fields are attached via ``extra`` (``tier``, ``key``/``id``,
``hit``/``ok``, ``error``, ``elapsed_ms``). Errors are logged and re-raised
unchanged; return values are passed through untouched.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..models import Entity
from .base import StorageBackend, StorageKind
from .instrumentation import StorageInstrumentation

logger = logging.getLogger(__name__)


class ObservabilityDecorator:
    """Timing and logging wrapper around an inner StorageBackend.

    Args:
        inner: The backend to decorate.
        tier: Tier name used in log lines (defaults to ``inner.name``).
        instrumentation: Shared statistics sink; a private one is created if omitted.
    """

    def __init__(
        self,
        inner: StorageBackend,
        tier: Optional[str] = None,
        instrumentation: Optional[StorageInstrumentation] = None,
    ) -> None:
        self.inner = inner
        self.name = tier or inner.name
        self.instrumentation = instrumentation or StorageInstrumentation()

    @property
    def kind(self) -> StorageKind:
        return self.inner.kind

    async def fetch(self, key: str, timeout: Optional[float] = None) -> Optional[Entity]:
        try:
            with self.instrumentation.instrument("fetch", self.name, key=key) as ctx:
                entity = await self.inner.fetch(key, timeout=timeout)
                ctx.hit = entity is not None
        except Exception as e:
            logger.error(
                "storage[%s].fetch key=%s failed after %.3fms: %s",
                self.name,
                key,
                ctx.duration_ms,
                e,
                exc_info=True,
                extra={"tier": self.name, "key": key, "error": repr(e), "elapsed_ms": round(ctx.duration_ms, 3)},
            )
            raise

        logger.info(
            "storage[%s].fetch key=%s hit=%s elapsed_ms=%.3f",
            self.name,
            key,
            ctx.hit,
            ctx.duration_ms,
            extra={"tier": self.name, "key": key, "hit": ctx.hit, "elapsed_ms": round(ctx.duration_ms, 3)},
        )
        return entity

    async def put(self, entity: Entity, timeout: Optional[float] = None) -> bool:
        entity_id = getattr(entity, "id", None)
        try:
            with self.instrumentation.instrument("put", self.name, id=entity_id) as ctx:
                ok = await self.inner.put(entity, timeout=timeout)
        except Exception as e:
            logger.error(
                "storage[%s].put id=%s failed after %.3fms: %s",
                self.name,
                entity_id,
                ctx.duration_ms,
                e,
                exc_info=True,
                extra={"tier": self.name, "id": entity_id, "error": repr(e), "elapsed_ms": round(ctx.duration_ms, 3)},
            )
            raise

        logger.info(
            "storage[%s].put id=%s ok=%s elapsed_ms=%.3f",
            self.name,
            entity_id,
            ok,
            ctx.duration_ms,
            extra={"tier": self.name, "id": entity_id, "ok": ok, "elapsed_ms": round(ctx.duration_ms, 3)},
        )
        return ok

    def __repr__(self) -> str:
        return f"ObservabilityDecorator(tier={self.name!r}, inner={type(self.inner).__name__})"
