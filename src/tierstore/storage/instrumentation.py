# src/tierstore/storage/instrumentation.py
"""
Storage Instrumentation.

Collects timing and outcome data for every tier call routed through the
observability decorator:
- Operation timing on the monotonic clock, always reported in milliseconds
- Slow operation detection (WARNING above a configurable threshold)
- Per-tier counters (calls, errors, hits, misses)
- A bounded history of recent operations for debugging

One StorageInstrumentation instance is shared by all decorated backends a
factory builds, so statistics aggregate across tiers.

Usage:
    instrumentation = StorageInstrumentation(InstrumentationConfig())
    with instrumentation.instrument("fetch", "cache", key="abc") as ctx:
        entity = await inner.fetch("abc")
        ctx.hit = entity is not None
    print(instrumentation.get_statistics())
"""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Iterator, List, Optional

from ..config import InstrumentationConfig

logger = logging.getLogger(__name__)


@dataclass
class InstrumentationContext:
    """
    Timing and outcome of a single tier call.

    Attributes:
        operation: "fetch" or "put".
        tier: Tier name ("cache", "snapshot", "authoritative").
        start_time: perf_counter reading when the call started.
        metadata: Call context (key or entity id).
        success: False once the call raised.
        error: The exception raised by the call, if any.
        hit: For fetches, whether an entity was returned.
    """
    operation: str
    tier: str
    start_time: float = field(default_factory=time.perf_counter)
    metadata: Dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error: Optional[BaseException] = None
    hit: Optional[bool] = None
    _end_time: Optional[float] = field(default=None, repr=False)

    @property
    def duration_ms(self) -> float:
        end = self._end_time if self._end_time is not None else time.perf_counter()
        return (end - self.start_time) * 1000

    def mark_complete(self) -> None:
        self._end_time = time.perf_counter()

    def mark_error(self, error: BaseException) -> None:
        self.success = False
        self.error = error
        self.mark_complete()


@dataclass
class OperationRecord:
    """Historical record of a tier call."""
    operation: str
    tier: str
    duration_ms: float
    success: bool
    timestamp: datetime
    hit: Optional[bool] = None
    error_type: Optional[str] = None

    @classmethod
    def from_context(cls, ctx: InstrumentationContext) -> "OperationRecord":
        return cls(
            operation=ctx.operation,
            tier=ctx.tier,
            duration_ms=ctx.duration_ms,
            success=ctx.success,
            timestamp=datetime.now(timezone.utc),
            hit=ctx.hit,
            error_type=type(ctx.error).__name__ if ctx.error else None,
        )


def _empty_tier_stats() -> Dict[str, Any]:
    return {"calls": 0, "errors": 0, "hits": 0, "misses": 0, "total_ms": 0.0}


class StorageInstrumentation:
    """
    Aggregates timing and outcome data for decorated tier calls.

    Slow calls are logged at WARNING with ``extra={"event": "slow_storage_operation", ...}``.
    """

    def __init__(self, config: Optional[InstrumentationConfig] = None) -> None:
        self.config = config or InstrumentationConfig()
        self._history: Deque[OperationRecord] = deque(maxlen=self.config.history_size)
        self._tiers: Dict[str, Dict[str, Any]] = {}
        self._total_operations = 0
        self._total_errors = 0
        self._slow_operation_count = 0

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def total_operations(self) -> int:
        return self._total_operations

    @property
    def total_errors(self) -> int:
        return self._total_errors

    @property
    def slow_operation_count(self) -> int:
        return self._slow_operation_count

    @contextmanager
    def instrument(self, operation: str, tier: str, **metadata: Any) -> Iterator[InstrumentationContext]:
        """
        Time the enclosed call.

        The context is always yielded (callers read `duration_ms` for their own
        log lines); recording into statistics only happens when enabled.
        """
        ctx = InstrumentationContext(operation=operation, tier=tier, metadata=metadata)
        try:
            yield ctx
            ctx.mark_complete()
        except BaseException as e:
            ctx.mark_error(e)
            raise
        finally:
            if self.config.enabled:
                self._record_completion(ctx)

    def _record_completion(self, ctx: InstrumentationContext) -> None:
        self._total_operations += 1
        stats = self._tiers.setdefault(ctx.tier, _empty_tier_stats())
        stats["calls"] += 1
        stats["total_ms"] += ctx.duration_ms
        if not ctx.success:
            self._total_errors += 1
            stats["errors"] += 1
        elif ctx.hit is True:
            stats["hits"] += 1
        elif ctx.hit is False:
            stats["misses"] += 1

        if ctx.duration_ms > self.config.slow_operation_threshold_ms:
            self._slow_operation_count += 1
            logger.warning(
                "Slow storage operation: %s.%s took %.3fms",
                ctx.tier,
                ctx.operation,
                ctx.duration_ms,
                extra={
                    "event": "slow_storage_operation",
                    "tier": ctx.tier,
                    "operation": ctx.operation,
                    "elapsed_ms": round(ctx.duration_ms, 3),
                    "threshold_ms": self.config.slow_operation_threshold_ms,
                },
            )

        self._history.append(OperationRecord.from_context(ctx))

    def get_recent_operations(self, count: int = 100) -> List[OperationRecord]:
        """Most recent operations, newest first."""
        return list(reversed(list(self._history)[-count:]))

    def get_statistics(self) -> Dict[str, Any]:
        """Totals plus per-tier calls, errors, hit rate and average latency (ms)."""
        tiers: Dict[str, Any] = {}
        for tier, stats in self._tiers.items():
            lookups = stats["hits"] + stats["misses"]
            tiers[tier] = {
                "calls": stats["calls"],
                "errors": stats["errors"],
                "hits": stats["hits"],
                "misses": stats["misses"],
                "hit_rate": round(stats["hits"] / lookups, 4) if lookups else 0.0,
                "average_ms": round(stats["total_ms"] / stats["calls"], 3) if stats["calls"] else 0.0,
            }
        return {
            "total_operations": self._total_operations,
            "total_errors": self._total_errors,
            "error_rate": round(self._total_errors / self._total_operations, 4) if self._total_operations else 0.0,
            "slow_operation_count": self._slow_operation_count,
            "history_size": len(self._history),
            "tiers": tiers,
        }

    def reset(self) -> None:
        self._history.clear()
        self._tiers.clear()
        self._total_operations = 0
        self._total_errors = 0
        self._slow_operation_count = 0
