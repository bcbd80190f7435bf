# tests/storage/test_instrumentation.py
"""
Tests for StorageInstrumentation.
"""

import logging
import time

import pytest

from tierstore.config import InstrumentationConfig
from tierstore.storage.instrumentation import StorageInstrumentation


class TestInstrument:
    def test_successful_call_recorded(self):
        inst = StorageInstrumentation()
        with inst.instrument("fetch", "cache", key="a") as ctx:
            ctx.hit = True

        assert inst.total_operations == 1
        (record,) = inst.get_recent_operations()
        assert record.tier == "cache"
        assert record.success is True
        assert record.hit is True
        assert record.duration_ms >= 0

    def test_error_recorded_and_reraised(self):
        inst = StorageInstrumentation()
        with pytest.raises(RuntimeError):
            with inst.instrument("put", "snapshot"):
                raise RuntimeError("boom")

        assert inst.total_errors == 1
        assert inst.get_recent_operations()[0].error_type == "RuntimeError"

    def test_disabled_records_nothing_but_still_times(self):
        inst = StorageInstrumentation(InstrumentationConfig(enabled=False))
        with inst.instrument("fetch", "cache") as ctx:
            pass
        assert ctx.duration_ms >= 0
        assert inst.total_operations == 0
        assert inst.get_recent_operations() == []

    def test_slow_operation_warning(self, caplog):
        inst = StorageInstrumentation(InstrumentationConfig(slow_operation_threshold_ms=1))

        with caplog.at_level(logging.WARNING, logger="tierstore.storage.instrumentation"):
            with inst.instrument("fetch", "authoritative"):
                time.sleep(0.02)

        assert inst.slow_operation_count == 1
        (record,) = [r for r in caplog.records if getattr(r, "event", None) == "slow_storage_operation"]
        assert record.tier == "authoritative"
        assert record.elapsed_ms > record.threshold_ms


class TestStatistics:
    def test_per_tier_rates(self):
        inst = StorageInstrumentation()
        for hit in (True, True, False, True):
            with inst.instrument("fetch", "cache") as ctx:
                ctx.hit = hit
        with inst.instrument("put", "cache"):
            pass

        stats = inst.get_statistics()
        cache = stats["tiers"]["cache"]
        assert cache["calls"] == 5
        assert cache["hits"] == 3
        assert cache["misses"] == 1
        assert cache["hit_rate"] == 0.75
        assert stats["error_rate"] == 0.0

    def test_history_is_bounded(self):
        inst = StorageInstrumentation(InstrumentationConfig(history_size=3))
        for _ in range(10):
            with inst.instrument("fetch", "cache"):
                pass
        assert inst.get_statistics()["history_size"] == 3
        assert inst.total_operations == 10

    def test_reset(self):
        inst = StorageInstrumentation()
        with inst.instrument("fetch", "cache"):
            pass
        inst.reset()
        stats = inst.get_statistics()
        assert stats["total_operations"] == 0
        assert stats["tiers"] == {}
