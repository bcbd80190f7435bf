# tests/test_exceptions.py
"""
Tests for the tierstore.exceptions module.

Tests the exception hierarchy, attributes and message formatting.
"""

import pytest

from tierstore.exceptions import (
    BackendFailureError,
    ConfigError,
    EntityValidationError,
    InvalidArgumentError,
    InvalidKeyError,
    StorageError,
    TierStoreError,
    WriteThroughError,
)


class TestTierStoreError:
    """Tests for the base TierStoreError exception."""

    def test_default_message(self):
        assert "unspecified error" in str(TierStoreError()).lower()

    def test_custom_message(self):
        assert str(TierStoreError("Custom error message")) == "Custom error message"

    @pytest.mark.parametrize(
        "error_type",
        [ConfigError, InvalidArgumentError, InvalidKeyError, EntityValidationError, StorageError, BackendFailureError],
    )
    def test_all_errors_share_the_base(self, error_type):
        with pytest.raises(TierStoreError):
            raise error_type()


class TestInvalidKeyError:
    def test_is_invalid_argument(self):
        assert issubclass(InvalidKeyError, InvalidArgumentError)

    def test_operation_in_message(self):
        error = InvalidKeyError(operation="cache.fetch")
        assert error.operation == "cache.fetch"
        assert "cache.fetch" in str(error)


class TestEntityValidationError:
    def test_field_attribute(self):
        error = EntityValidationError("description", "A description is required.")
        assert error.field == "description"
        assert "description" in str(error)


class TestBackendFailureError:
    def test_attributes_and_message(self):
        cause = OSError("disk full")
        error = BackendFailureError("snapshot", "write failed", cause)
        assert error.tier == "snapshot"
        assert error.cause is cause
        assert "'snapshot'" in str(error)
        assert "OSError: disk full" in str(error)

    def test_without_cause(self):
        error = BackendFailureError("authoritative", "lookup failed")
        assert error.cause is None
        assert "Cause" not in str(error)

    def test_is_storage_error(self):
        assert isinstance(BackendFailureError(), StorageError)


class TestWriteThroughError:
    def test_names_failed_tiers(self):
        failures = {
            "snapshot": BackendFailureError("snapshot", "x"),
            "authoritative": BackendFailureError("authoritative", "y"),
        }
        error = WriteThroughError("create", "abc", failures)
        assert error.operation == "create"
        assert error.entity_id == "abc"
        assert error.failures is failures
        assert "authoritative, snapshot" in str(error)
        assert isinstance(error, StorageError)
