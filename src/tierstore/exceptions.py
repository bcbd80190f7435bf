# src/tierstore/exceptions.py
"""
Custom exceptions for the tierstore library.

This module defines a hierarchy of custom exception classes so callers can
tell caller mistakes (invalid arguments, failed validation) apart from tier
faults (a backend that could not be reached or could not decode its data)
and from partially failed write-throughs.
"""

from typing import Dict, Optional


class TierStoreError(Exception):
    """Base class for all tierstore specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in tierstore."):
        super().__init__(message)

class ConfigError(TierStoreError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)

class InvalidArgumentError(TierStoreError):
    """Raised when a caller violates an operation's contract (e.g. an entity without an id)."""
    def __init__(self, message: str = "Invalid argument."):
        super().__init__(message)

class InvalidKeyError(InvalidArgumentError):
    """Raised when a lookup key is empty. This is a contract violation, never a cache miss."""
    def __init__(self, operation: str = "fetch", message: str = "A non-empty key is required."):
        self.operation = operation
        super().__init__(f"{message} Operation: '{operation}'")

class EntityValidationError(TierStoreError):
    """Raised when an entity cannot be created from the supplied fields."""
    def __init__(self, field: str = "unknown", message: str = "Validation failed."):
        self.field = field
        super().__init__(f"{message} Field: '{field}'")

class StorageError(TierStoreError):
    """Base class for errors related to storage operations."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)

class BackendFailureError(StorageError):
    """
    Raised when a storage tier cannot complete an operation: transport faults,
    file I/O errors, undecodable payloads or an exceeded deadline.
    """
    def __init__(self, tier: str = "unknown", message: str = "Backend failure.", cause: Optional[BaseException] = None):
        self.tier = tier
        self.cause = cause
        detail = f" Cause: {type(cause).__name__}: {cause}" if cause is not None else ""
        super().__init__(f"Error in '{tier}' tier: {message}{detail}")

class WriteThroughError(StorageError):
    """
    Raised when at least one leg of a multi-tier write fan-out failed.

    Legs that succeeded are not rolled back; `failures` maps each failed
    tier name to the exception it raised.
    """
    def __init__(self, operation: str, entity_id: str, failures: Dict[str, BaseException]):
        self.operation = operation
        self.entity_id = entity_id
        self.failures = failures
        tiers = ", ".join(sorted(failures)) or "none"
        super().__init__(f"Write-through for '{operation}' of entity '{entity_id}' failed in tier(s): {tiers}")
