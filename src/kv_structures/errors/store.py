"""Store-level error classes."""

from kv_structures.errors.base import BaseKeyValueError


class KeyValueStoreError(BaseKeyValueError):
    """Base exception for all errors surfaced by the underlying primitive store."""


class CorruptedDataError(KeyValueStoreError):
    """Raised when a stored frame can no longer be decoded by the primitive."""
