from typing import Any

from kv_structures.errors.base import BaseKeyValueError, ExtraInfoType


class KeyValueOperationError(BaseKeyValueError):
    """Base exception for all Key-Value operation errors."""


class SerializationError(KeyValueOperationError):
    """Raised when data cannot be serialized for storage."""


class DeserializationError(KeyValueOperationError):
    """Raised when stored data cannot be deserialized back to its original form."""


class InvalidKeyError(KeyValueOperationError):
    """Raised when a user key collides with the reserved composite namespace."""

    def __init__(self, key: str, operation: str | None = None):
        super().__init__(
            message="Keys may not start with the reserved composite marker.",
            extra_info={"key": repr(key), "operation": operation},
        )


class InvalidArgumentError(KeyValueOperationError):
    """Raised when an operation receives arguments it cannot interpret."""

    def __init__(self, message: str, operation: str | None = None, argument: Any = None):
        super().__init__(
            message=message,
            extra_info={"operation": operation, "argument": repr(argument)},
        )


class InvalidOperationError(KeyValueOperationError):
    """Raised when a queued transaction command does not name a known operation."""

    def __init__(self, operation: str):
        super().__init__(
            message="Unknown command queued in transaction.",
            extra_info={"operation": operation},
        )


class InvalidTTLError(KeyValueOperationError):
    """Raised when a TTL is invalid."""

    def __init__(self, ttl: Any, extra_info: ExtraInfoType | None = None):
        super().__init__(
            message="A TTL is invalid.",
            extra_info={"ttl": str(ttl), **(extra_info or {})},
        )
