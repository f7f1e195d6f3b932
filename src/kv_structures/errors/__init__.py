"""Error classes for kv-structures.

Exception Hierarchy:
    BaseKeyValueError (base for all errors)
    ├── KeyValueOperationError (operation-level errors)
    │   ├── SerializationError
    │   ├── DeserializationError
    │   ├── InvalidKeyError
    │   ├── InvalidArgumentError
    │   ├── InvalidTTLError
    │   └── InvalidOperationError
    └── KeyValueStoreError (primitive store errors)
        └── CorruptedDataError
"""

from kv_structures.errors.base import BaseKeyValueError, ExtraInfoType
from kv_structures.errors.key_value import (
    DeserializationError,
    InvalidArgumentError,
    InvalidKeyError,
    InvalidOperationError,
    InvalidTTLError,
    KeyValueOperationError,
    SerializationError,
)
from kv_structures.errors.store import CorruptedDataError, KeyValueStoreError

__all__ = [
    "BaseKeyValueError",
    "CorruptedDataError",
    "DeserializationError",
    "ExtraInfoType",
    "InvalidArgumentError",
    "InvalidKeyError",
    "InvalidOperationError",
    "InvalidTTLError",
    "KeyValueOperationError",
    "KeyValueStoreError",
    "SerializationError",
]
