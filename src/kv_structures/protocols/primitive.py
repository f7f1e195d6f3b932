from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

KeyValuePair = tuple[str, str]


@dataclass
class PrimitiveStats:
    """Storage-level statistics reported by a primitive store."""

    key_count: int = field(default=0)
    """The number of live keys."""

    raw_bytes: int = field(default=0)
    """The size of all live values before compression."""

    compressed_bytes: int = field(default=0)
    """The size of all live values as stored."""

    @property
    def compression_ratio(self) -> float:
        if self.compressed_bytes == 0:
            return 0.0
        return self.raw_bytes / self.compressed_bytes


@runtime_checkable
class KeyValuePrimitive(Protocol):
    """Protocol for the durable string-to-string store the structures are emulated on.

    TTLs are expressed in milliseconds and a TTL of 0 means the record never expires. Scans and
    ranges return pairs in ascending key order.
    """

    def put(self, key: str, value: str, ttl: int = 0) -> None:
        """Store a value, replacing any previous value and TTL."""
        ...

    def get(self, key: str) -> str | None:
        """Retrieve a live value, or None."""
        ...

    def delete(self, key: str) -> bool:
        """Delete a key, returning True if it existed."""
        ...

    def has(self, key: str) -> bool:
        """Check if a live key exists."""
        ...

    def size(self) -> int:
        """Count the live keys."""
        ...

    def clear(self) -> None:
        """Remove every key."""
        ...

    def incr(self, key: str, delta: int = 1) -> int:
        """Add `delta` to the integer stored at `key` (missing or non-numeric counts as 0)."""
        ...

    def decr(self, key: str, delta: int = 1) -> int:
        """Subtract `delta` from the integer stored at `key`."""
        ...

    def keys(self, limit: int) -> list[str]:
        """List up to `limit` live keys."""
        ...

    def scan(self, prefix: str, limit: int) -> list[KeyValuePair]:
        """List up to `limit` live pairs whose key starts with `prefix`."""
        ...

    def range(self, start: str, end: str, limit: int) -> list[KeyValuePair]:
        """List up to `limit` live pairs with `start <= key <= end`."""
        ...

    def count_prefix(self, prefix: str) -> int:
        """Count the live keys starting with `prefix`."""
        ...

    def put_batch(self, pairs: Sequence[KeyValuePair]) -> None:
        """Store many pairs without TTL."""
        ...

    def get_batch(self, keys: Sequence[str]) -> list[str | None]:
        """Retrieve many values, None for each miss."""
        ...

    def flush(self) -> None:
        """Make previous writes durable."""
        ...

    def compact(self) -> None:
        """Reclaim space held by deleted or expired records."""
        ...

    def stats(self) -> PrimitiveStats:
        """Report storage-level statistics."""
        ...
