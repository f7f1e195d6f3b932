import logging
import math
import sys
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from typing_extensions import Self

from kv_structures.errors import CorruptedDataError
from kv_structures.protocols.primitive import KeyValuePair, PrimitiveStats

try:
    import zstandard
    from cachetools import Cache, TLRUCache
except ImportError as e:
    msg = "MemoryStore requires cachetools and zstandard"
    raise ImportError(msg) from e

logger = logging.getLogger(__name__)


@dataclass
class MemoryCacheEntry:
    """A cache entry for the memory store."""

    compressed: bytes

    raw_size: int

    ttl_at_insert: int = field(default=0)
    """The TTL in milliseconds the entry was stored with, 0 for no expiry."""

    @classmethod
    def from_value(cls, value: str, compressor: "zstandard.ZstdCompressor", ttl: int = 0) -> Self:
        raw: bytes = value.encode("utf-8")
        return cls(
            compressed=compressor.compress(raw) if raw else b"",
            raw_size=len(raw),
            ttl_at_insert=max(ttl, 0),
        )

    def to_value(self, decompressor: "zstandard.ZstdDecompressor") -> str:
        if not self.compressed:
            return ""
        return decompressor.decompress(self.compressed).decode("utf-8")


def _memory_cache_ttu(_key: Any, value: MemoryCacheEntry, now: float) -> float:
    """Calculate time-to-use for cache entries based on their TTL."""
    if not value.ttl_at_insert:
        return float(sys.maxsize)

    return now + value.ttl_at_insert / 1000


def _memory_cache_getsizeof(value: MemoryCacheEntry) -> int:  # noqa: ARG001
    """Return size of cache entry (always 1 for entry counting)."""
    return 1


DEFAULT_MAX_ENTRIES: float = math.inf
DEFAULT_COMPRESSION_LEVEL = 3


class MemoryStore:
    """An in-process primitive store using a TLRU (Time-aware Least Recently Used) cache.

    Values are kept zstd-compressed so the store can report raw and compressed sizes. Expired
    entries are dropped lazily when they are touched, or eagerly by `compact`.
    """

    max_entries: float

    _cache: TLRUCache[str, MemoryCacheEntry]

    def __init__(
        self,
        *,
        max_entries: float = DEFAULT_MAX_ENTRIES,
        compression_level: int = DEFAULT_COMPRESSION_LEVEL,
        timer: Callable[[], float] = time.monotonic,
    ):
        """Initialize the in-memory store.

        Args:
            max_entries: The maximum number of entries. Defaults to unbounded. A finite bound evicts the least
                recently used entries once it is reached, composite records included, so structures can lose data.
            compression_level: The zstd compression level. Defaults to 3.
            timer: The monotonic clock (in seconds) used to expire entries. Defaults to `time.monotonic`.
        """
        self.max_entries = max_entries

        self._cache = TLRUCache[str, MemoryCacheEntry](
            maxsize=max_entries,
            ttu=_memory_cache_ttu,
            timer=timer,
            getsizeof=_memory_cache_getsizeof,
        )
        self._compressor = zstandard.ZstdCompressor(level=compression_level)
        self._decompressor = zstandard.ZstdDecompressor()

    def _decode(self, key: str, entry: MemoryCacheEntry) -> str:
        try:
            return entry.to_value(decompressor=self._decompressor)
        except (zstandard.ZstdError, UnicodeDecodeError) as e:
            msg = f"Failed to decode stored value: {e}"
            raise CorruptedDataError(message=msg, extra_info={"key": key}) from e

    def _peek(self, key: str) -> MemoryCacheEntry | None:
        """Read a live entry without refreshing its recency."""
        if key not in self._cache:
            return None
        return Cache.__getitem__(self._cache, key)

    def _live_keys(self) -> list[str]:
        self._cache.expire()
        return sorted(self._cache.keys())

    def _iter_live(self, predicate: Callable[[str], bool]) -> Iterator[KeyValuePair]:
        for key in self._live_keys():
            if not predicate(key):
                continue
            if (entry := self._peek(key)) is None:
                continue
            yield key, self._decode(key=key, entry=entry)

    def put(self, key: str, value: str, ttl: int = 0) -> None:
        self._cache[key] = MemoryCacheEntry.from_value(value=value, compressor=self._compressor, ttl=ttl)

    def get(self, key: str) -> str | None:
        entry: MemoryCacheEntry | None = self._cache.get(key)

        if entry is None:
            return None

        return self._decode(key=key, entry=entry)

    def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    def has(self, key: str) -> bool:
        return key in self._cache

    def size(self) -> int:
        self._cache.expire()
        return len(self._cache)

    def clear(self) -> None:
        self._cache.clear()

    def incr(self, key: str, delta: int = 1) -> int:
        current: int = 0

        if (raw := self.get(key)) is not None:
            try:
                current = int(raw)
            except ValueError:
                current = 0

        new_value: int = current + delta
        self.put(key=key, value=str(new_value))
        return new_value

    def decr(self, key: str, delta: int = 1) -> int:
        return self.incr(key=key, delta=-delta)

    def keys(self, limit: int) -> list[str]:
        return self._live_keys()[:limit]

    def scan(self, prefix: str, limit: int) -> list[KeyValuePair]:
        pairs: list[KeyValuePair] = []

        for pair in self._iter_live(lambda key: key.startswith(prefix)):
            if len(pairs) >= limit:
                break
            pairs.append(pair)

        return pairs

    def range(self, start: str, end: str, limit: int) -> list[KeyValuePair]:
        pairs: list[KeyValuePair] = []

        for pair in self._iter_live(lambda key: start <= key <= end):
            if len(pairs) >= limit:
                break
            pairs.append(pair)

        return pairs

    def count_prefix(self, prefix: str) -> int:
        return sum(1 for key in self._live_keys() if key.startswith(prefix))

    def put_batch(self, pairs: Sequence[KeyValuePair]) -> None:
        for key, value in pairs:
            self.put(key=key, value=value)

    def get_batch(self, keys: Sequence[str]) -> list[str | None]:
        return [self.get(key=key) for key in keys]

    def flush(self) -> None:
        logger.debug("Flush requested on memory store, nothing to persist")

    def compact(self) -> None:
        expired = list(self._cache.expire())
        logger.debug("Compacted memory store, dropped %d expired entries", len(expired))

    def stats(self) -> PrimitiveStats:
        self._cache.expire()

        stats = PrimitiveStats(key_count=len(self._cache))

        for key in list(self._cache.keys()):
            if (entry := self._peek(key)) is None:
                continue
            stats.raw_bytes += entry.raw_size
            stats.compressed_bytes += len(entry.compressed)

        return stats
