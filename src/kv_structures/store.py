"""The structured store: Redis-like data structures emulated on a plain key-value primitive."""

import logging
from collections.abc import AsyncIterable, Mapping, Sequence
from types import TracebackType
from typing import Any

from typing_extensions import Self

from kv_structures.bulk import (
    DEFAULT_ID_FIELD,
    DEFAULT_IMPORT_BATCH_SIZE,
    decode_export_value,
    parse_payload,
    payload_to_pairs,
    read_chunks,
    write_pairs,
)
from kv_structures.cursor import DEFAULT_ITERATE_BATCH, DEFAULT_SCAN_COUNT, CursorScanner, ScanIterator, ScanPage
from kv_structures.errors import InvalidArgumentError, InvalidKeyError
from kv_structures.protocols.primitive import KeyValuePair, KeyValuePrimitive, PrimitiveStats
from kv_structures.pubsub import Listener, PubSubBroker
from kv_structures.statistics import OperationStatistics, StoreStats
from kv_structures.structures.hashes import HashStructure, Number
from kv_structures.structures.lists import ListStructure
from kv_structures.structures.sets import SetStructure
from kv_structures.structures.sorted_sets import ScoreBound, SortedSetStructure
from kv_structures.transaction import Transaction
from kv_structures.ttl import TTLTracker
from kv_structures.utils.compound import RESERVED_MARKER, is_reserved_key
from kv_structures.utils.glob import glob_match
from kv_structures.utils.time_to_live import prepare_ttl

logger = logging.getLogger(__name__)

DEFAULT_KEYS_LIMIT = 1000
DEFAULT_SCAN_LIMIT = 1000
DEFAULT_KEYS_MATCH_LIMIT = 100_000
DEFAULT_EXPORT_LIMIT = 1_000_000


class StructuredStore:
    """Lists, sets, hashes and sorted sets on top of a `KeyValuePrimitive`.

    Each composite structure is kept as one serialized record under a reserved, namespaced key, and
    every structure operation is a full load-mutate-store cycle of that record. Plain key-value
    operations go straight to the primitive. Reserved keys are never accepted from, or shown to, the
    caller through the plain operations.

    The TTL table, subscription registry and statistics belong to the instance and are released by
    `close`. Nothing here is thread-safe: overlapping writes to one structure are last-writer-wins.

    Example:
        >>> with StructuredStore() as store:
        ...     store.rpush("queue", "a", "b")
        ...     store.lrange("queue", 0, -1)
        2
        ['a', 'b']
    """

    primitive: KeyValuePrimitive

    def __init__(
        self,
        primitive: KeyValuePrimitive | None = None,
        *,
        default_scan_count: int = DEFAULT_SCAN_COUNT,
        default_iterate_batch: int = DEFAULT_ITERATE_BATCH,
        default_keys_limit: int = DEFAULT_KEYS_LIMIT,
    ) -> None:
        """Initialize the structured store.

        Args:
            primitive: The key-value primitive to store records in. Defaults to a new in-memory `MemoryStore`.
            default_scan_count: The page size of `paged_scan` when no count is given. Defaults to 10.
            default_iterate_batch: The page size of `iterate` when no batch size is given. Defaults to 100.
            default_keys_limit: The number of keys `keys` returns when no limit is given. Defaults to 1000.
        """
        if primitive is None:
            from kv_structures.stores.memory import MemoryStore

            primitive = MemoryStore()

        self.primitive = primitive
        self.default_scan_count = default_scan_count
        self.default_iterate_batch = default_iterate_batch
        self.default_keys_limit = default_keys_limit

        self.statistics = OperationStatistics()

        self._ttl = TTLTracker(primitive=primitive)
        self._pubsub = PubSubBroker()
        self._cursor = CursorScanner(scan=self._scan_visible)

        self._lists = ListStructure(primitive=primitive)
        self._sets = SetStructure(primitive=primitive)
        self._hashes = HashStructure(primitive=primitive)
        self._sorted_sets = SortedSetStructure(primitive=primitive)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self, exc_type: type[BaseException] | None, exc_value: BaseException | None, traceback: TracebackType | None
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the TTL table and the subscription registry."""
        self._ttl.clear()
        self._pubsub.clear()

    def _count(self) -> None:
        self.statistics.increment()

    @staticmethod
    def _check_key(key: str, operation: str) -> None:
        if is_reserved_key(key):
            raise InvalidKeyError(key=key, operation=operation)

    def _reserved_count(self) -> int:
        return self.primitive.count_prefix(RESERVED_MARKER)

    def _keys_visible(self, limit: int) -> list[str]:
        keys: list[str] = self.primitive.keys(limit + self._reserved_count())
        return [key for key in keys if not is_reserved_key(key)][:limit]

    def _scan_visible(self, prefix: str, limit: int) -> list[KeyValuePair]:
        if prefix:
            return self.primitive.scan(prefix, limit)

        pairs: list[KeyValuePair] = self.primitive.scan(prefix, limit + self._reserved_count())
        return [pair for pair in pairs if not is_reserved_key(pair[0])][:limit]

    # Scalar operations

    def put(self, key: str, value: str, ttl: float | None = None) -> None:
        """Store a value, optionally expiring after `ttl` milliseconds.

        A put without a TTL (None or 0) also clears any TTL the key had.
        """
        self._count()
        self._check_key(key, operation="put")

        if ttl is None or (ttl == 0 and not isinstance(ttl, bool)):
            self._ttl.discard(key)
            self.primitive.put(key, value)
            return

        ttl_ms: int = prepare_ttl(ttl)
        self._ttl.track(key=key, ttl_ms=ttl_ms)
        self.primitive.put(key, value, ttl=ttl_ms)

    def get(self, key: str) -> str | None:
        self._count()
        self._check_key(key, operation="get")

        value: str | None = self.primitive.get(key)

        if value is None:
            self.statistics.increment_miss()
            self._ttl.discard(key)
        else:
            self.statistics.increment_hit()

        return value

    def delete(self, key: str) -> bool:
        self._count()
        self._check_key(key, operation="delete")

        self._ttl.discard(key)
        return self.primitive.delete(key)

    def has(self, key: str) -> bool:
        self._count()
        self._check_key(key, operation="has")

        return self.primitive.has(key)

    def size(self) -> int:
        """Count every live record in the primitive, composite records included."""
        return self.primitive.size()

    def clear(self) -> None:
        """Remove every record, composite records included."""
        self._count()
        self._ttl.clear()
        self.primitive.clear()

    def incr(self, key: str, delta: int = 1) -> int:
        self._count()
        self._check_key(key, operation="incr")

        self._ttl.discard(key)
        return self.primitive.incr(key, delta)

    def decr(self, key: str, delta: int = 1) -> int:
        self._count()
        self._check_key(key, operation="decr")

        self._ttl.discard(key)
        return self.primitive.decr(key, delta)

    # Queries

    def keys(self, limit: int | None = None) -> list[str]:
        self._count()
        return self._keys_visible(limit=self.default_keys_limit if limit is None else limit)

    def scan(self, prefix: str, limit: int = DEFAULT_SCAN_LIMIT) -> list[KeyValuePair]:
        self._count()
        self._check_key(prefix, operation="scan")

        return self._scan_visible(prefix=prefix, limit=limit)

    def range(self, start: str, end: str, limit: int = DEFAULT_SCAN_LIMIT) -> list[KeyValuePair]:
        """List pairs with `start <= key <= end` in ascending key order."""
        self._count()

        if start and not is_reserved_key(start):
            return self.primitive.range(start, end, limit)

        pairs: list[KeyValuePair] = self.primitive.range(start, end, limit + self._reserved_count())
        return [pair for pair in pairs if not is_reserved_key(pair[0])][:limit]

    def count_prefix(self, prefix: str) -> int:
        self._count()
        self._check_key(prefix, operation="count_prefix")

        if prefix:
            return self.primitive.count_prefix(prefix)

        return self.primitive.count_prefix(prefix) - self._reserved_count()

    def keys_match(self, pattern: str, limit: int = DEFAULT_KEYS_MATCH_LIMIT) -> list[str]:
        """List the keys matching a glob pattern (`*` and `?`), among the first `limit` keys."""
        self._count()
        return [key for key in self._keys_visible(limit=limit) if glob_match(pattern, key)]

    # Batches

    def put_batch(self, pairs: Sequence[KeyValuePair]) -> None:
        """Store many pairs without TTL, clearing any TTL the keys had."""
        self._count()

        for key, _ in pairs:
            self._check_key(key, operation="put_batch")

        for key, _ in pairs:
            self._ttl.discard(key)

        self.primitive.put_batch(pairs)

    def get_batch(self, keys: Sequence[str]) -> list[str | None]:
        self._count()

        for key in keys:
            self._check_key(key, operation="get_batch")

        values: list[str | None] = self.primitive.get_batch(keys)

        for key, value in zip(keys, values):
            if value is None:
                self._ttl.discard(key)

        return values

    # Maintenance

    def flush(self) -> None:
        self.primitive.flush()

    def compact(self) -> None:
        self.primitive.compact()

    # Time to live

    def expire(self, key: str, ttl_ms: float) -> bool:
        """Give an existing key a TTL in milliseconds, returning False if the key does not exist."""
        self._count()
        self._check_key(key, operation="expire")

        return self._ttl.expire(key=key, ttl_ms=ttl_ms)

    def ttl(self, key: str) -> int:
        """Get the remaining milliseconds of a key: -2 if it does not exist, -1 if it has no TTL."""
        self._count()
        self._check_key(key, operation="ttl")

        return self._ttl.ttl(key=key)

    def persist(self, key: str) -> bool:
        self._count()
        self._check_key(key, operation="persist")

        return self._ttl.persist(key=key)

    # Cursor scans

    def paged_scan(self, prefix: str = "", cursor: int = 0, count: int | None = None) -> ScanPage:
        """Fetch one page of a prefix scan. Pass the returned cursor back until the page is `done`."""
        self._count()
        self._check_key(prefix, operation="paged_scan")

        return self._cursor.paged_scan(prefix=prefix, cursor=cursor, count=self.default_scan_count if count is None else count)

    def iterate(self, prefix: str = "", batch_size: int | None = None) -> ScanIterator:
        """Lazily iterate every `(key, value)` pair under a prefix, a page at a time."""
        self._count()
        self._check_key(prefix, operation="iterate")

        return self._cursor.iterate(prefix=prefix, batch_size=self.default_iterate_batch if batch_size is None else batch_size)

    # Transactions

    def multi(self) -> Transaction:
        return Transaction(store=self)

    # Publish / subscribe

    def subscribe(self, channel: str, listener: Listener) -> int:
        return self._pubsub.subscribe(channel=channel, listener=listener)

    def unsubscribe(self, channel: str, listener: Listener | None = None) -> int:
        return self._pubsub.unsubscribe(channel=channel, listener=listener)

    def publish(self, channel: str, message: Any) -> int:
        self._count()
        return self._pubsub.publish(channel=channel, message=message)

    # Lists

    def lpush(self, key: str, *values: str) -> int:
        self._count()
        return self._lists.lpush(key, *values)

    def rpush(self, key: str, *values: str) -> int:
        self._count()
        return self._lists.rpush(key, *values)

    def lpop(self, key: str) -> str | None:
        self._count()
        return self._lists.lpop(key)

    def rpop(self, key: str) -> str | None:
        self._count()
        return self._lists.rpop(key)

    def llen(self, key: str) -> int:
        self._count()
        return self._lists.llen(key)

    def lrange(self, key: str, start: int, stop: int) -> list[str]:
        self._count()
        return self._lists.lrange(key, start=start, stop=stop)

    def lindex(self, key: str, index: int) -> str | None:
        self._count()
        return self._lists.lindex(key, index=index)

    def lset(self, key: str, index: int, value: str) -> bool:
        self._count()
        return self._lists.lset(key, index=index, value=value)

    # Sets

    def sadd(self, key: str, *members: str) -> int:
        self._count()
        return self._sets.sadd(key, *members)

    def srem(self, key: str, *members: str) -> bool:
        self._count()
        return self._sets.srem(key, *members)

    def sismember(self, key: str, member: str) -> bool:
        self._count()
        return self._sets.sismember(key, member=member)

    def smembers(self, key: str) -> list[str]:
        self._count()
        return self._sets.smembers(key)

    def scard(self, key: str) -> int:
        self._count()
        return self._sets.scard(key)

    # Hashes

    def hset(self, key: str, field: str, value: str) -> int:
        self._count()
        return self._hashes.hset(key, field=field, value=value)

    def hmset(self, key: str, mapping: Mapping[str, str]) -> None:
        self._count()
        self._hashes.hmset(key, mapping=mapping)

    def hget(self, key: str, field: str) -> str | None:
        self._count()
        return self._hashes.hget(key, field=field)

    def hgetall(self, key: str) -> dict[str, str]:
        self._count()
        return self._hashes.hgetall(key)

    def hdel(self, key: str, *fields: str) -> int:
        self._count()
        return self._hashes.hdel(key, *fields)

    def hexists(self, key: str, field: str) -> bool:
        self._count()
        return self._hashes.hexists(key, field=field)

    def hkeys(self, key: str) -> list[str]:
        self._count()
        return self._hashes.hkeys(key)

    def hvals(self, key: str) -> list[str]:
        self._count()
        return self._hashes.hvals(key)

    def hlen(self, key: str) -> int:
        self._count()
        return self._hashes.hlen(key)

    def hincrby(self, key: str, field: str, delta: Number = 1) -> Number:
        self._count()
        return self._hashes.hincrby(key, field=field, delta=delta)

    # Sorted sets

    def zadd(self, key: str, *score_members: Any) -> int:
        self._count()
        return self._sorted_sets.zadd(key, *score_members)

    def zrem(self, key: str, *members: str) -> int:
        self._count()
        return self._sorted_sets.zrem(key, *members)

    def zscore(self, key: str, member: str) -> float | None:
        self._count()
        return self._sorted_sets.zscore(key, member=member)

    def zrank(self, key: str, member: str) -> int | None:
        self._count()
        return self._sorted_sets.zrank(key, member=member)

    def zcard(self, key: str) -> int:
        self._count()
        return self._sorted_sets.zcard(key)

    def zrange(self, key: str, start: int, stop: int, *, with_scores: bool = False) -> list[str] | list[tuple[str, float]]:
        self._count()
        return self._sorted_sets.zrange(key, start=start, stop=stop, with_scores=with_scores)

    def zrevrange(self, key: str, start: int, stop: int, *, with_scores: bool = False) -> list[str] | list[tuple[str, float]]:
        self._count()
        return self._sorted_sets.zrevrange(key, start=start, stop=stop, with_scores=with_scores)

    def zrangebyscore(
        self,
        key: str,
        min_score: ScoreBound,
        max_score: ScoreBound,
        *,
        with_scores: bool = False,
        limit: tuple[int, int] | None = None,
    ) -> list[str] | list[tuple[str, float]]:
        self._count()
        return self._sorted_sets.zrangebyscore(key, min_score=min_score, max_score=max_score, with_scores=with_scores, limit=limit)

    def zincrby(self, key: str, delta: float | int | str, member: str) -> float:
        self._count()
        return self._sorted_sets.zincrby(key, delta=delta, member=member)

    def zcount(self, key: str, min_score: ScoreBound, max_score: ScoreBound) -> int:
        self._count()
        return self._sorted_sets.zcount(key, min_score=min_score, max_score=max_score)

    # Bulk import / export

    def import_json(
        self,
        payload: str | bytes,
        *,
        prefix: str = "",
        id_field: str = DEFAULT_ID_FIELD,
        batch_size: int = DEFAULT_IMPORT_BATCH_SIZE,
    ) -> int:
        """Import a JSON array or object as plain records and return how many were written.

        Array items are keyed by `prefix` plus their `id_field` value (or their index when they have
        none), object members by `prefix` plus their name. Values are stored as compact JSON.

        Raises:
            DeserializationError: If the payload is not a JSON array or object.
            InvalidKeyError: If a resulting key falls in the reserved namespace.
        """
        if batch_size <= 0:
            raise InvalidArgumentError(message="Batch size must be positive.", operation="import_json", argument=batch_size)

        pairs: list[KeyValuePair] = payload_to_pairs(data=parse_payload(payload), prefix=prefix, id_field=id_field)

        for key, _ in pairs:
            self._ttl.discard(key)

        imported: int = write_pairs(primitive=self.primitive, pairs=pairs, batch_size=batch_size)
        self.statistics.increment(increment=imported)

        logger.debug("Imported %d records with prefix %r", imported, prefix)
        return imported

    async def import_json_stream(
        self,
        chunks: AsyncIterable[str | bytes],
        *,
        prefix: str = "",
        id_field: str = DEFAULT_ID_FIELD,
        batch_size: int = DEFAULT_IMPORT_BATCH_SIZE,
    ) -> int:
        """Like `import_json`, reading the payload from an async stream of text or byte chunks.

        The whole payload is buffered before it is parsed.
        """
        payload: bytes = await read_chunks(chunks)
        return self.import_json(payload, prefix=prefix, id_field=id_field, batch_size=batch_size)

    def export_json(self, *, prefix: str = "", limit: int = DEFAULT_EXPORT_LIMIT) -> dict[str, Any]:
        """Export plain records as a dictionary of key to decoded JSON value.

        Keys are returned with `prefix` stripped. Values that are not valid JSON are returned as strings.
        """
        self._count()
        self._check_key(prefix, operation="export_json")

        if prefix:
            pairs: list[KeyValuePair] = self._scan_visible(prefix=prefix, limit=limit)
        else:
            keys: list[str] = self._keys_visible(limit=limit)
            pairs = [(key, value) for key, value in zip(keys, self.primitive.get_batch(keys)) if value is not None]

        return {key[len(prefix) :]: decode_export_value(value) for key, value in pairs}

    # Statistics

    def stats(self) -> StoreStats:
        """Report operation counters together with the primitive's storage statistics.

        `hit_rate` is hits divided by all counted operations, not by reads alone.
        """
        primitive_stats: PrimitiveStats = self.primitive.stats()
        total_ops: int = self.statistics.count

        return StoreStats(
            total_ops=total_ops,
            hits=self.statistics.hit,
            misses=self.statistics.miss,
            hit_rate=self.statistics.hit / total_ops if total_ops else 0.0,
            key_count=primitive_stats.key_count,
            raw_bytes=primitive_stats.raw_bytes,
            compressed_bytes=primitive_stats.compressed_bytes,
            compression_ratio=primitive_stats.compression_ratio,
        )
