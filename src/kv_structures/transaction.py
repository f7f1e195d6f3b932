"""Deferred command batches in the style of MULTI/EXEC.

A transaction only defers execution. Commands run one after another against the live store when
`exec` is called; nothing is isolated from other callers and nothing is rolled back when a command
fails.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from typing_extensions import Self

from kv_structures.errors import InvalidOperationError

if TYPE_CHECKING:
    from kv_structures.store import StructuredStore

logger = logging.getLogger(__name__)

TRANSACTION_COMMANDS: frozenset[str] = frozenset(
    {
        # scalar
        "put",
        "get",
        "delete",
        "has",
        "incr",
        "decr",
        "clear",
        "size",
        # queries and batches
        "keys",
        "scan",
        "range",
        "count_prefix",
        "keys_match",
        "put_batch",
        "get_batch",
        "flush",
        "compact",
        # ttl
        "expire",
        "ttl",
        "persist",
        # cursor scans
        "paged_scan",
        "iterate",
        # publish / subscribe
        "subscribe",
        "unsubscribe",
        "publish",
        # lists
        "lpush",
        "rpush",
        "lpop",
        "rpop",
        "llen",
        "lrange",
        "lindex",
        "lset",
        # sets
        "sadd",
        "srem",
        "sismember",
        "smembers",
        "scard",
        # hashes
        "hset",
        "hmset",
        "hget",
        "hgetall",
        "hdel",
        "hexists",
        "hkeys",
        "hvals",
        "hlen",
        "hincrby",
        # sorted sets
        "zadd",
        "zrem",
        "zscore",
        "zrank",
        "zcard",
        "zrange",
        "zrevrange",
        "zrangebyscore",
        "zincrby",
        "zcount",
        # bulk and statistics
        "import_json",
        "export_json",
        "stats",
    }
)
"""The store operations a transaction may queue: every public operation except `multi`, `close` and the
async `import_json_stream`."""


@dataclass
class QueuedCommand:
    name: str
    args: tuple[Any, ...] = field(default_factory=tuple)
    kwargs: Mapping[str, Any] = field(default_factory=dict)


class Transaction:
    """An ordered queue of commands bound to one store.

    Builder methods return the transaction so calls can be chained:

        results = store.multi().put("greeting", "hello").incr("visits").exec()
    """

    def __init__(self, store: "StructuredStore") -> None:
        self.store = store
        self._commands: list[QueuedCommand] = []

    def __len__(self) -> int:
        return len(self._commands)

    @property
    def commands(self) -> list[QueuedCommand]:
        return list(self._commands)

    def queue(self, name: str, *args: Any, **kwargs: Any) -> Self:
        """Queue a command by operation name.

        The name is not checked until `exec`, where an unknown name fails only its own slot.
        """
        self._commands.append(QueuedCommand(name=name, args=args, kwargs=kwargs))
        return self

    def exec(self) -> list[Any]:
        """Run the queued commands in order and clear the queue.

        Returns:
            One slot per command: its return value, or the exception it raised.
        """
        commands, self._commands = self._commands, []
        results: list[Any] = []

        for command in commands:
            try:
                results.append(self._dispatch(command))
            except Exception as e:  # noqa: BLE001
                logger.debug("Queued command %r failed: %s", command.name, e)
                results.append(e)

        return results

    def discard(self) -> str:
        """Drop the queued commands without running them."""
        self._commands.clear()
        return "OK"

    def _dispatch(self, command: QueuedCommand) -> Any:
        if command.name not in TRANSACTION_COMMANDS:
            raise InvalidOperationError(operation=command.name)

        return getattr(self.store, command.name)(*command.args, **command.kwargs)

    def put(self, key: str, value: str, ttl: int | None = None) -> Self:
        return self.queue("put", key, value, ttl=ttl)

    def get(self, key: str) -> Self:
        return self.queue("get", key)

    def delete(self, key: str) -> Self:
        return self.queue("delete", key)

    def incr(self, key: str, delta: int = 1) -> Self:
        return self.queue("incr", key, delta)

    def decr(self, key: str, delta: int = 1) -> Self:
        return self.queue("decr", key, delta)

    def expire(self, key: str, ttl_ms: float) -> Self:
        return self.queue("expire", key, ttl_ms)

    def persist(self, key: str) -> Self:
        return self.queue("persist", key)

    def lpush(self, key: str, *values: str) -> Self:
        return self.queue("lpush", key, *values)

    def rpush(self, key: str, *values: str) -> Self:
        return self.queue("rpush", key, *values)

    def lpop(self, key: str) -> Self:
        return self.queue("lpop", key)

    def rpop(self, key: str) -> Self:
        return self.queue("rpop", key)

    def sadd(self, key: str, *members: str) -> Self:
        return self.queue("sadd", key, *members)

    def srem(self, key: str, *members: str) -> Self:
        return self.queue("srem", key, *members)

    def hset(self, key: str, field: str, value: str) -> Self:
        return self.queue("hset", key, field, value)

    def hdel(self, key: str, *fields: str) -> Self:
        return self.queue("hdel", key, *fields)

    def hincrby(self, key: str, field: str, delta: float = 1) -> Self:
        return self.queue("hincrby", key, field, delta)

    def zadd(self, key: str, *score_members: Any) -> Self:
        return self.queue("zadd", key, *score_members)

    def zrem(self, key: str, *members: str) -> Self:
        return self.queue("zrem", key, *members)

    def zincrby(self, key: str, delta: float | str, member: str) -> Self:
        return self.queue("zincrby", key, delta, member)
