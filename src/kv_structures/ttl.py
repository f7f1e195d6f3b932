"""Remaining-time tracking for keys given a TTL through `expire`.

Expiry itself is enforced by the primitive, which receives the TTL with the value. The tracker only
mirrors each deadline so that `ttl` can answer without the primitive exposing remaining time.
"""

import logging
import math

from kv_structures.protocols.primitive import KeyValuePrimitive
from kv_structures.utils.time_to_live import deadline_from_ttl, ms_until, prepare_ttl

logger = logging.getLogger(__name__)

KEY_MISSING = -2
"""Returned by `ttl` for a key that does not exist or whose deadline has passed."""

NO_EXPIRY = -1
"""Returned by `ttl` for a key that exists without a tracked deadline."""


class TTLTracker:
    """In-memory table of absolute deadlines (epoch milliseconds), lazily evicted.

    Nothing sweeps the table in the background: a lapsed deadline is dropped the next time the key is
    queried, read as a miss or deleted.
    """

    def __init__(self, primitive: KeyValuePrimitive) -> None:
        self.primitive = primitive
        self._deadlines: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._deadlines)

    def __contains__(self, key: object) -> bool:
        return key in self._deadlines

    def track(self, key: str, ttl_ms: int) -> None:
        self._deadlines[key] = deadline_from_ttl(ttl_ms=ttl_ms)

    def discard(self, key: str) -> None:
        self._deadlines.pop(key, None)

    def clear(self) -> None:
        self._deadlines.clear()

    def expire(self, key: str, ttl_ms: float) -> bool:
        """Give an existing key a TTL.

        Returns:
            False if the key does not exist, True otherwise.

        Raises:
            InvalidTTLError: If the TTL is not a positive number of milliseconds.
        """
        ttl: int = prepare_ttl(ttl_ms)

        if not self.primitive.has(key):
            return False

        value: str | None = self.primitive.get(key)

        if value is None:
            self.discard(key)
            return False

        self.track(key=key, ttl_ms=ttl)
        self.primitive.put(key, value, ttl=ttl)
        return True

    def ttl(self, key: str) -> int:
        """Get the remaining time to live of a key in milliseconds.

        Returns:
            -2 if the key does not exist or its deadline has passed, -1 if it has no deadline, and the
            remaining milliseconds (rounded up) otherwise.
        """
        if not self.primitive.has(key):
            self.discard(key)
            return KEY_MISSING

        deadline: float | None = self._deadlines.get(key)

        if deadline is None:
            return NO_EXPIRY

        remaining: float = ms_until(deadline)

        if remaining <= 0:
            logger.debug("Deadline for %r has passed, evicting tracking entry", key)
            self.discard(key)
            return KEY_MISSING

        return math.ceil(remaining)

    def persist(self, key: str) -> bool:
        """Remove the TTL of an existing key, returning False if the key does not exist."""
        value: str | None = self.primitive.get(key)

        if value is None:
            self.discard(key)
            return False

        self.discard(key)
        self.primitive.put(key, value)
        return True
