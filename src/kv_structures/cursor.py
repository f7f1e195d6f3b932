"""Cursor pagination over prefix scans.

A cursor is a plain offset into the ascending prefix scan, not an opaque token. Each page re-runs the
scan from the start, so pages reflect the store at the time they are fetched: keys inserted or removed
between pages can shift results, skipping or repeating entries.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from kv_structures.errors import InvalidArgumentError
from kv_structures.protocols.primitive import KeyValuePair

DEFAULT_SCAN_COUNT = 10
DEFAULT_ITERATE_BATCH = 100

PrefixScan = Callable[[str, int], list[KeyValuePair]]
"""A scan taking `(prefix, limit)` and returning pairs in ascending key order."""


@dataclass
class ScanPage:
    """One page of a cursor scan."""

    cursor: int
    """The cursor to pass to the next call, 0 once the scan is done."""

    entries: list[KeyValuePair] = field(default_factory=list)

    done: bool = field(default=False)


class CursorScanner:
    def __init__(self, scan: PrefixScan) -> None:
        self._scan = scan

    def paged_scan(self, prefix: str, cursor: int = 0, count: int = DEFAULT_SCAN_COUNT) -> ScanPage:
        """Fetch the page of up to `count` entries starting at `cursor`.

        Raises:
            InvalidArgumentError: If the cursor is negative or the count is not positive.
        """
        if cursor < 0:
            raise InvalidArgumentError(message="Cursor must not be negative.", operation="paged_scan", argument=cursor)

        if count <= 0:
            raise InvalidArgumentError(message="Count must be positive.", operation="paged_scan", argument=count)

        fetched: list[KeyValuePair] = self._scan(prefix, cursor + count + 1)
        entries: list[KeyValuePair] = fetched[cursor : cursor + count]
        next_cursor: int = cursor + len(entries)
        done: bool = next_cursor >= len(fetched)

        return ScanPage(cursor=0 if done else next_cursor, entries=entries, done=done)

    def iterate(self, prefix: str = "", batch_size: int = DEFAULT_ITERATE_BATCH) -> "ScanIterator":
        return ScanIterator(paged_scan=self.paged_scan, prefix=prefix, batch_size=batch_size)


class ScanIterator:
    """A restartable iterable over every `(key, value)` pair under a prefix.

    Pages are fetched lazily, `batch_size` entries at a time. Each call to `iter()` starts a fresh scan
    at cursor 0.
    """

    def __init__(self, paged_scan: Callable[[str, int, int], ScanPage], prefix: str, batch_size: int) -> None:
        if batch_size <= 0:
            raise InvalidArgumentError(message="Batch size must be positive.", operation="iterate", argument=batch_size)

        self._paged_scan = paged_scan
        self.prefix = prefix
        self.batch_size = batch_size

    def __iter__(self) -> Iterator[KeyValuePair]:
        cursor: int = 0

        while True:
            page: ScanPage = self._paged_scan(self.prefix, cursor, self.batch_size)
            yield from page.entries

            if page.done:
                return

            cursor = page.cursor
