from dataclasses import dataclass, field


@dataclass
class BaseStatistics:
    """Base statistics container with operation counting."""

    count: int = field(default=0)
    """The number of operations."""

    def increment(self, *, increment: int = 1) -> None:
        self.count += increment


@dataclass
class BaseHitMissStatistics(BaseStatistics):
    """Statistics container with hit/miss tracking for cache-like operations."""

    hit: int = field(default=0)
    """The number of hits."""
    miss: int = field(default=0)
    """The number of misses."""

    def increment_hit(self, *, increment: int = 1) -> None:
        self.hit += increment

    def increment_miss(self, *, increment: int = 1) -> None:
        self.miss += increment


@dataclass
class OperationStatistics(BaseHitMissStatistics):
    """Counters for a structured store.

    `count` is incremented by every counted store operation (reads, writes, queries and structure operations). Hits and misses are recorded by `get` only, so
    they are a subset of `count` rather than a partition of it.
    """


@dataclass
class StoreStats:
    """A point-in-time report combining operation counters with primitive storage statistics."""

    total_ops: int = field(default=0)
    hits: int = field(default=0)
    misses: int = field(default=0)

    hit_rate: float = field(default=0.0)
    """Hits divided by all operations, 0.0 when no operation ran yet."""

    key_count: int = field(default=0)
    raw_bytes: int = field(default=0)
    compressed_bytes: int = field(default=0)
    compression_ratio: float = field(default=0.0)
