"""Load-mutate-store template shared by every composite structure.

Each structure lives in a single serialized record under a namespaced key. Operations decode the
whole record, transform it in memory and write the whole record back; there is no partial update.
Two overlapping cycles on the same key resolve as last-writer-wins.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Generic, TypeVar

from kv_structures.errors import DeserializationError
from kv_structures.protocols.primitive import KeyValuePrimitive
from kv_structures.utils.compound import StructureKind, namespace_key

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Mutation = Callable[[T], tuple[T | None, R]]
"""A transformation returning the value to write back (None to skip the write) and the caller's result."""


class BaseStructure(ABC, Generic[T]):
    """Base class for a composite structure encoded into one primitive record."""

    kind: StructureKind

    primitive: KeyValuePrimitive

    def __init__(self, primitive: KeyValuePrimitive) -> None:
        self.primitive = primitive

    @abstractmethod
    def empty(self) -> T:
        """The canonical empty value of the structure."""

    @abstractmethod
    def decode(self, raw: str) -> T:
        """Decode a stored record, raising DeserializationError if it is not a valid encoding."""

    @abstractmethod
    def encode(self, value: T) -> str:
        """Encode a value into the record stored in the primitive."""

    def load(self, key: str) -> T:
        """Load the structure stored at `key`.

        A missing record yields the empty value. A record that cannot be decoded also yields the
        empty value, and the next write replaces it, so corrupted records are silently dropped.
        """
        raw: str | None = self.primitive.get(namespace_key(kind=self.kind, key=key))

        if raw is None:
            return self.empty()

        try:
            return self.decode(raw)
        except DeserializationError as e:
            logger.warning("Treating undecodable %s record %r as empty: %s", self.kind.name.lower(), key, e)
            return self.empty()

    def store(self, key: str, value: T) -> None:
        """Overwrite the record at `key` with the encoding of `value`."""
        self.primitive.put(namespace_key(kind=self.kind, key=key), self.encode(value))

    def mutate(self, key: str, mutation: "Mutation[T, R]") -> R:
        """Run one load-mutate-store cycle and return the mutation's result."""
        updated, result = mutation(self.load(key))

        if updated is not None:
            self.store(key=key, value=updated)

        return result
