from kv_structures.structures.base import BaseStructure
from kv_structures.utils.compound import StructureKind
from kv_structures.utils.serialization import dump_to_json, load_from_json, verify_list, verify_strings


def resolve_index(index: int, length: int) -> int:
    """Resolve a possibly negative index against a sequence length."""
    return length + index if index < 0 else index


class ListStructure(BaseStructure[list[str]]):
    """Ordered lists of strings."""

    kind = StructureKind.LIST

    def empty(self) -> list[str]:
        return []

    def decode(self, raw: str) -> list[str]:
        return verify_strings(verify_list(load_from_json(json_str=raw)))

    def encode(self, value: list[str]) -> str:
        return dump_to_json(value)

    def lpush(self, key: str, *values: str) -> int:
        """Insert `values` at the head, keeping their argument order, and return the new length."""

        def _push(items: list[str]) -> tuple[list[str], int]:
            updated = [*values, *items]
            return updated, len(updated)

        return self.mutate(key, _push)

    def rpush(self, key: str, *values: str) -> int:
        """Append `values` at the tail and return the new length."""

        def _push(items: list[str]) -> tuple[list[str], int]:
            updated = [*items, *values]
            return updated, len(updated)

        return self.mutate(key, _push)

    def lpop(self, key: str) -> str | None:
        def _pop(items: list[str]) -> tuple[list[str] | None, str | None]:
            if not items:
                return None, None
            return items[1:], items[0]

        return self.mutate(key, _pop)

    def rpop(self, key: str) -> str | None:
        def _pop(items: list[str]) -> tuple[list[str] | None, str | None]:
            if not items:
                return None, None
            return items[:-1], items[-1]

        return self.mutate(key, _pop)

    def llen(self, key: str) -> int:
        return len(self.load(key))

    def lrange(self, key: str, start: int, stop: int) -> list[str]:
        """Return the elements from `start` to `stop`, both inclusive.

        A negative `stop` counts from the end of the list (-1 is the last element).
        """
        items: list[str] = self.load(key)

        if stop < 0:
            stop = len(items) + stop

        return items[start : stop + 1]

    def lindex(self, key: str, index: int) -> str | None:
        items: list[str] = self.load(key)
        index = resolve_index(index=index, length=len(items))

        if 0 <= index < len(items):
            return items[index]

        return None

    def lset(self, key: str, index: int, value: str) -> bool:
        """Overwrite the element at `index`, returning False if the index is out of range."""

        def _set(items: list[str]) -> tuple[list[str] | None, bool]:
            position = resolve_index(index=index, length=len(items))
            if not 0 <= position < len(items):
                return None, False
            items[position] = value
            return items, True

        return self.mutate(key, _set)
