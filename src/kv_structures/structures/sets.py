from kv_structures.structures.base import BaseStructure
from kv_structures.utils.compound import StructureKind
from kv_structures.utils.serialization import dump_to_json, load_from_json, verify_list, verify_strings


class SetStructure(BaseStructure[set[str]]):
    """Unordered sets of unique strings."""

    kind = StructureKind.SET

    def empty(self) -> set[str]:
        return set()

    def decode(self, raw: str) -> set[str]:
        return set(verify_strings(verify_list(load_from_json(json_str=raw))))

    def encode(self, value: set[str]) -> str:
        return dump_to_json(sorted(value))

    def sadd(self, key: str, *members: str) -> int:
        """Add members and return how many were not already present."""

        def _add(current: set[str]) -> tuple[set[str] | None, int]:
            added = [member for member in dict.fromkeys(members) if member not in current]
            if not added:
                return None, 0
            return current.union(added), len(added)

        return self.mutate(key, _add)

    def srem(self, key: str, *members: str) -> bool:
        """Remove members and return whether at least one was present."""

        def _remove(current: set[str]) -> tuple[set[str] | None, bool]:
            remaining = current.difference(members)
            if len(remaining) == len(current):
                return None, False
            return remaining, True

        return self.mutate(key, _remove)

    def sismember(self, key: str, member: str) -> bool:
        return member in self.load(key)

    def smembers(self, key: str) -> list[str]:
        return list(self.load(key))

    def scard(self, key: str) -> int:
        return len(self.load(key))
