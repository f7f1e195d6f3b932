import math
from collections.abc import Mapping

from kv_structures.errors import DeserializationError
from kv_structures.structures.base import BaseStructure
from kv_structures.utils.compound import StructureKind
from kv_structures.utils.serialization import dump_to_json, load_from_json, verify_dict

Number = int | float


def parse_number(raw: str | None) -> Number:
    """Parse a stored field as a number; missing, non-numeric and NaN values count as 0."""
    if raw is None:
        return 0

    try:
        return int(raw)
    except ValueError:
        pass

    try:
        number = float(raw)
    except ValueError:
        return 0

    return 0 if math.isnan(number) else number


def normalize_number(number: Number) -> Number:
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


class HashStructure(BaseStructure[dict[str, str]]):
    """Field-to-string mappings, rewritten whole on every field mutation."""

    kind = StructureKind.HASH

    def empty(self) -> dict[str, str]:
        return {}

    def decode(self, raw: str) -> dict[str, str]:
        fields = verify_dict(load_from_json(json_str=raw))

        if not all(isinstance(value, str) for value in fields.values()):
            msg = "Deserialized hash contains non-string values"
            raise DeserializationError(msg)

        return fields

    def encode(self, value: dict[str, str]) -> str:
        return dump_to_json(value)

    def hset(self, key: str, field: str, value: str) -> int:
        """Set a field, returning 1 if it was created and 0 if it replaced a value."""

        def _set(fields: dict[str, str]) -> tuple[dict[str, str], int]:
            created = field not in fields
            fields[field] = value
            return fields, int(created)

        return self.mutate(key, _set)

    def hmset(self, key: str, mapping: Mapping[str, str]) -> None:
        def _merge(fields: dict[str, str]) -> tuple[dict[str, str], None]:
            fields.update(mapping)
            return fields, None

        self.mutate(key, _merge)

    def hget(self, key: str, field: str) -> str | None:
        return self.load(key).get(field)

    def hgetall(self, key: str) -> dict[str, str]:
        return self.load(key)

    def hdel(self, key: str, *fields: str) -> int:
        """Delete fields and return how many existed."""

        def _delete(current: dict[str, str]) -> tuple[dict[str, str] | None, int]:
            removed = [field for field in dict.fromkeys(fields) if current.pop(field, None) is not None]
            if not removed:
                return None, 0
            return current, len(removed)

        return self.mutate(key, _delete)

    def hexists(self, key: str, field: str) -> bool:
        return field in self.load(key)

    def hkeys(self, key: str) -> list[str]:
        return list(self.load(key))

    def hvals(self, key: str) -> list[str]:
        return list(self.load(key).values())

    def hlen(self, key: str) -> int:
        return len(self.load(key))

    def hincrby(self, key: str, field: str, delta: Number = 1) -> Number:
        """Add `delta` to a numeric field and return the new value.

        A missing or non-numeric field is treated as 0. The result is stored as its string form.
        """

        def _increment(fields: dict[str, str]) -> tuple[dict[str, str], Number]:
            result = normalize_number(parse_number(fields.get(field)) + delta)
            fields[field] = str(result)
            return fields, result

        return self.mutate(key, _increment)
