import json
from typing import Any

from kv_structures.errors import DeserializationError, SerializationError


def dump_to_json(obj: Any) -> str:
    try:
        return json.dumps(obj, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        msg: str = f"Failed to serialize object to JSON: {e}"
        raise SerializationError(msg) from e


def load_from_json(json_str: str) -> Any:
    try:
        return json.loads(json_str)
    except (json.JSONDecodeError, TypeError) as e:
        msg: str = f"Failed to deserialize JSON string: {e}"
        raise DeserializationError(msg) from e


def verify_list(obj: Any) -> list[Any]:
    if not isinstance(obj, list):
        msg = "Deserialized object is not a list"
        raise DeserializationError(msg)

    return obj


def verify_dict(obj: Any) -> dict[str, Any]:
    if not isinstance(obj, dict):
        msg = "Deserialized object is not a dictionary"
        raise DeserializationError(msg)

    return obj


def verify_strings(items: list[Any]) -> list[str]:
    if not all(isinstance(item, str) for item in items):
        msg = "Deserialized list contains non-string items"
        raise DeserializationError(msg)

    return items
