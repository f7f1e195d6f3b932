"""JSON bulk import and export at the payload boundary.

Reading and writing files is left to the caller; these helpers work on JSON text, async chunk streams
and plain dictionaries.
"""

import logging
from collections.abc import AsyncIterable, Sequence
from typing import Any

from pydantic import TypeAdapter, ValidationError
from pydantic_core import from_json, to_json

from kv_structures.errors import DeserializationError, InvalidKeyError
from kv_structures.protocols.primitive import KeyValuePair, KeyValuePrimitive
from kv_structures.utils.compound import is_reserved_key

logger = logging.getLogger(__name__)

DEFAULT_IMPORT_BATCH_SIZE = 5000
DEFAULT_ID_FIELD = "id"

Payload = list[Any] | dict[str, Any]

_PAYLOAD_ADAPTER: TypeAdapter[Payload] = TypeAdapter(Payload)


def parse_payload(payload: str | bytes) -> Payload:
    """Parse JSON text that must hold an array or an object."""
    try:
        return _PAYLOAD_ADAPTER.validate_json(payload)
    except ValidationError as e:
        msg = f"Import payload is not a JSON array or object: {e.error_count()} validation error(s)"
        raise DeserializationError(msg) from e


def _stringify_id(value: Any) -> str:
    if isinstance(value, str):
        return value
    return to_json(value).decode("utf-8")


def payload_to_pairs(data: Payload, prefix: str = "", id_field: str = DEFAULT_ID_FIELD) -> list[KeyValuePair]:
    """Turn a parsed payload into records.

    Array items are keyed by `prefix` plus their `id_field` value, or plus their index when the item
    has no such field. Object members are keyed by `prefix` plus their name. Every value is stored as
    compact JSON.

    Raises:
        InvalidKeyError: If a resulting key falls in the reserved composite namespace.
    """
    pairs: list[KeyValuePair] = []

    if isinstance(data, list):
        for index, item in enumerate(data):
            identifier = _stringify_id(item[id_field]) if isinstance(item, dict) and id_field in item else str(index)
            pairs.append((prefix + identifier, to_json(item).decode("utf-8")))
    else:
        pairs.extend((prefix + name, to_json(value).decode("utf-8")) for name, value in data.items())

    for key, _ in pairs:
        if is_reserved_key(key):
            raise InvalidKeyError(key=key, operation="import_json")

    return pairs


def write_pairs(primitive: KeyValuePrimitive, pairs: Sequence[KeyValuePair], batch_size: int = DEFAULT_IMPORT_BATCH_SIZE) -> int:
    """Write records through `put_batch` in chunks of `batch_size` and return how many were written."""
    for start in range(0, len(pairs), batch_size):
        primitive.put_batch(pairs[start : start + batch_size])
        logger.debug("Imported records %d to %d of %d", start, min(start + batch_size, len(pairs)), len(pairs))

    return len(pairs)


async def read_chunks(chunks: AsyncIterable[str | bytes]) -> bytes:
    """Buffer an async stream of text or byte chunks into one payload."""
    buffer = bytearray()

    async for chunk in chunks:
        buffer.extend(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)

    return bytes(buffer)


def decode_export_value(raw: str) -> Any:
    """Decode a stored value as JSON, falling back to the raw string."""
    try:
        return from_json(raw)
    except ValueError:
        return raw
