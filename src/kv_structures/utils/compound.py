"""Utilities for namespacing composite records inside the primitive key space."""

from enum import Enum

RESERVED_MARKER = "\x00"


class StructureKind(str, Enum):
    """The composite structures that share the primitive store with plain records."""

    LIST = "L"
    SET = "S"
    HASH = "H"
    SORTED_SET = "Z"

    @property
    def tag(self) -> str:
        """The reserved prefix under which records of this kind are stored."""
        return f"{RESERVED_MARKER}{self.value}:"


def namespace_key(kind: StructureKind, key: str) -> str:
    return kind.tag + key


def is_reserved_key(key: str) -> bool:
    """Whether the key belongs to the reserved composite namespace."""
    return key.startswith(RESERVED_MARKER)
