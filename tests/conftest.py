import logging

import pytest

from kv_structures.store import StructuredStore
from kv_structures.stores.memory import MemoryStore

logging.basicConfig(level=logging.INFO)


@pytest.fixture
def primitive() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def store(primitive: MemoryStore) -> StructuredStore:
    return StructuredStore(primitive=primitive)
