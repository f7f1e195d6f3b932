from kv_structures.stores.memory.store import MemoryStore

__all__ = ["MemoryStore"]
