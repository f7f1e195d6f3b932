from kv_structures.protocols.primitive import KeyValuePair, KeyValuePrimitive, PrimitiveStats

__all__ = ["KeyValuePair", "KeyValuePrimitive", "PrimitiveStats"]
