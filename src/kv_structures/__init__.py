from kv_structures.cursor import ScanIterator, ScanPage
from kv_structures.protocols.primitive import KeyValuePrimitive, PrimitiveStats
from kv_structures.pubsub import PubSubBroker
from kv_structures.statistics import StoreStats
from kv_structures.store import StructuredStore
from kv_structures.transaction import Transaction

__all__ = [
    "KeyValuePrimitive",
    "PrimitiveStats",
    "PubSubBroker",
    "ScanIterator",
    "ScanPage",
    "StoreStats",
    "StructuredStore",
    "Transaction",
]
