from kv_structures.structures.base import BaseStructure
from kv_structures.structures.hashes import HashStructure
from kv_structures.structures.lists import ListStructure
from kv_structures.structures.sets import SetStructure
from kv_structures.structures.sorted_sets import SortedSetStructure

__all__ = ["BaseStructure", "HashStructure", "ListStructure", "SetStructure", "SortedSetStructure"]
