from collections import OrderedDict
from typing import Generic, Hashable, Optional, TypeVar

KeyType = TypeVar("KeyType", bound=Hashable)
ValueType = TypeVar("ValueType")


class LRUCache(Generic[KeyType, ValueType]):
    """Bounded mapping that evicts the least recently used entry."""

    def __init__(self, *, max_size: int):
        self.cache: "OrderedDict[KeyType, ValueType]" = OrderedDict()
        self.max_size = max_size

    def get(self, key: KeyType) -> Optional[ValueType]:
        if key not in self.cache:
            return None
        self.cache.move_to_end(key)
        return self.cache[key]

    def put(self, key: KeyType, value: ValueType) -> None:
        self.cache[key] = value
        self.cache.move_to_end(key)
        if len(self.cache) > self.max_size:
            self.cache.popitem(last=False)

    def discard(self, key: KeyType) -> None:
        self.cache.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self.cache

    def __len__(self) -> int:
        return len(self.cache)
