"""
Record store contract.

A record store is one table/collection of plain dict items addressed by a
partition key and an optional range key. The stores above it (markers,
reports, users) only ever talk to this interface; Firestore and the in-memory
store used for local development and tests both implement it.

Contract:
- All operations are coroutines.
- Filters are equality maps: {field: value}. A list/tuple/set value means
  "field is one of these values".
- Results of query_by_partition/query_by_index are sorted by the range key
  (ascending) when the store has one. query_by_partition_prefix results are
  sorted by partition, then range key.
- Persistence failures raise StoreUnavailableError, duplicate keys on a
  create-only put and version mismatches raise ConflictError.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Item = Dict[str, Any]
Filters = Optional[Dict[str, Any]]

VERSION_FIELD = "version"


class RecordStore(ABC):
    """Abstract key-value record store."""

    def __init__(self, name: str, partition_key: str, range_key: Optional[str] = None):
        self.name = name
        self.partition_key = partition_key
        self.range_key = range_key

    def key_of(self, item: Item) -> tuple:
        """Storage key (partition, range) of an item."""
        partition = item.get(self.partition_key)
        if partition is None:
            raise KeyError(f"{self.name}: item has no {self.partition_key}")
        if self.range_key is None:
            return partition, None
        range_value = item.get(self.range_key)
        if range_value is None:
            raise KeyError(f"{self.name}: item has no {self.range_key}")
        return partition, range_value

    def sort_items(self, items: List[Item]) -> List[Item]:
        if self.range_key is None:
            return items
        return sorted(items, key=lambda item: item.get(self.range_key))

    def sort_by_key(self, items: List[Item]) -> List[Item]:
        return sorted(
            items,
            key=lambda item: (item.get(self.partition_key), item.get(self.range_key) if self.range_key else ""),
        )

    @abstractmethod
    async def put(self, item: Item, create_only: bool = False) -> Item:
        """Write a whole item. With create_only an existing key is a ConflictError."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, partition: Any, range_value: Any = None) -> Optional[Item]:
        raise NotImplementedError

    @abstractmethod
    async def update(
        self,
        partition: Any,
        range_value: Any,
        fields: Item,
        expected_version: Optional[int] = None,
    ) -> Item:
        """
        Atomically set the given fields on an existing item and return it.

        With expected_version the write only happens if the stored
        VERSION_FIELD equals it (ConflictError otherwise).
        """
        raise NotImplementedError

    @abstractmethod
    async def query_by_partition(self, partition: Any, filters: Filters = None) -> List[Item]:
        raise NotImplementedError

    @abstractmethod
    async def query_by_partition_prefix(self, prefix: str, filters: Filters = None) -> List[Item]:
        """Every item whose (string) partition key starts with prefix."""
        raise NotImplementedError

    @abstractmethod
    async def query_by_index(self, field: str, value: Any, filters: Filters = None) -> List[Item]:
        """Lookup on a secondary attribute (id, user_id, report_id, ...)."""
        raise NotImplementedError

    @abstractmethod
    async def scan_all(self, filters: Filters = None) -> List[Item]:
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Cheap connectivity check used by the health endpoint."""
        raise NotImplementedError


def matches(item: Item, filters: Filters) -> bool:
    """Evaluate an equality filter map against an item in memory."""
    if not filters:
        return True
    for field, expected in filters.items():
        actual = item.get(field)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True
