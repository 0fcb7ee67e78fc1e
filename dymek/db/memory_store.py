"""
In-memory record store.

Used when USE_MOCK_DB is set (local development without Firebase credentials)
and by the test suite. Items are deep-copied on the way in and out so callers
never share state with the store. Every operation runs without awaiting
between its read and its write, which makes each one atomic on the event loop.
"""

from copy import deepcopy
from typing import Any, Dict, List, Optional
import logging

from dymek.core.exceptions import ConflictError, NotFoundError
from dymek.db.record_store import VERSION_FIELD, Filters, Item, RecordStore, matches

logger = logging.getLogger(__name__)


class InMemoryRecordStore(RecordStore):

    def __init__(self, name: str, partition_key: str, range_key: Optional[str] = None):
        super().__init__(name, partition_key, range_key)
        self._items: Dict[tuple, Item] = {}

    def __len__(self) -> int:
        return len(self._items)

    async def put(self, item: Item, create_only: bool = False) -> Item:
        key = self.key_of(item)
        if create_only and key in self._items:
            raise ConflictError(f"{self.name}: item {key} already exists")
        self._items[key] = deepcopy(item)
        return deepcopy(item)

    async def get(self, partition: Any, range_value: Any = None) -> Optional[Item]:
        item = self._items.get((partition, range_value))
        return deepcopy(item) if item is not None else None

    async def update(
        self,
        partition: Any,
        range_value: Any,
        fields: Item,
        expected_version: Optional[int] = None,
    ) -> Item:
        key = (partition, range_value)
        stored = self._items.get(key)
        if stored is None:
            raise NotFoundError(f"{self.name}: item {key} not found")
        if expected_version is not None and stored.get(VERSION_FIELD) != expected_version:
            raise ConflictError(
                f"{self.name}: item {key} is at version {stored.get(VERSION_FIELD)}, "
                f"expected {expected_version}"
            )
        stored.update(deepcopy(fields))
        return deepcopy(stored)

    async def query_by_partition(self, partition: Any, filters: Filters = None) -> List[Item]:
        items = [
            deepcopy(item)
            for (item_partition, _), item in self._items.items()
            if item_partition == partition and matches(item, filters)
        ]
        return self.sort_items(items)

    async def query_by_partition_prefix(self, prefix: str, filters: Filters = None) -> List[Item]:
        items = [
            deepcopy(item)
            for (item_partition, _), item in self._items.items()
            if str(item_partition).startswith(prefix) and matches(item, filters)
        ]
        return self.sort_by_key(items)

    async def query_by_index(self, field: str, value: Any, filters: Filters = None) -> List[Item]:
        items = [
            deepcopy(item)
            for item in self._items.values()
            if item.get(field) == value and matches(item, filters)
        ]
        return self.sort_items(items)

    async def scan_all(self, filters: Filters = None) -> List[Item]:
        return [deepcopy(item) for item in self._items.values() if matches(item, filters)]

    async def ping(self) -> bool:
        return True
