"""
Firestore-backed record store.

One collection per store. The document id is derived from the storage key
("<partition>_<range>"), so a create-only put doubles as the uniqueness check
on (partition, range). The firebase_admin client is synchronous: every call
runs in the default executor so the event loop never blocks on Firestore.
"""

from functools import partial
from typing import Any, Callable, List, Optional
import asyncio
import logging

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from dymek.core.exceptions import ConflictError, DymekError, NotFoundError, StoreUnavailableError
from dymek.db.record_store import VERSION_FIELD, Filters, Item, RecordStore
from dymek.utils.firestore_helpers import apply_filters, where_filter

logger = logging.getLogger(__name__)

# Sorts after every geohash character: [prefix, prefix + "~") is a prefix range
PREFIX_END = "~"


class FirestoreRecordStore(RecordStore):
    """RecordStore over a Firestore collection."""

    def __init__(self, db: firestore.Client, name: str, partition_key: str, range_key: Optional[str] = None):
        super().__init__(name, partition_key, range_key)
        self.db = db
        self.collection = db.collection(name)

    def document_id(self, partition: Any, range_value: Any = None) -> str:
        if range_value is None:
            return str(partition)
        return f"{partition}_{range_value}"

    async def _run(self, func: Callable, *args, **kwargs):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(func, *args, **kwargs))
        except DymekError:
            raise
        except google_exceptions.AlreadyExists as e:
            raise ConflictError(f"{self.name}: document already exists") from e
        except google_exceptions.NotFound as e:
            raise NotFoundError(f"{self.name}: document not found") from e
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore call on '{self.name}' failed: {e}", exc_info=True)
            raise StoreUnavailableError(f"{self.name}: store unavailable ({e})") from e

    # Synchronous bodies, executed in the executor

    def _put_sync(self, item: Item, create_only: bool) -> Item:
        doc_ref = self.collection.document(self.document_id(*self.key_of(item)))
        if create_only:
            doc_ref.create(item)
        else:
            doc_ref.set(item)
        return dict(item)

    def _get_sync(self, doc_id: str) -> Optional[Item]:
        snapshot = self.collection.document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def _update_sync(self, doc_id: str, fields: Item, expected_version: Optional[int]) -> Item:
        doc_ref = self.collection.document(doc_id)

        if expected_version is None:
            doc_ref.update(fields)
            return doc_ref.get().to_dict()

        @firestore.transactional
        def apply(transaction) -> Item:
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(f"{self.name}: document {doc_id} not found")
            current = snapshot.to_dict()
            if current.get(VERSION_FIELD) != expected_version:
                raise ConflictError(
                    f"{self.name}: document {doc_id} is at version "
                    f"{current.get(VERSION_FIELD)}, expected {expected_version}"
                )
            transaction.update(doc_ref, fields)
            current.update(fields)
            return current

        return apply(self.db.transaction())

    def _stream_sync(self, query) -> List[Item]:
        return [doc.to_dict() for doc in query.stream()]

    # RecordStore

    async def put(self, item: Item, create_only: bool = False) -> Item:
        return await self._run(self._put_sync, item, create_only)

    async def get(self, partition: Any, range_value: Any = None) -> Optional[Item]:
        return await self._run(self._get_sync, self.document_id(partition, range_value))

    async def update(
        self,
        partition: Any,
        range_value: Any,
        fields: Item,
        expected_version: Optional[int] = None,
    ) -> Item:
        doc_id = self.document_id(partition, range_value)
        return await self._run(self._update_sync, doc_id, fields, expected_version)

    async def query_by_partition(self, partition: Any, filters: Filters = None) -> List[Item]:
        query = where_filter(self.collection, self.partition_key, "==", partition)
        items = await self._run(self._stream_sync, apply_filters(query, filters))
        return self.sort_items(items)

    async def query_by_partition_prefix(self, prefix: str, filters: Filters = None) -> List[Item]:
        query = where_filter(self.collection, self.partition_key, ">=", prefix)
        query = where_filter(query, self.partition_key, "<", prefix + PREFIX_END)
        items = await self._run(self._stream_sync, apply_filters(query, filters))
        return self.sort_by_key(items)

    async def query_by_index(self, field: str, value: Any, filters: Filters = None) -> List[Item]:
        query = where_filter(self.collection, field, "==", value)
        items = await self._run(self._stream_sync, apply_filters(query, filters))
        return self.sort_items(items)

    async def scan_all(self, filters: Filters = None) -> List[Item]:
        return await self._run(self._stream_sync, apply_filters(self.collection, filters))

    async def ping(self) -> bool:
        await self._run(self._stream_sync, self.collection.limit(1))
        return True
