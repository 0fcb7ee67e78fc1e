"""InMemoryRecordStore and the RecordStore contract."""

import pytest

from dymek.db.memory_store import InMemoryRecordStore
from dymek.db.record_store import RecordStore


def item(geo_hash: str, created_at: str) -> dict:
    return {"id": f"{geo_hash}-{created_at}", "geo_hash": geo_hash, "created_at": created_at, "type": "DOG_POOP"}


@pytest.fixture
def store():
    return InMemoryRecordStore("markers", "geo_hash", "created_at")


@pytest.mark.asyncio
async def test_prefix_query_is_sorted_by_partition_then_range(store):
    await store.put(item("u3qcp", "2024-05-01T12:00:00.000000+00:00"))
    await store.put(item("u3qcn", "2024-05-01T12:00:02.000000+00:00"))
    await store.put(item("u3qcn", "2024-05-01T12:00:01.000000+00:00"))
    await store.put(item("u3r00", "2024-05-01T12:00:00.000000+00:00"))

    items = await store.query_by_partition_prefix("u3q")

    assert [(i["geo_hash"], i["created_at"][17:19]) for i in items] == [
        ("u3qcn", "01"),
        ("u3qcn", "02"),
        ("u3qcp", "00"),
    ]


@pytest.mark.asyncio
async def test_prefix_query_applies_filters(store):
    await store.put(item("u3qcn", "2024-05-01T12:00:00.000000+00:00"))
    await store.put(dict(item("u3qcp", "2024-05-01T12:00:00.000000+00:00"), type="CHIMNEY_SMOKE"))

    items = await store.query_by_partition_prefix("u3", {"type": ["CHIMNEY_SMOKE"]})

    assert [i["geo_hash"] for i in items] == ["u3qcp"]


@pytest.mark.asyncio
async def test_prefix_query_returns_copies(store):
    await store.put(item("u3qcn", "2024-05-01T12:00:00.000000+00:00"))

    (found,) = await store.query_by_partition_prefix("u")
    found["type"] = "ILLEGAL_PARKING"

    assert (await store.get("u3qcn", "2024-05-01T12:00:00.000000+00:00"))["type"] == "DOG_POOP"


def test_store_without_ping_cannot_be_instantiated():
    class WithoutPing(RecordStore):
        put = InMemoryRecordStore.put
        get = InMemoryRecordStore.get
        update = InMemoryRecordStore.update
        query_by_partition = InMemoryRecordStore.query_by_partition
        query_by_partition_prefix = InMemoryRecordStore.query_by_partition_prefix
        query_by_index = InMemoryRecordStore.query_by_index
        scan_all = InMemoryRecordStore.scan_all

    with pytest.raises(TypeError):
        WithoutPing("markers", "geo_hash", "created_at")
