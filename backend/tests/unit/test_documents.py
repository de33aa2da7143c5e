import pytest

from stallmates.infra.documents import (
    DocumentExists,
    DocumentMissing,
    DocumentStoreError,
    MemoryDocumentStore,
    WriteConflict,
    array_remove,
    array_union,
    increment,
    where,
)


@pytest.mark.asyncio
async def test_create_is_create_if_absent():
    store = MemoryDocumentStore()
    first = await store.create("users", "u1", {"displayName": "Ann"})
    assert first.version == 1
    with pytest.raises(DocumentExists):
        await store.create("users", "u1", {"displayName": "Other"})
    doc = await store.get("users", "u1")
    assert doc.data == {"displayName": "Ann"}


@pytest.mark.asyncio
async def test_update_checks_expected_version():
    store = MemoryDocumentStore()
    created = await store.create("games", "g1", {"turn": "a"})
    updated = await store.update("games", "g1", {"turn": "b"}, expected_version=created.version)
    assert updated.version == 2
    with pytest.raises(WriteConflict):
        await store.update("games", "g1", {"turn": "a"}, expected_version=created.version)
    with pytest.raises(DocumentMissing):
        await store.update("games", "missing", {"turn": "a"})


@pytest.mark.asyncio
async def test_transforms_apply_against_current_value():
    store = MemoryDocumentStore()
    await store.create("users", "u1", {"friends": ["a"], "visits": 1})
    await store.update("users", "u1", {"friends": array_union("b", "a"), "visits": increment(2)})
    doc = await store.update("users", "u1", {"friends": array_remove("a")})
    assert doc.get("friends") == ["b"]
    assert doc.get("visits") == 3


@pytest.mark.asyncio
async def test_reads_are_copies():
    store = MemoryDocumentStore()
    await store.create("users", "u1", {"friends": ["a"]})
    doc = await store.get("users", "u1")
    doc.data["friends"].append("mutated")
    again = await store.get("users", "u1")
    assert again.get("friends") == ["a"]


def test_in_filter_is_limited_to_ten_values():
    where("userId", "in", [str(i) for i in range(10)])
    with pytest.raises(DocumentStoreError):
        where("userId", "in", [str(i) for i in range(11)])
    with pytest.raises(DocumentStoreError):
        where("userId", "in", [])


@pytest.mark.asyncio
async def test_ordered_query_with_cursor():
    store = MemoryDocumentStore()
    for idx in range(6):
        await store.create("tweets", f"t{idx}", {"authorId": "a", "createdAt": float(idx)})
    first = await store.query("tweets", [where("authorId", "==", "a")], order_by="createdAt", descending=True, limit=3)
    assert [doc.id for doc in first] == ["t5", "t4", "t3"]
    last = first[-1]
    rest = await store.query(
        "tweets",
        [where("authorId", "==", "a")],
        order_by="createdAt",
        descending=True,
        limit=3,
        start_after=(last.get("createdAt"), last.id),
    )
    assert [doc.id for doc in rest] == ["t2", "t1", "t0"]


@pytest.mark.asyncio
async def test_range_filters_for_prefix_search():
    store = MemoryDocumentStore()
    for name in ("Alice", "Alfred", "Bob"):
        await store.create("users", name.lower(), {"displayName": name})
    docs = await store.query(
        "users",
        [where("displayName", ">=", "Al"), where("displayName", "<=", "Al\uf8ff")],
        order_by="displayName",
    )
    assert [doc.id for doc in docs] == ["alfred", "alice"]


@pytest.mark.asyncio
async def test_get_many_spans_more_than_one_in_chunk():
    store = MemoryDocumentStore()
    ids = [f"u{idx:02d}" for idx in range(23)]
    for doc_id in ids:
        await store.create("users", doc_id, {"n": doc_id})
    docs = await store.get_many("users", list(reversed(ids)) + ["missing"])
    assert [doc.id for doc in docs] == list(reversed(ids))


@pytest.mark.asyncio
async def test_batch_is_all_or_nothing():
    store = MemoryDocumentStore()
    await store.create("users", "a", {"friends": []})
    batch = store.batch()
    batch.update("users", "a", {"friends": array_union("b")})
    batch.update("users", "b", {"friends": array_union("a")})
    with pytest.raises(DocumentMissing):
        await batch.commit()
    doc = await store.get("users", "a")
    assert doc.get("friends") == []
    assert doc.version == 1


@pytest.mark.asyncio
async def test_batch_unsupported_store_refuses():
    class NoBatchStore(MemoryDocumentStore):
        supports_batch = False

    with pytest.raises(DocumentStoreError):
        NoBatchStore().batch()
