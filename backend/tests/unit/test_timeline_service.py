import itertools

import pytest
import pytest_asyncio

from stallmates.domain.common import clock
from stallmates.domain.common.errors import InvalidInput, NotFound, PermissionDenied
from stallmates.domain.timeline import service
from stallmates.domain.timeline.models import ACTIVITY, POSTS


@pytest.fixture
def ticking_clock(monkeypatch):
    ticks = itertools.count(1_700_000_000)
    monkeypatch.setattr(clock, "now_ts", lambda: float(next(ticks)))


@pytest_asyncio.fixture
async def friends(make_user):
    await make_user("alice", friends=["bob"])
    await make_user("bob", friends=["alice"])
    await make_user("carol")


class CountingStore:
    """Counts reads on the wrapped store's query and get_many."""

    def __init__(self, monkeypatch, store):
        self.calls = 0
        original_query = store.query
        original_many = store.get_many

        async def query(*args, **kwargs):
            self.calls += 1
            return await original_query(*args, **kwargs)

        async def get_many(*args, **kwargs):
            self.calls += 1
            return await original_many(*args, **kwargs)

        monkeypatch.setattr(store, "query", query)
        monkeypatch.setattr(store, "get_many", get_many)


@pytest.mark.asyncio
async def test_create_post_validates_length():
    with pytest.raises(InvalidInput):
        await service.create_post("alice", "Alice", "   ")
    with pytest.raises(InvalidInput):
        await service.create_post("alice", "Alice", "x" * 281)
    post = await service.create_post("alice", "Alice", "x" * 280)
    assert post.likes == 0


@pytest.mark.asyncio
async def test_create_post_writes_activity(memory_store):
    post = await service.create_post("alice", "Alice", "hello")
    assert await memory_store.get(POSTS, post.id) is not None
    activity = await service.recent_activity(["alice"])
    assert [entry.post_id for entry in activity] == [post.id]


@pytest.mark.asyncio
async def test_fresh_cache_is_served_without_store_reads(friends, memory_store, monkeypatch, ticking_clock):
    await service.create_post("bob", "Bob", "first")
    page = await service.get_timeline("alice", ["bob"])
    assert [post.content for post in page.posts] == ["first"]
    assert not page.from_cache

    counter = CountingStore(monkeypatch, memory_store)
    cached = await service.get_timeline("alice", ["bob"])
    assert cached.from_cache
    assert [post.content for post in cached.posts] == ["first"]
    assert counter.calls == 0


@pytest.mark.asyncio
async def test_friend_set_change_invalidates_cache(friends, memory_store, monkeypatch, ticking_clock):
    await service.create_post("bob", "Bob", "first")
    await service.get_timeline("alice", ["bob"])

    counter = CountingStore(monkeypatch, memory_store)
    page = await service.get_timeline("alice", ["bob", "carol"])
    assert not page.from_cache
    assert counter.calls > 0


@pytest.mark.asyncio
async def test_refresh_merges_new_activity(friends, ticking_clock):
    await service.create_post("bob", "Bob", "first")
    await service.get_timeline("alice", ["bob"])
    await service.create_post("bob", "Bob", "second")

    stale = await service.get_timeline("alice", ["bob"])
    assert [post.content for post in stale.posts] == ["first"]

    refreshed = await service.get_timeline("alice", ["bob"], refresh=True)
    assert [post.content for post in refreshed.posts] == ["second", "first"]


@pytest.mark.asyncio
async def test_cursor_pages_through_older_posts(friends, ticking_clock):
    for idx in range(7):
        await service.create_post("bob", "Bob", f"post {idx}")

    first = await service.get_timeline("alice", ["bob"])
    assert [post.content for post in first.posts] == [f"post {idx}" for idx in range(6, 1, -1)]
    assert first.next_cursor

    second = await service.get_timeline("alice", ["bob"], cursor=first.next_cursor)
    assert [post.content for post in second.posts] == ["post 1", "post 0"]
    assert second.next_cursor is None


@pytest.mark.asyncio
async def test_bad_cursor_is_rejected(friends):
    with pytest.raises(InvalidInput):
        await service.get_timeline("alice", ["bob"], cursor="not-a-cursor")


@pytest.mark.asyncio
async def test_toggle_like_requires_friendship(friends):
    post = await service.create_post("bob", "Bob", "like me")
    with pytest.raises(PermissionDenied):
        await service.toggle_like(post.id, "carol")

    liked = await service.toggle_like(post.id, "alice")
    assert liked.likes == 1
    assert liked.liked_by == ["alice"]
    unliked = await service.toggle_like(post.id, "alice")
    assert unliked.likes == 0
    assert unliked.liked_by == []


@pytest.mark.asyncio
async def test_read_rule(friends):
    post = await service.create_post("bob", "Bob", "friends only")
    assert (await service.get_post(post.id, "alice")).id == post.id
    assert (await service.get_post(post.id, "bob")).id == post.id
    with pytest.raises(PermissionDenied):
        await service.get_post(post.id, "carol")
    with pytest.raises(NotFound):
        await service.get_post("missing", "alice")


@pytest.mark.asyncio
async def test_delete_post_removes_activity(friends, memory_store):
    post = await service.create_post("bob", "Bob", "short lived")
    with pytest.raises(PermissionDenied):
        await service.delete_post(post.id, "alice")
    await service.delete_post(post.id, "bob")
    assert await memory_store.get(POSTS, post.id) is None
    assert await memory_store.query(ACTIVITY, []) == []
