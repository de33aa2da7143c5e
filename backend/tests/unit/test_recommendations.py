import random

import pytest

from stallmates.domain.identity import service as identity
from stallmates.domain.identity.models import USERS
from stallmates.domain.social import recommendations
from stallmates.infra.documents import array_union, get_store


async def _seed_graph(make_user):
    friend_lists = {
        "f1": ["me", "c1", "c2", "c3"],
        "f2": ["me", "c1", "c2"],
        "f3": ["me", "c1", "c4"],
        "f4": ["me", "c5", "c6", "c7", "c8", "f1"],
        "f5": ["me", "c2", "c8"],
    }
    await make_user("me", friends=list(friend_lists))
    for uid, friends in friend_lists.items():
        await make_user(uid, friends=friends)
    for idx in range(1, 9):
        await make_user(f"c{idx}")


def test_rank_candidates_orders_by_score_then_id():
    ranked = recommendations.rank_candidates(
        "me",
        ["f1", "f2"],
        {"f1": ["me", "b", "a", "f2"], "f2": ["b", "c", "a"]},
        limit=5,
    )
    assert ranked == [("a", 2), ("b", 2), ("c", 1)]


def test_sample_is_bounded_and_seedable():
    friends = [f"f{idx}" for idx in range(30)]
    first = recommendations.sample_friends(friends, 10, random.Random(7))
    second = recommendations.sample_friends(friends, 10, random.Random(7))
    assert len(first) == 10
    assert first == second
    assert recommendations.sample_friends(friends[:4], 10) == sorted(friends[:4])


@pytest.mark.asyncio
async def test_recommendations_are_deterministic_for_small_friend_sets(make_user):
    await _seed_graph(make_user)
    first = await recommendations.get_recommendations("me", refresh=True)
    second = await recommendations.get_recommendations("me", refresh=True)
    assert [(item.user_id, item.mutual_friends) for item in first] == [
        ("c1", 3),
        ("c2", 3),
        ("c8", 2),
        ("c3", 1),
        ("c4", 1),
    ]
    assert first == second


@pytest.mark.asyncio
async def test_cached_recommendations_skip_recompute(make_user, monkeypatch):
    await _seed_graph(make_user)
    computed = await recommendations.get_recommendations("me")

    async def explode(*args, **kwargs):
        raise AssertionError("recomputed despite a fresh cache")

    monkeypatch.setattr(recommendations, "compute", explode)
    assert await recommendations.get_recommendations("me") == computed


@pytest.mark.asyncio
async def test_friend_set_change_invalidates_cache(make_user):
    await _seed_graph(make_user)
    before = await recommendations.get_recommendations("me")
    assert "c1" in [item.user_id for item in before]

    await get_store().update(USERS, "me", {"friends": array_union("c1")})
    after = await recommendations.get_recommendations("me")
    assert "c1" not in [item.user_id for item in after]


@pytest.mark.asyncio
async def test_dismiss_only_touches_cached_list(make_user):
    await _seed_graph(make_user)
    await recommendations.get_recommendations("me")
    remaining = await recommendations.dismiss("me", "c1")
    assert "c1" not in [item.user_id for item in remaining]
    assert "c1" not in [item.user_id for item in await recommendations.get_recommendations("me")]
    assert (await identity.get_profile("me")).friends == ["f1", "f2", "f3", "f4", "f5"]


@pytest.mark.asyncio
async def test_no_friends_means_no_recommendations(make_user):
    await make_user("loner")
    assert await recommendations.get_recommendations("loner") == []
