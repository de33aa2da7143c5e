import pytest
from argon2 import PasswordHasher

from stallmates.domain.common.errors import (
    AlreadyExists,
    InvalidInput,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
)
from stallmates.domain.identity import service
from stallmates.domain.identity.models import CREDENTIALS, USERS
from stallmates.domain.presence import service as presence
from stallmates.domain.presence.models import ClientSession
from stallmates.infra import jwt as jwt_helper
from stallmates.infra import password


@pytest.mark.asyncio
async def test_register_and_sign_in():
    profile = await service.register("Ann@Example.com", "hunter22", "Ann")
    assert profile.email == "ann@example.com"
    assert profile.friends == []

    result = await service.sign_in("ann@example.com", "hunter22")
    assert result.profile.id == profile.id
    claims = jwt_helper.decode_access(result.access_token)
    assert claims.user_id == profile.id
    assert claims.session_id == result.session_id
    assert claims.display_name == "Ann"
    assert await presence.is_online(profile.id)

    await service.sign_out(ClientSession(profile.id, result.session_id))
    assert not await presence.is_online(profile.id)


@pytest.mark.asyncio
async def test_register_rejects_duplicate_email():
    await service.register("ann@example.com", "hunter22", "Ann")
    with pytest.raises(AlreadyExists) as exc_info:
        await service.register("ANN@example.com", "other-pass", "Ann Two")
    assert exc_info.value.reason == "email_taken"


@pytest.mark.asyncio
async def test_register_validates_input():
    with pytest.raises(InvalidInput):
        await service.register("ann@example.com", "short", "Ann")
    with pytest.raises(InvalidInput):
        await service.register("ann@example.com", "hunter22", "   ")


@pytest.mark.asyncio
async def test_sign_in_rejects_bad_credentials():
    await service.register("ann@example.com", "hunter22", "Ann")
    with pytest.raises(NotAuthenticated):
        await service.sign_in("ann@example.com", "wrong-pass")
    with pytest.raises(NotAuthenticated):
        await service.sign_in("nobody@example.com", "hunter22")


@pytest.mark.asyncio
async def test_sign_in_recreates_missing_profile(memory_store):
    profile = await service.register("ann@example.com", "hunter22", "Ann")
    await memory_store.delete(USERS, profile.id)
    result = await service.sign_in("ann@example.com", "hunter22")
    assert result.profile.display_name == "Ann"
    assert await service.find_profile(profile.id) is not None


@pytest.mark.asyncio
async def test_get_profile_missing():
    with pytest.raises(NotFound):
        await service.get_profile("nobody")


@pytest.mark.asyncio
async def test_non_owner_may_only_touch_friends(make_user):
    await make_user("alice")
    await make_user("bob")
    updated = await service.update_profile("bob", "alice", {"friends": ["bob"]})
    assert updated.friends == ["bob"]
    with pytest.raises(PermissionDenied):
        await service.update_profile("bob", "alice", {"displayName": "Mallory"})
    with pytest.raises(PermissionDenied):
        await service.update_profile("bob", "alice", {"friends": [], "displayName": "Mallory"})


@pytest.mark.asyncio
async def test_rename(make_user):
    await make_user("alice")
    profile = await service.rename("alice", "  Alice B  ")
    assert profile.display_name == "Alice B"


@pytest.mark.asyncio
async def test_get_profiles_chunks_large_sets(make_user):
    ids = [f"user{idx:02d}" for idx in range(15)]
    for uid in ids:
        await make_user(uid)
    profiles = await service.get_profiles(ids)
    assert [profile.id for profile in profiles] == ids


@pytest.mark.asyncio
async def test_sign_in_upgrades_outdated_hash(memory_store, monkeypatch):
    monkeypatch.setattr(password, "hasher", PasswordHasher(time_cost=1, memory_cost=8 * 1024, parallelism=1))
    await service.register("ann@example.com", "hunter22", "Ann")
    before = (await memory_store.get(CREDENTIALS, "ann@example.com")).get("passwordHash")

    monkeypatch.setattr(password, "hasher", PasswordHasher(time_cost=2, memory_cost=8 * 1024, parallelism=1))
    await service.sign_in("ann@example.com", "hunter22")
    after = (await memory_store.get(CREDENTIALS, "ann@example.com")).get("passwordHash")
    assert after != before
    assert not password.needs_rehash(after)
    await service.sign_in("ann@example.com", "hunter22")
