import pytest

from stallmates.domain.common.errors import AlreadyFriends, InvalidInput, PermissionDenied, RateLimited, Stale
from stallmates.domain.identity.models import UserProfile
from stallmates.domain.social import policy
from stallmates.domain.social.models import FriendRequest, RequestStatus
from stallmates.settings import settings


def _request(status=RequestStatus.PENDING):
    return FriendRequest(id="r1", sender_id="alice", receiver_id="bob", status=status, created_at=1.0)


@pytest.mark.asyncio
async def test_enforce_request_limits_minute(monkeypatch):
    monkeypatch.setattr(settings, "friend_requests_per_minute", 3)
    for _ in range(3):
        await policy.enforce_request_limits("alice")
    with pytest.raises(RateLimited) as exc_info:
        await policy.enforce_request_limits("alice")
    assert exc_info.value.reason == "per_minute"


def test_guard_not_self():
    with pytest.raises(InvalidInput):
        policy.guard_not_self("abc", "abc")
    policy.guard_not_self("abc", "def")


def test_already_friends():
    profile = UserProfile(id="alice", email="alice@example.com", display_name="Alice", friends=["bob"])
    with pytest.raises(AlreadyFriends):
        policy.ensure_not_already_friends(profile, "bob")
    policy.ensure_not_already_friends(profile, "carol")


def test_request_guards():
    request = _request()
    policy.guard_receiver(request, "bob")
    policy.guard_sender(request, "alice")
    policy.guard_pending(request)
    with pytest.raises(PermissionDenied):
        policy.guard_receiver(request, "alice")
    with pytest.raises(PermissionDenied):
        policy.guard_sender(request, "bob")
    with pytest.raises(Stale):
        policy.guard_pending(_request(RequestStatus.ACCEPTED))
