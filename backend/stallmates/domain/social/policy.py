"""Policy helpers and guard checks for friend requests & friendships."""

from __future__ import annotations

from typing import Optional

from stallmates.domain.common.errors import (
	AlreadyFriends,
	DuplicateRequest,
	InvalidInput,
	PermissionDenied,
	RateLimited,
	Stale,
)
from stallmates.domain.identity.models import UserProfile
from stallmates.domain.social.models import FRIEND_REQUESTS, FriendRequest, RequestStatus
from stallmates.infra import rate_limit
from stallmates.infra.documents import get_store, where
from stallmates.obs import metrics as obs_metrics
from stallmates.settings import settings


async def enforce_request_limits(user_id: str) -> None:
	if not await rate_limit.allow("friend_request", user_id, limit=settings.friend_requests_per_minute):
		obs_metrics.inc_rate_limited("friend_request")
		raise RateLimited("per_minute")


def guard_not_self(user_id: str, target_id: str) -> None:
	if str(user_id) == str(target_id):
		raise InvalidInput("self_request")


def ensure_not_already_friends(sender: UserProfile, target_id: str) -> None:
	if sender.is_friend(target_id):
		raise AlreadyFriends()


async def get_pending_request(sender_id: str, receiver_id: str) -> Optional[FriendRequest]:
	docs = await get_store().query(
		FRIEND_REQUESTS,
		[
			where("senderId", "==", sender_id),
			where("receiverId", "==", receiver_id),
			where("status", "==", RequestStatus.PENDING.value),
		],
		limit=1,
	)
	return FriendRequest.from_document(docs[0]) if docs else None


async def ensure_no_pending_between(user_a: str, user_b: str) -> None:
	# best-effort: two concurrent senders can both pass this check
	if await get_pending_request(user_a, user_b) or await get_pending_request(user_b, user_a):
		raise DuplicateRequest()


def guard_receiver(request: FriendRequest, user_id: str) -> None:
	if request.receiver_id != user_id:
		raise PermissionDenied("not_recipient")


def guard_sender(request: FriendRequest, user_id: str) -> None:
	if request.sender_id != user_id:
		raise PermissionDenied("not_sender")


def guard_pending(request: FriendRequest) -> None:
	if request.status is not RequestStatus.PENDING:
		raise Stale("not_pending")


async def has_accepted_request(user_a: str, user_b: str) -> bool:
	for sender_id, receiver_id in ((user_a, user_b), (user_b, user_a)):
		docs = await get_store().query(
			FRIEND_REQUESTS,
			[
				where("senderId", "==", sender_id),
				where("receiverId", "==", receiver_id),
				where("status", "==", RequestStatus.ACCEPTED.value),
			],
			limit=1,
		)
		if docs:
			return True
	return False


async def guard_keep_consent(actor_id: str, counterpart_id: str, *, actor_lists: bool, counterpart_lists: bool) -> None:
	"""Keeping a friendship only repairs an edge both users agreed to.

	The counterpart listing the actor is consent on its own. An accepted request
	counts only while one side still holds the edge, so a fully removed
	friendship cannot be brought back this way.
	"""
	if counterpart_lists:
		return
	if actor_lists and await has_accepted_request(actor_id, counterpart_id):
		return
	raise PermissionDenied("no_accepted_request")
