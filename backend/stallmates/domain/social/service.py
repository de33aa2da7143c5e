"""Service layer for friend search, requests and the two-sided friends arrays.

The friends array lives on both profiles and the two writes are not one
transaction unless the store supports batches. Every mutation therefore
re-reads both sides afterwards, runs a corrective pass for residual
references and reports complete, repaired or partial.
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional, Sequence, Tuple

from stallmates.domain.common import access, clock
from stallmates.domain.common.errors import DuplicateRequest, InvalidInput, NotFound, PartialFailure
from stallmates.domain.identity import service as identity
from stallmates.domain.identity.models import USERS, UserProfile
from stallmates.domain.presence import service as presence
from stallmates.domain.social import audit, policy, recommendations, sockets
from stallmates.domain.social.models import (
	FRIEND_REQUESTS,
	SEARCH_LIMIT,
	FriendRequest,
	FriendshipOutcome,
	FriendshipResult,
	RequestStatus,
)
from stallmates.domain.social.schemas import (
	FriendRequestSummary,
	FriendSummary,
	FriendUpdatePayload,
	UserSearchResult,
)
from stallmates.infra.auth import AuthenticatedUser
from stallmates.infra.documents import (
	DocumentStoreError,
	array_remove,
	array_union,
	get_store,
	where,
)

logger = logging.getLogger(__name__)

PREFIX_SENTINEL = "\uf8ff"


def summarise(request: FriendRequest, profiles: Optional[Dict[str, UserProfile]] = None) -> FriendRequestSummary:
	profiles = profiles or {}
	sender = profiles.get(request.sender_id)
	receiver = profiles.get(request.receiver_id)
	return FriendRequestSummary(
		id=request.id,
		sender_id=request.sender_id,
		receiver_id=request.receiver_id,
		status=request.status.value,
		created_at=request.created_at,
		updated_at=request.updated_at,
		sender_display_name=sender.display_name if sender else None,
		receiver_display_name=receiver.display_name if receiver else None,
	)


async def _emit_request_update(request: FriendRequest) -> None:
	payload = summarise(request).model_dump(mode="json")
	await sockets.emit_request_update(request.sender_id, payload)
	await sockets.emit_request_update(request.receiver_id, payload)


async def _emit_friend_update_pair(user_a: str, user_b: str, status: str) -> None:
	payload_a = FriendUpdatePayload(user_id=user_a, friend_id=user_b, status=status).model_dump(mode="json")
	payload_b = FriendUpdatePayload(user_id=user_b, friend_id=user_a, status=status).model_dump(mode="json")
	await sockets.emit_friend_update(user_a, payload_a)
	await sockets.emit_friend_update(user_b, payload_b)


async def search(auth_user: AuthenticatedUser, term: str) -> List[UserSearchResult]:
	"""Exact email match first, then a display-name prefix scan."""
	term = (term or "").strip()
	if not term:
		return []
	store = get_store()
	docs = await store.query(USERS, [where("email", "==", term.lower())], limit=SEARCH_LIMIT)
	if not [doc for doc in docs if doc.id != auth_user.id]:
		docs = await store.query(
			USERS,
			[where("displayName", ">=", term), where("displayName", "<=", term + PREFIX_SENTINEL)],
			order_by="displayName",
			limit=SEARCH_LIMIT + 1,
		)
	me = await identity.find_profile(auth_user.id)
	friends = set(me.friends) if me else set()
	results: List[UserSearchResult] = []
	for doc in docs:
		if doc.id == auth_user.id:
			continue
		profile = UserProfile.from_document(doc)
		results.append(
			UserSearchResult(
				user_id=profile.id,
				display_name=profile.display_name,
				email=profile.email if profile.email == term.lower() else None,
				is_friend=profile.id in friends,
			)
		)
	return results[:SEARCH_LIMIT]


async def _load_request(request_id: str) -> FriendRequest:
	doc = await get_store().get(FRIEND_REQUESTS, request_id)
	if doc is None:
		raise NotFound("request_missing")
	return FriendRequest.from_document(doc)


async def get_request(request_id: str) -> FriendRequest:
	return await _load_request(request_id)


async def send_request(auth_user: AuthenticatedUser, to_user_id: str) -> FriendRequest:
	sender_id = str(auth_user.id)
	target_id = str(to_user_id or "").strip()
	if not target_id:
		raise InvalidInput("missing_target")

	policy.guard_not_self(sender_id, target_id)
	sender = await identity.get_profile(sender_id)
	await identity.get_profile(target_id)
	policy.ensure_not_already_friends(sender, target_id)
	try:
		await policy.ensure_no_pending_between(sender_id, target_id)
	except DuplicateRequest:
		audit.inc_request("send_rejected")
		raise
	await policy.enforce_request_limits(sender_id)

	now = clock.now_ts()
	request = FriendRequest(
		id=str(uuid.uuid4()),
		sender_id=sender_id,
		receiver_id=target_id,
		status=RequestStatus.PENDING,
		created_at=now,
		updated_at=now,
	)
	await get_store().create(FRIEND_REQUESTS, request.id, request.to_document())
	audit.inc_request("sent")
	await audit.log_request_event("sent", {"request_id": request.id, "from": sender_id, "to": target_id})
	await sockets.emit_request_new(target_id, summarise(request, {sender.id: sender}).model_dump(mode="json"))
	return request


async def _set_status(request: FriendRequest, status: RequestStatus) -> FriendRequest:
	now = clock.now_ts()
	await get_store().update(FRIEND_REQUESTS, request.id, {"status": status.value, "updatedAt": now})
	request.status = status
	request.updated_at = now
	return request


async def _cancel_other_pending(user_a: str, user_b: str, *, exclude: str) -> None:
	for sender_id, receiver_id in ((user_a, user_b), (user_b, user_a)):
		docs = await get_store().query(
			FRIEND_REQUESTS,
			[
				where("senderId", "==", sender_id),
				where("receiverId", "==", receiver_id),
				where("status", "==", RequestStatus.PENDING.value),
			],
		)
		for doc in docs:
			if doc.id != exclude:
				await _set_status(FriendRequest.from_document(doc), RequestStatus.CANCELLED)


async def accept_request(auth_user: AuthenticatedUser, request_id: str) -> FriendshipResult:
	request = await _load_request(request_id)
	policy.guard_receiver(request, auth_user.id)
	policy.guard_pending(request)
	sender_id, receiver_id = request.sender_id, request.receiver_id
	store = get_store()

	if store.supports_batch:
		access.guard_profile_update(receiver_id, sender_id, ["friends"])
		now = clock.now_ts()
		batch = store.batch()
		batch.update(FRIEND_REQUESTS, request.id, {"status": RequestStatus.ACCEPTED.value, "updatedAt": now})
		batch.update(USERS, sender_id, {"friends": array_union(receiver_id)})
		batch.update(USERS, receiver_id, {"friends": array_union(sender_id)})
		await batch.commit()
		request.status = RequestStatus.ACCEPTED
		request.updated_at = now
		result = FriendshipResult(sender_id, receiver_id, True, FriendshipOutcome.COMPLETE)
		audit.inc_friendship_write("accept", result.outcome.value)
	else:
		await _set_status(request, RequestStatus.ACCEPTED)
		result = await _write_pair(receiver_id, sender_id, receiver_id, add=True, operation="accept")

	await _cancel_other_pending(sender_id, receiver_id, exclude=request.id)
	audit.inc_request("accepted")
	await audit.log_request_event("accepted", {"request_id": request.id, "from": sender_id, "to": receiver_id})
	await audit.log_friend_event(
		"accepted",
		{"user_id": sender_id, "friend_id": receiver_id, "outcome": result.outcome.value},
	)
	await recommendations.invalidate(sender_id, receiver_id)
	await _emit_request_update(request)
	await _emit_friend_update_pair(sender_id, receiver_id, "accepted")
	return result


async def reject_request(auth_user: AuthenticatedUser, request_id: str) -> FriendRequest:
	request = await _load_request(request_id)
	policy.guard_receiver(request, auth_user.id)
	policy.guard_pending(request)
	await _set_status(request, RequestStatus.REJECTED)
	audit.inc_request("rejected")
	await audit.log_request_event("rejected", {"request_id": request.id, "by": auth_user.id})
	await _emit_request_update(request)
	return request


async def cancel_request(auth_user: AuthenticatedUser, request_id: str) -> FriendRequest:
	request = await _load_request(request_id)
	policy.guard_sender(request, auth_user.id)
	policy.guard_pending(request)
	await _set_status(request, RequestStatus.CANCELLED)
	audit.inc_request("cancelled")
	await audit.log_request_event("cancelled", {"request_id": request.id, "by": auth_user.id})
	await _emit_request_update(request)
	return request


async def _write_side(actor_id: str, owner_id: str, friend_id: str, *, add: bool) -> None:
	change = array_union(friend_id) if add else array_remove(friend_id)
	await identity.update_profile(actor_id, owner_id, {"friends": change})


async def _dual_write(actor_id: str, user_a: str, user_b: str, *, add: bool) -> None:
	"""Attempt both sides independently; raise PartialFailure if either failed."""
	committed: List[str] = []
	failed: List[str] = []
	for owner_id, friend_id in ((user_a, user_b), (user_b, user_a)):
		try:
			await _write_side(actor_id, owner_id, friend_id, add=add)
		except DocumentStoreError:
			logger.exception("friendship side write failed", extra={"owner": owner_id, "friend_id": friend_id})
			failed.append(owner_id)
		else:
			committed.append(owner_id)
	if failed:
		raise PartialFailure(committed=tuple(committed), failed=tuple(failed))


async def _read_sides(user_a: str, user_b: str) -> Tuple[bool, bool]:
	profile_a = await identity.find_profile(user_a)
	profile_b = await identity.find_profile(user_b)
	a_lists_b = bool(profile_a and profile_a.is_friend(user_b))
	b_lists_a = bool(profile_b and profile_b.is_friend(user_a))
	return a_lists_b, b_lists_a


async def _residual(user_a: str, user_b: str, *, desired: bool) -> List[str]:
	a_lists_b, b_lists_a = await _read_sides(user_a, user_b)
	residual: List[str] = []
	if a_lists_b != desired:
		residual.append(user_a)
	if b_lists_a != desired:
		residual.append(user_b)
	return residual


async def _corrective_pass(actor_id: str, user_a: str, user_b: str, owners: Sequence[str], *, desired: bool) -> List[str]:
	for owner_id in owners:
		friend_id = user_b if owner_id == user_a else user_a
		try:
			await _write_side(actor_id, owner_id, friend_id, add=desired)
		except DocumentStoreError:
			logger.exception("friendship repair write failed", extra={"owner": owner_id, "friend_id": friend_id})
	return await _residual(user_a, user_b, desired=desired)


async def _write_pair(actor_id: str, user_a: str, user_b: str, *, add: bool, operation: str) -> FriendshipResult:
	repaired = False
	try:
		await _dual_write(actor_id, user_a, user_b, add=add)
	except PartialFailure as exc:
		logger.warning(
			"friendship write partially applied",
			extra={"operation": operation, "committed": list(exc.committed), "failed": list(exc.failed)},
		)
		repaired = True
	residual = await _residual(user_a, user_b, desired=add)
	if residual:
		repaired = True
		residual = await _corrective_pass(actor_id, user_a, user_b, residual, desired=add)
	if residual:
		outcome = FriendshipOutcome.PARTIAL
	elif repaired:
		outcome = FriendshipOutcome.REPAIRED
	else:
		outcome = FriendshipOutcome.COMPLETE
	audit.inc_friendship_write(operation, outcome.value)
	if outcome is FriendshipOutcome.PARTIAL:
		logger.error(
			"friendship left asymmetric",
			extra={"operation": operation, "user_a": user_a, "user_b": user_b, "residual": residual},
		)
	return FriendshipResult(user_a, user_b, add, outcome, tuple(residual))


async def remove_friend(auth_user: AuthenticatedUser, friend_id: str) -> FriendshipResult:
	user_id = str(auth_user.id)
	friend_id = str(friend_id or "").strip()
	policy.guard_not_self(user_id, friend_id)
	await identity.get_profile(user_id)
	result = await _write_pair(user_id, user_id, friend_id, add=False, operation="remove")
	await audit.log_friend_event("removed", {"user_id": user_id, "friend_id": friend_id, "outcome": result.outcome.value})
	await recommendations.invalidate(user_id, friend_id)
	await _emit_friend_update_pair(user_id, friend_id, "none")
	return result


async def reconcile(user_a: str, user_b: str, keep: Optional[bool] = None, *, actor_id: Optional[str] = None) -> FriendshipResult:
	"""Make both profiles agree on whether the pair are friends.

	With ``keep`` unset, a symmetric state is left alone and an asymmetric one
	resolves toward removal. ``keep=True`` only restores a missing side when
	``user_b`` consented (see ``policy.guard_keep_consent``). Safe to run
	repeatedly.
	"""
	actor = actor_id or user_a
	a_lists_b, b_lists_a = await _read_sides(user_a, user_b)
	desired = keep if keep is not None else (a_lists_b and b_lists_a)
	residual = [
		owner for owner, listed in ((user_a, a_lists_b), (user_b, b_lists_a)) if listed != desired
	]
	if residual and desired:
		await policy.guard_keep_consent(user_a, user_b, actor_lists=a_lists_b, counterpart_lists=b_lists_a)
	if not residual:
		audit.inc_friendship_write("reconcile", FriendshipOutcome.COMPLETE.value)
		return FriendshipResult(user_a, user_b, desired, FriendshipOutcome.COMPLETE)
	residual = await _corrective_pass(actor, user_a, user_b, residual, desired=desired)
	outcome = FriendshipOutcome.PARTIAL if residual else FriendshipOutcome.REPAIRED
	audit.inc_friendship_write("reconcile", outcome.value)
	await audit.log_friend_event("reconciled", {"user_id": user_a, "friend_id": user_b, "outcome": outcome.value})
	if outcome is FriendshipOutcome.REPAIRED:
		await recommendations.invalidate(user_a, user_b)
		await _emit_friend_update_pair(user_a, user_b, "accepted" if desired else "none")
	return FriendshipResult(user_a, user_b, desired, outcome, tuple(residual))


async def list_friends(auth_user: AuthenticatedUser) -> List[FriendSummary]:
	me = await identity.find_profile(auth_user.id)
	if me is None or not me.friends:
		return []
	profiles = await identity.get_profiles(me.friends)
	records = await presence.get_records(profile.id for profile in profiles)
	rows = [
		FriendSummary(
			user_id=profile.id,
			display_name=profile.display_name,
			online=records[profile.id].is_online,
			available=records[profile.id].is_available,
		)
		for profile in profiles
	]
	rows.sort(key=lambda row: (not row.online, row.display_name.lower(), row.user_id))
	return rows


async def _list_pending(field_name: str, user_id: str) -> List[FriendRequestSummary]:
	docs = await get_store().query(
		FRIEND_REQUESTS,
		[where(field_name, "==", user_id), where("status", "==", RequestStatus.PENDING.value)],
	)
	requests = sorted((FriendRequest.from_document(doc) for doc in docs), key=lambda item: (item.created_at, item.id))
	ids = {request.sender_id for request in requests} | {request.receiver_id for request in requests}
	profiles = await identity.get_profile_map(ids)
	return [summarise(request, profiles) for request in requests]


async def list_incoming(auth_user: AuthenticatedUser) -> List[FriendRequestSummary]:
	return await _list_pending("receiverId", auth_user.id)


async def list_outgoing(auth_user: AuthenticatedUser) -> List[FriendRequestSummary]:
	return await _list_pending("senderId", auth_user.id)
