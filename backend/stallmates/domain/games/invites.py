"""Game invite lifecycle: pending -> accepted | rejected | cancelled."""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from stallmates.domain.common import clock
from stallmates.domain.common.errors import (
	DuplicateRequest,
	InvalidInput,
	NotFound,
	PermissionDenied,
	Stale,
)
from stallmates.domain.games import sockets
from stallmates.domain.games.models import GAMES, INVITES, GameInvite, GameStatus, InviteStatus
from stallmates.domain.identity import service as identity
from stallmates.domain.presence import service as presence
from stallmates.infra.documents import WriteConflict, get_store, where
from stallmates.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def new_game_id() -> str:
	return f"wordle_{uuid.uuid4().hex}"


async def _load(invite_id: str) -> tuple[GameInvite, int]:
	doc = await get_store().get(INVITES, invite_id)
	if doc is None:
		raise NotFound("invite_missing")
	return GameInvite.from_document(doc), doc.version


async def get_invite(invite_id: str) -> GameInvite:
	invite, _ = await _load(invite_id)
	return invite


async def _query(field_name: str, user_id: str, status: InviteStatus) -> List[GameInvite]:
	docs = await get_store().query(
		INVITES,
		[where(field_name, "==", user_id), where("status", "==", status.value)],
	)
	invites = [GameInvite.from_document(doc) for doc in docs]
	invites.sort(key=lambda invite: (invite.created_at, invite.id))
	return invites


async def pending_received(user_id: str) -> List[GameInvite]:
	return await _query("receiverId", user_id, InviteStatus.PENDING)


async def pending_sent(user_id: str) -> List[GameInvite]:
	return await _query("senderId", user_id, InviteStatus.PENDING)


async def accepted_for(user_id: str) -> List[GameInvite]:
	"""Accepted invites where the user is sender, then those where they are receiver."""
	return await _query("senderId", user_id, InviteStatus.ACCEPTED) + await _query(
		"receiverId", user_id, InviteStatus.ACCEPTED
	)


async def earliest_pending_for(user_id: str) -> Optional[GameInvite]:
	pending = await pending_received(user_id)
	return pending[0] if pending else None


async def find_by_game_id(game_id: str) -> Optional[GameInvite]:
	docs = await get_store().query(INVITES, [where("gameId", "==", game_id)], limit=1)
	return GameInvite.from_document(docs[0]) if docs else None


async def _notify(invite: GameInvite, event: str) -> None:
	payload = invite.to_payload()
	await sockets.emit_invite(invite.sender_id, event, payload)
	await sockets.emit_invite(invite.receiver_id, event, payload)
	await sockets.notify(invite.sender_id, invite.receiver_id)


async def send_invite(sender_id: str, receiver_id: str) -> GameInvite:
	receiver_id = (receiver_id or "").strip()
	if not receiver_id:
		raise InvalidInput("missing_target")
	if sender_id == receiver_id:
		raise InvalidInput("self_invite")
	await identity.get_profile(receiver_id)
	sender = await identity.find_profile(sender_id)
	if not await presence.is_available(sender_id):
		obs_metrics.inc_game_invite("rejected_unavailable")
		raise PermissionDenied("sender_unavailable")
	if not await presence.is_available(receiver_id):
		obs_metrics.inc_game_invite("rejected_unavailable")
		raise PermissionDenied("receiver_unavailable")
	if any(invite.receiver_id == receiver_id for invite in await pending_sent(sender_id)):
		raise DuplicateRequest("invite_pending")
	now = clock.now_ts()
	invite = GameInvite(
		id=str(uuid.uuid4()),
		sender_id=sender_id,
		receiver_id=receiver_id,
		status=InviteStatus.PENDING,
		created_at=now,
		updated_at=now,
		sender_name=sender.display_name if sender else None,
	)
	await get_store().create(INVITES, invite.id, invite.to_document())
	obs_metrics.inc_game_invite("sent")
	logger.info("game invite sent", extra={"invite_id": invite.id, "user_id": sender_id, "to": receiver_id})
	await _notify(invite, "invite:new")
	return invite


async def _transition(invite: GameInvite, version: int, status: InviteStatus, **fields) -> GameInvite:
	changes = {"status": status.value, "updatedAt": clock.now_ts(), **fields}
	try:
		await get_store().update(INVITES, invite.id, changes, expected_version=version)
	except WriteConflict:
		raise Stale("invite_changed") from None
	invite.status = status
	invite.updated_at = changes["updatedAt"]
	invite.game_id = fields.get("gameId", invite.game_id)
	obs_metrics.inc_game_invite(status.value)
	await _notify(invite, "invite:update")
	return invite


async def accept_invite(user_id: str, invite_id: str) -> GameInvite:
	"""Accept and assign a fresh game id; the game document is created lazily."""
	invite, version = await _load(invite_id)
	if invite.receiver_id != user_id:
		raise PermissionDenied("not_recipient")
	if invite.status is not InviteStatus.PENDING:
		raise Stale("not_pending")
	return await _transition(invite, version, InviteStatus.ACCEPTED, gameId=new_game_id())


async def reject_invite(user_id: str, invite_id: str) -> GameInvite:
	invite, version = await _load(invite_id)
	if invite.receiver_id != user_id:
		raise PermissionDenied("not_recipient")
	if invite.status is not InviteStatus.PENDING:
		raise Stale("not_pending")
	return await _transition(invite, version, InviteStatus.REJECTED)


async def cancel_invite(user_id: str, invite_id: str) -> GameInvite:
	invite, version = await _load(invite_id)
	if invite.sender_id != user_id:
		raise PermissionDenied("not_sender")
	if invite.status is not InviteStatus.PENDING:
		raise Stale("not_pending")
	return await _transition(invite, version, InviteStatus.CANCELLED)


async def collect_if_stale(invite: GameInvite) -> bool:
	"""Delete an accepted invite whose game has completed."""
	if invite.status is not InviteStatus.ACCEPTED or not invite.game_id:
		return False
	game = await get_store().get(GAMES, invite.game_id)
	if game is None or game.get("status") != GameStatus.COMPLETED.value:
		return False
	if await get_store().delete(INVITES, invite.id):
		obs_metrics.inc_stale_invite_collected()
		logger.info("stale invite collected", extra={"invite_id": invite.id, "game_id": invite.game_id})
	return True


async def close_game(user_id: str, game_id: str) -> int:
	"""Delete the invites referencing ``game_id`` for either participant."""
	docs = await get_store().query(INVITES, [where("gameId", "==", game_id)])
	removed = 0
	others: List[str] = []
	for doc in docs:
		invite = GameInvite.from_document(doc)
		if not invite.involves(user_id):
			continue
		if await get_store().delete(INVITES, invite.id):
			removed += 1
			others.append(invite.other(user_id))
	if removed:
		obs_metrics.inc_game_invite("closed")
		await sockets.notify(user_id, *others)
		for other in others:
			await sockets.emit_invite(other, "game:closed", {"game_id": game_id, "by": user_id})
	return removed
