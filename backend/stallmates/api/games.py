"""REST API surface for game invites and turn-based games."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from stallmates.api.errors import map_error
from stallmates.domain.common.errors import NotFound, PermissionDenied, StallmatesError
from stallmates.domain.games import engine, invites
from stallmates.domain.games.coordinator import GameCoordinator
from stallmates.domain.games.schemas import (
	CoordinatorOut,
	GameViewOut,
	GuessRequest,
	InviteOut,
	InviteSend,
)
from stallmates.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter()


@router.post("/games/invites", response_model=InviteOut, status_code=status.HTTP_201_CREATED)
async def send_invite(
	payload: InviteSend,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> InviteOut:
	try:
		invite = await invites.send_invite(auth_user.id, payload.to_user_id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return InviteOut.from_invite(invite)


@router.get("/games/invites/incoming", response_model=List[InviteOut])
async def incoming_invites(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[InviteOut]:
	return [InviteOut.from_invite(invite) for invite in await invites.pending_received(auth_user.id)]


@router.get("/games/invites/outgoing", response_model=List[InviteOut])
async def outgoing_invites(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[InviteOut]:
	return [InviteOut.from_invite(invite) for invite in await invites.pending_sent(auth_user.id)]


@router.post("/games/invites/{invite_id}/accept", response_model=InviteOut)
async def accept_invite(
	invite_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> InviteOut:
	try:
		invite = await invites.accept_invite(auth_user.id, invite_id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return InviteOut.from_invite(invite)


@router.post("/games/invites/{invite_id}/reject", response_model=InviteOut)
async def reject_invite(
	invite_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> InviteOut:
	try:
		invite = await invites.reject_invite(auth_user.id, invite_id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return InviteOut.from_invite(invite)


@router.post("/games/invites/{invite_id}/cancel", response_model=InviteOut)
async def cancel_invite(
	invite_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> InviteOut:
	try:
		invite = await invites.cancel_invite(auth_user.id, invite_id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return InviteOut.from_invite(invite)


@router.post("/games/coordinator/tick", response_model=CoordinatorOut)
async def coordinator_tick(auth_user: AuthenticatedUser = Depends(get_current_user)) -> CoordinatorOut:
	"""One coordinator scan for clients that poll instead of holding a socket."""
	coordinator = GameCoordinator(auth_user.id)
	try:
		view = await coordinator.tick()
	finally:
		await coordinator.close()
	return CoordinatorOut(**view)


@router.post("/games/{game_id}/open", response_model=GameViewOut)
async def open_game(
	game_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> GameViewOut:
	try:
		invite = await invites.find_by_game_id(game_id)
		if invite is None:
			raise NotFound("game_missing")
		if not invite.involves(auth_user.id):
			raise PermissionDenied("not_a_player")
		state = await engine.initialize_game(game_id, auth_user.id, invite.other(auth_user.id))
	except StallmatesError as exc:
		raise map_error(exc) from None
	return GameViewOut(**engine.game_view(state, auth_user.id))


@router.get("/games/{game_id}", response_model=GameViewOut)
async def get_game(
	game_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> GameViewOut:
	try:
		state = await engine.require_game(game_id)
		if not state.is_player(auth_user.id):
			raise PermissionDenied("not_a_player")
	except StallmatesError as exc:
		raise map_error(exc) from None
	return GameViewOut(**engine.game_view(state, auth_user.id))


@router.post("/games/{game_id}/guess", response_model=GameViewOut)
async def submit_guess(
	game_id: str,
	payload: GuessRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> GameViewOut:
	try:
		state = await engine.submit_guess(game_id, auth_user.id, payload.guess)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return GameViewOut(**engine.game_view(state, auth_user.id))


@router.post("/games/{game_id}/close")
async def close_game(
	game_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dict:
	removed = await invites.close_game(auth_user.id, game_id)
	return {"ok": True, "removed": removed}
