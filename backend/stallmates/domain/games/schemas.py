"""Pydantic schemas for game invites, guesses and game views."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from stallmates.domain.games.models import GameInvite


class InviteSend(BaseModel):
	to_user_id: str = Field(..., min_length=1)


class InviteOut(BaseModel):
	id: str
	sender_id: str
	sender_name: Optional[str] = None
	receiver_id: str
	game_type: str
	status: Literal["pending", "accepted", "rejected", "cancelled"]
	game_id: Optional[str] = None
	created_at: float

	@classmethod
	def from_invite(cls, invite: GameInvite) -> "InviteOut":
		return cls(**invite.to_payload())


class GuessRequest(BaseModel):
	guess: str = Field(..., min_length=1, max_length=16)


class GuessRow(BaseModel):
	guess: str
	feedback: List[Literal["exact", "present", "absent"]]


class GameViewOut(BaseModel):
	game_id: str
	status: Literal["active", "completed"]
	player1: str
	player2: str
	current_player: str
	your_turn: bool
	winner: Optional[str] = None
	player1_guesses: List[GuessRow] = Field(default_factory=list)
	player2_guesses: List[GuessRow] = Field(default_factory=list)
	word: Optional[str] = None


class ActiveGameOut(BaseModel):
	game_id: str
	invite_id: str
	opponent_id: str


class CoordinatorOut(BaseModel):
	user_id: str
	state: Literal["idle", "incoming", "active"]
	game: Optional[ActiveGameOut] = None
	incoming: Optional[InviteOut] = None
	send_status: Optional[Literal["sending", "sent", "error"]] = None
	send_error: Optional[str] = None
