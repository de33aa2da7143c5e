"""Domain models for game invites and word-guessing games."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from stallmates.infra.documents import Document

INVITES = "gameInvites"
GAMES = "wordleGames"

WORD_LENGTH = 5
GAME_TYPE_WORDLE = "wordle"


class InviteStatus(str, Enum):
	PENDING = "pending"
	ACCEPTED = "accepted"
	REJECTED = "rejected"
	CANCELLED = "cancelled"


class GameStatus(str, Enum):
	ACTIVE = "active"
	COMPLETED = "completed"


class LetterResult(str, Enum):
	EXACT = "exact"
	PRESENT = "present"
	ABSENT = "absent"


@dataclass(slots=True)
class GameInvite:
	id: str
	sender_id: str
	receiver_id: str
	status: InviteStatus
	created_at: float
	game_type: str = GAME_TYPE_WORDLE
	game_id: Optional[str] = None
	updated_at: Optional[float] = None
	sender_name: Optional[str] = None

	@classmethod
	def from_document(cls, doc: Document) -> "GameInvite":
		return cls(
			id=doc.id,
			sender_id=str(doc.get("senderId")),
			receiver_id=str(doc.get("receiverId")),
			status=InviteStatus(doc.get("status", "pending")),
			created_at=float(doc.get("createdAt") or 0.0),
			game_type=str(doc.get("gameType") or GAME_TYPE_WORDLE),
			game_id=doc.get("gameId"),
			updated_at=doc.get("updatedAt"),
			sender_name=doc.get("senderName"),
		)

	def to_document(self) -> Dict[str, Any]:
		return {
			"senderId": self.sender_id,
			"senderName": self.sender_name,
			"receiverId": self.receiver_id,
			"gameType": self.game_type,
			"status": self.status.value,
			"gameId": self.game_id,
			"createdAt": self.created_at,
			"updatedAt": self.updated_at,
		}

	def involves(self, user_id: str) -> bool:
		return user_id in (self.sender_id, self.receiver_id)

	def other(self, user_id: str) -> str:
		return self.receiver_id if user_id == self.sender_id else self.sender_id

	def to_payload(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"sender_id": self.sender_id,
			"sender_name": self.sender_name,
			"receiver_id": self.receiver_id,
			"game_type": self.game_type,
			"status": self.status.value,
			"game_id": self.game_id,
			"created_at": self.created_at,
		}


@dataclass(slots=True)
class GameState:
	"""Shared game document.

	``current_player`` is always player1 or player2; ``status`` moves from
	active to completed exactly once, on a correct guess.
	"""

	id: str
	word: str
	player1: str
	player2: str
	current_player: str
	player1_guesses: List[str] = field(default_factory=list)
	player2_guesses: List[str] = field(default_factory=list)
	status: GameStatus = GameStatus.ACTIVE
	winner: Optional[str] = None
	created_at: Optional[float] = None
	version: int = 1

	@classmethod
	def from_document(cls, doc: Document) -> "GameState":
		return cls(
			id=doc.id,
			word=str(doc.get("word") or ""),
			player1=str(doc.get("player1")),
			player2=str(doc.get("player2")),
			current_player=str(doc.get("currentPlayer")),
			player1_guesses=list(doc.get("player1Guesses") or []),
			player2_guesses=list(doc.get("player2Guesses") or []),
			status=GameStatus(doc.get("status", "active")),
			winner=doc.get("winner"),
			created_at=doc.get("createdAt"),
			version=doc.version,
		)

	def to_document(self) -> Dict[str, Any]:
		return {
			"word": self.word,
			"player1": self.player1,
			"player2": self.player2,
			"currentPlayer": self.current_player,
			"player1Guesses": list(self.player1_guesses),
			"player2Guesses": list(self.player2_guesses),
			"status": self.status.value,
			"winner": self.winner,
			"createdAt": self.created_at,
		}

	def is_player(self, user_id: str) -> bool:
		return user_id in (self.player1, self.player2)

	def opponent_of(self, user_id: str) -> str:
		return self.player2 if user_id == self.player1 else self.player1

	def guesses_field(self, user_id: str) -> str:
		return "player1Guesses" if user_id == self.player1 else "player2Guesses"

	def guesses_for(self, user_id: str) -> List[str]:
		return self.player1_guesses if user_id == self.player1 else self.player2_guesses

	@property
	def completed(self) -> bool:
		return self.status is GameStatus.COMPLETED
