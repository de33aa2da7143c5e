"""Domain models for friend requests and friendships."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from stallmates.infra.documents import Document

FRIEND_REQUESTS = "friendRequests"

SEARCH_LIMIT = 20


class RequestStatus(str, Enum):
	"""Friend request lifecycle."""

	PENDING = "pending"
	ACCEPTED = "accepted"
	REJECTED = "rejected"
	CANCELLED = "cancelled"


class FriendshipOutcome(str, Enum):
	"""How a two-sided friendship write ended up."""

	COMPLETE = "complete"
	REPAIRED = "repaired"
	PARTIAL = "partial"


@dataclass(slots=True)
class FriendRequest:
	id: str
	sender_id: str
	receiver_id: str
	status: RequestStatus
	created_at: float
	updated_at: Optional[float] = None

	@classmethod
	def from_document(cls, doc: Document) -> "FriendRequest":
		return cls(
			id=doc.id,
			sender_id=str(doc.get("senderId")),
			receiver_id=str(doc.get("receiverId")),
			status=RequestStatus(doc.get("status", "pending")),
			created_at=float(doc.get("createdAt") or 0.0),
			updated_at=doc.get("updatedAt"),
		)

	def to_document(self) -> Dict[str, Any]:
		return {
			"senderId": self.sender_id,
			"receiverId": self.receiver_id,
			"status": self.status.value,
			"createdAt": self.created_at,
			"updatedAt": self.updated_at,
		}

	def other(self, user_id: str) -> str:
		return self.receiver_id if user_id == self.sender_id else self.sender_id


@dataclass(slots=True)
class FriendshipResult:
	"""Result of a friendship mutation.

	``residual`` lists the profiles that still disagree with ``friends`` after
	the corrective pass; it is empty unless the outcome is partial.
	"""

	user_a: str
	user_b: str
	friends: bool
	outcome: FriendshipOutcome
	residual: Tuple[str, ...] = ()

	@property
	def ok(self) -> bool:
		return self.outcome is not FriendshipOutcome.PARTIAL
