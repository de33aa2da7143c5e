"""Identity and profile records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from stallmates.infra.documents import Document

USERS = "users"
CREDENTIALS = "credentials"

MIN_PASSWORD_LENGTH = 6
MAX_DISPLAY_NAME_LENGTH = 50


@dataclass(slots=True)
class UserProfile:
	id: str
	email: str
	display_name: str
	friends: List[str] = field(default_factory=list)
	created_at: Optional[float] = None

	@classmethod
	def from_document(cls, doc: Document) -> "UserProfile":
		return cls(
			id=str(doc.get("uid") or doc.id),
			email=str(doc.get("email") or ""),
			display_name=str(doc.get("displayName") or ""),
			friends=[str(item) for item in (doc.get("friends") or [])],
			created_at=doc.get("createdAt"),
		)

	def to_document(self) -> Dict[str, Any]:
		return {
			"uid": self.id,
			"email": self.email,
			"displayName": self.display_name,
			"friends": list(self.friends),
			"createdAt": self.created_at,
		}

	def is_friend(self, other_id: str) -> bool:
		return other_id in self.friends


@dataclass(slots=True)
class SignInResult:
	profile: UserProfile
	access_token: str
	session_id: str
