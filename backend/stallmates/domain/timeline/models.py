"""Posts and the activity log used for incremental timeline sync."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from stallmates.infra.documents import Document

POSTS = "tweets"
ACTIVITY = "tweetActivity"


@dataclass(slots=True)
class Post:
	id: str
	author_id: str
	author_name: str
	content: str
	created_at: float
	likes: int = 0
	liked_by: List[str] = field(default_factory=list)
	is_public: bool = True

	@classmethod
	def from_document(cls, doc: Document) -> "Post":
		liked_by = [str(uid) for uid in (doc.get("likedBy") or [])]
		return cls(
			id=doc.id,
			author_id=str(doc.get("authorId")),
			author_name=str(doc.get("authorName") or ""),
			content=str(doc.get("content") or ""),
			created_at=float(doc.get("createdAt") or 0.0),
			likes=int(doc.get("likes") or 0),
			liked_by=liked_by,
			is_public=bool(doc.get("isPublic", True)),
		)

	@classmethod
	def from_cache(cls, item: Dict[str, Any]) -> "Post":
		return cls(**item)

	def to_document(self) -> Dict[str, Any]:
		return {
			"authorId": self.author_id,
			"authorName": self.author_name,
			"content": self.content,
			"createdAt": self.created_at,
			"likes": self.likes,
			"likedBy": list(self.liked_by),
			"isPublic": self.is_public,
		}

	def to_cache(self) -> Dict[str, Any]:
		return asdict(self)


@dataclass(slots=True)
class Activity:
	id: str
	user_id: str
	post_id: str
	timestamp: float

	@classmethod
	def from_document(cls, doc: Document) -> "Activity":
		return cls(
			id=doc.id,
			user_id=str(doc.get("userId")),
			post_id=str(doc.get("tweetId")),
			timestamp=float(doc.get("timestamp") or 0.0),
		)

	def to_document(self) -> Dict[str, Any]:
		return {"userId": self.user_id, "tweetId": self.post_id, "timestamp": self.timestamp}


@dataclass(slots=True)
class TimelinePage:
	posts: List[Post]
	next_cursor: Optional[str] = None
	from_cache: bool = False
