"""Pydantic schemas for posts and timeline pages."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from stallmates.domain.timeline.models import Post, TimelinePage


class PostCreate(BaseModel):
	content: str = Field(..., min_length=1, description="Post body, at most 280 characters once trimmed")


class PostOut(BaseModel):
	id: str
	author_id: str
	author_name: str
	content: str
	created_at: float
	likes: int = 0
	liked_by: List[str] = Field(default_factory=list)

	@classmethod
	def from_post(cls, post: Post) -> "PostOut":
		return cls(
			id=post.id,
			author_id=post.author_id,
			author_name=post.author_name,
			content=post.content,
			created_at=post.created_at,
			likes=post.likes,
			liked_by=list(post.liked_by),
		)


class TimelineOut(BaseModel):
	posts: List[PostOut]
	next_cursor: Optional[str] = None
	from_cache: bool = False

	@classmethod
	def from_page(cls, page: TimelinePage) -> "TimelineOut":
		return cls(
			posts=[PostOut.from_post(post) for post in page.posts],
			next_cursor=page.next_cursor,
			from_cache=page.from_cache,
		)
