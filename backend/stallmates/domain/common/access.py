"""Write and read rules the stores enforce for non-owners."""

from __future__ import annotations

from typing import Iterable

from stallmates.domain.common.errors import PermissionDenied

PROFILE_SHARED_FIELDS = frozenset({"friends"})
POST_SHARED_FIELDS = frozenset({"likes", "likedBy"})


def guard_profile_update(actor_id: str, owner_id: str, fields: Iterable[str]) -> None:
	"""A non-owner may only touch the friends array of someone else's profile."""
	if actor_id == owner_id:
		return
	touched = set(fields)
	if not touched or not touched <= PROFILE_SHARED_FIELDS:
		raise PermissionDenied("profile_fields")


def guard_post_update(actor_id: str, author_id: str, fields: Iterable[str]) -> None:
	if actor_id == author_id:
		return
	touched = set(fields)
	if not touched or not touched <= POST_SHARED_FIELDS:
		raise PermissionDenied("post_fields")


def can_read_post(viewer_id: str, author_id: str, author_friends: Iterable[str]) -> bool:
	return viewer_id == author_id or viewer_id in set(author_friends)


def guard_post_read(viewer_id: str, author_id: str, author_friends: Iterable[str]) -> None:
	if not can_read_post(viewer_id, author_id, author_friends):
		raise PermissionDenied("post_read")
