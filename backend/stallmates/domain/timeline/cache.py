"""Per-user timeline cache in Redis, valid while the friend set is unchanged."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from stallmates.domain.common import clock
from stallmates.domain.common.hashing import friends_hash
from stallmates.domain.timeline.models import Post
from stallmates.infra.redis import redis_client
from stallmates.settings import settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CachedTimeline:
	posts: List[Post]
	friends_hash: str
	last_updated: float
	last_loaded_activity: float


def _key(user_id: str) -> str:
	return f"timeline:{user_id}"


async def load(user_id: str, friends: Iterable[str], *, now: Optional[float] = None) -> Optional[CachedTimeline]:
	"""Return the cached timeline, or None when missing, expired or built for another friend set."""
	payload = await redis_client.get_json(_key(user_id))
	if not isinstance(payload, dict):
		return None
	try:
		cached = CachedTimeline(
			posts=[Post.from_cache(item) for item in payload.get("posts", [])],
			friends_hash=str(payload.get("friends_hash") or ""),
			last_updated=float(payload.get("last_updated") or 0.0),
			last_loaded_activity=float(payload.get("last_loaded_activity") or 0.0),
		)
	except (KeyError, TypeError, ValueError):
		logger.warning("timeline cache unreadable", extra={"user_id": user_id})
		return None
	current = now if now is not None else clock.now_ts()
	if current - cached.last_updated > settings.timeline_cache_ttl_seconds:
		return None
	if cached.friends_hash != friends_hash(friends):
		return None
	return cached


async def store(
	user_id: str,
	posts: List[Post],
	friends: Iterable[str],
	last_loaded_activity: Optional[float] = None,
) -> CachedTimeline:
	now = clock.now_ts()
	cached = CachedTimeline(
		posts=list(posts),
		friends_hash=friends_hash(friends),
		last_updated=now,
		last_loaded_activity=last_loaded_activity or now,
	)
	payload = {
		"posts": [post.to_cache() for post in cached.posts],
		"friends_hash": cached.friends_hash,
		"last_updated": cached.last_updated,
		"last_loaded_activity": cached.last_loaded_activity,
	}
	await redis_client.set_json(_key(user_id), payload, ttl_seconds=settings.timeline_cache_ttl_seconds)
	return cached


async def invalidate(*user_ids: str) -> None:
	keys = [_key(user_id) for user_id in user_ids if user_id]
	if keys:
		await redis_client.delete(*keys)
