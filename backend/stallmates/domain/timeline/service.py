"""Posts, likes and the friends timeline.

Every post write also appends an activity entry so a cached timeline can be
refreshed by asking "what changed since T" instead of rescanning all posts.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import uuid
from typing import Iterable, List, Optional, Sequence, Tuple

from stallmates.domain.common import access, clock
from stallmates.domain.common.errors import InvalidInput, NotFound, PermissionDenied, Stale
from stallmates.domain.identity import service as identity
from stallmates.domain.timeline import cache
from stallmates.domain.timeline.models import ACTIVITY, POSTS, Activity, Post, TimelinePage
from stallmates.infra.documents import IN_FILTER_LIMIT, WriteConflict, get_store, where
from stallmates.obs import metrics as obs_metrics
from stallmates.settings import settings

logger = logging.getLogger(__name__)

MAX_LIKE_ATTEMPTS = 2


def _chunks(values: Sequence[str], size: int = IN_FILTER_LIMIT) -> Iterable[List[str]]:
	for start in range(0, len(values), size):
		yield list(values[start:start + size])


def _authors(user_id: str, friends: Iterable[str]) -> List[str]:
	return list(dict.fromkeys([*friends, user_id]))


def _newest_first(posts: Iterable[Post]) -> List[Post]:
	return sorted(posts, key=lambda post: (post.created_at, post.id), reverse=True)


def encode_cursor(post: Post) -> str:
	raw = json.dumps({"t": post.created_at, "id": post.id}, separators=(",", ":")).encode("utf-8")
	return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> Tuple[float, str]:
	try:
		payload = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
		return float(payload["t"]), str(payload["id"])
	except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError):
		raise InvalidInput("invalid_cursor") from None


def _page(posts: List[Post], *, from_cache: bool = False) -> TimelinePage:
	size = settings.timeline_page_size
	items = posts[:size]
	next_cursor = encode_cursor(items[-1]) if len(posts) > size else None
	return TimelinePage(posts=items, next_cursor=next_cursor, from_cache=from_cache)


async def create_post(author_id: str, author_name: str, content: str) -> Post:
	"""Write the post and its activity entry together."""
	body = (content or "").strip()
	if not body:
		raise InvalidInput("empty_post")
	if len(body) > settings.post_max_length:
		raise InvalidInput("post_too_long")
	now = clock.now_ts()
	post = Post(id=str(uuid.uuid4()), author_id=author_id, author_name=author_name, content=body, created_at=now)
	activity = Activity(id=str(uuid.uuid4()), user_id=author_id, post_id=post.id, timestamp=now)
	store = get_store()
	if store.supports_batch:
		batch = store.batch()
		batch.create(POSTS, post.id, post.to_document())
		batch.create(ACTIVITY, activity.id, activity.to_document())
		await batch.commit()
	else:
		await store.create(POSTS, post.id, post.to_document())
		await store.create(ACTIVITY, activity.id, activity.to_document())
	obs_metrics.inc_post("created")
	await cache.invalidate(author_id)
	logger.info("post created", extra={"user_id": author_id, "post_id": post.id})
	return post


async def _author_friends(author_id: str) -> List[str]:
	profile = await identity.find_profile(author_id)
	return list(profile.friends) if profile else []


async def get_post(post_id: str, viewer_id: str) -> Post:
	doc = await get_store().get(POSTS, post_id)
	if doc is None:
		raise NotFound("post_missing")
	post = Post.from_document(doc)
	if post.author_id != viewer_id:
		access.guard_post_read(viewer_id, post.author_id, await _author_friends(post.author_id))
	return post


async def toggle_like(post_id: str, user_id: str) -> Post:
	store = get_store()
	for _ in range(MAX_LIKE_ATTEMPTS):
		doc = await store.get(POSTS, post_id)
		if doc is None:
			raise NotFound("post_missing")
		post = Post.from_document(doc)
		if post.author_id != user_id:
			access.guard_post_read(user_id, post.author_id, await _author_friends(post.author_id))
		if user_id in post.liked_by:
			changes = {
				"likedBy": [uid for uid in post.liked_by if uid != user_id],
				"likes": max(0, post.likes - 1),
			}
			action = "unliked"
		else:
			changes = {"likedBy": [*post.liked_by, user_id], "likes": post.likes + 1}
			action = "liked"
		access.guard_post_update(user_id, post.author_id, changes.keys())
		try:
			updated = await store.update(POSTS, post_id, changes, expected_version=doc.version)
		except WriteConflict:
			logger.info("like raced another write", extra={"post_id": post_id, "user_id": user_id})
			continue
		obs_metrics.inc_post(action)
		return Post.from_document(updated)
	raise Stale("concurrent_update")


async def delete_post(post_id: str, user_id: str) -> None:
	"""Author only; the post's activity entries go in the same batch."""
	store = get_store()
	doc = await store.get(POSTS, post_id)
	if doc is None:
		raise NotFound("post_missing")
	if doc.get("authorId") != user_id:
		raise PermissionDenied("not_author")
	activity = await store.query(ACTIVITY, [where("tweetId", "==", post_id)])
	if store.supports_batch:
		batch = store.batch()
		batch.delete(POSTS, post_id)
		for entry in activity:
			batch.delete(ACTIVITY, entry.id)
		await batch.commit()
	else:
		await store.delete(POSTS, post_id)
		for entry in activity:
			await store.delete(ACTIVITY, entry.id)
	obs_metrics.inc_post("deleted")
	await cache.invalidate(user_id)
	logger.info("post deleted", extra={"user_id": user_id, "post_id": post_id})


async def recent_activity(user_ids: Sequence[str], since: Optional[float] = None) -> List[Activity]:
	"""Activity by ``user_ids`` newer than ``since``, newest first."""
	ids = list(dict.fromkeys(uid for uid in user_ids if uid))
	if not ids:
		return []
	limit = settings.timeline_activity_limit
	found: List[Activity] = []
	for chunk in _chunks(ids):
		filters = [where("userId", "in", chunk)]
		if since:
			filters.append(where("timestamp", ">", since))
		docs = await get_store().query(ACTIVITY, filters, order_by="timestamp", descending=True, limit=limit)
		found.extend(Activity.from_document(doc) for doc in docs)
	found.sort(key=lambda entry: (entry.timestamp, entry.id), reverse=True)
	return found[:limit]


async def get_posts_by_ids(post_ids: Iterable[str]) -> List[Post]:
	docs = await get_store().get_many(POSTS, post_ids)
	return _newest_first(Post.from_document(doc) for doc in docs)


async def _page_after(authors: List[str], cursor: str) -> TimelinePage:
	created_at, post_id = decode_cursor(cursor)
	size = settings.timeline_page_size
	posts: List[Post] = []
	for chunk in _chunks(authors):
		docs = await get_store().query(
			POSTS,
			[where("authorId", "in", chunk)],
			order_by="createdAt",
			descending=True,
			limit=size + 1,
			start_after=(created_at, post_id),
		)
		posts.extend(Post.from_document(doc) for doc in docs)
	return _page(_newest_first(posts))


async def _rebuild(user_id: str, friends: List[str], authors: List[str]) -> TimelinePage:
	activity = await recent_activity(authors)
	if not activity:
		await cache.store(user_id, [], friends)
		return TimelinePage(posts=[])
	posts = await get_posts_by_ids(entry.post_id for entry in activity)
	await cache.store(user_id, posts, friends, activity[0].timestamp)
	return _page(posts)


async def _merge_new_activity(user_id: str, friends: List[str], authors: List[str], cached: cache.CachedTimeline) -> TimelinePage:
	activity = await recent_activity(authors, since=cached.last_loaded_activity)
	if not activity:
		return _page(cached.posts, from_cache=True)
	fresh = await get_posts_by_ids(entry.post_id for entry in activity)
	merged = {post.id: post for post in cached.posts}
	merged.update((post.id, post) for post in fresh)
	posts = _newest_first(merged.values())
	await cache.store(user_id, posts, friends, activity[0].timestamp)
	return _page(posts)


async def get_timeline(
	user_id: str,
	friends: Iterable[str],
	cursor: Optional[str] = None,
	refresh: bool = False,
) -> TimelinePage:
	"""First page from cache when fresh; ``refresh`` merges activity since the last load; ``cursor`` pages on."""
	friend_ids = list(friends)
	authors = _authors(user_id, friend_ids)
	if cursor:
		return await _page_after(authors, cursor)
	cached = await cache.load(user_id, friend_ids)
	if cached is None:
		obs_metrics.inc_timeline_cache("miss")
		return await _rebuild(user_id, friend_ids, authors)
	if not refresh:
		obs_metrics.inc_timeline_cache("hit")
		return _page(cached.posts, from_cache=True)
	obs_metrics.inc_timeline_cache("refresh")
	return await _merge_new_activity(user_id, friend_ids, authors, cached)
