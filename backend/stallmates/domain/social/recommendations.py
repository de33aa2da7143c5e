"""Friend-of-friend recommendations with a per-user Redis cache."""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from stallmates.domain.common import clock
from stallmates.domain.common.hashing import friends_hash
from stallmates.domain.identity import service as identity
from stallmates.infra.redis import redis_client
from stallmates.obs import metrics as obs_metrics
from stallmates.settings import settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Recommendation:
	user_id: str
	display_name: str
	mutual_friends: int


def _cache_key(user_id: str) -> str:
	return f"recs:{user_id}"


def sample_friends(friends: Sequence[str], k: int, rng: Optional[random.Random] = None) -> List[str]:
	"""Uniform sample of at most ``k`` friends; bounds the number of reads."""
	unique = sorted(set(friends))
	if len(unique) <= k:
		return unique
	return (rng or random).sample(unique, k)


def rank_candidates(
	user_id: str,
	friends: Iterable[str],
	friend_lists: Mapping[str, Iterable[str]],
	limit: int,
) -> List[Tuple[str, int]]:
	"""Score candidates by how many sampled friends list them.

	Ties are broken by candidate id ascending so a fixed sample always ranks
	the same way.
	"""
	excluded = set(friends)
	excluded.add(user_id)
	scores: Dict[str, int] = {}
	for their_friends in friend_lists.values():
		for candidate in set(their_friends):
			if candidate in excluded:
				continue
			scores[candidate] = scores.get(candidate, 0) + 1
	ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
	return ranked[: max(0, limit)]


async def compute(user_id: str, friends: Sequence[str], *, rng: Optional[random.Random] = None) -> List[Recommendation]:
	sampled = sample_friends(friends, settings.recommendation_sample_size, rng)
	profiles = await identity.get_profiles(sampled)
	friend_lists = {profile.id: profile.friends for profile in profiles}
	ranked = rank_candidates(user_id, friends, friend_lists, settings.recommendation_limit)
	names = await identity.get_profile_map(candidate for candidate, _ in ranked)
	return [
		Recommendation(
			user_id=candidate,
			display_name=names[candidate].display_name if candidate in names else "",
			mutual_friends=score,
		)
		for candidate, score in ranked
		if candidate in names
	]


async def _read_cache(user_id: str) -> Optional[dict]:
	cached = await redis_client.get_json(_cache_key(user_id))
	return cached if isinstance(cached, dict) else None


async def _write_cache(user_id: str, fingerprint: str, items: List[Recommendation], computed_at: float) -> None:
	payload = {
		"friends_hash": fingerprint,
		"computed_at": computed_at,
		"items": [asdict(item) for item in items],
	}
	await redis_client.set_json(_cache_key(user_id), payload, ttl_seconds=settings.recommendation_cache_ttl_seconds)


def _is_fresh(cached: dict, fingerprint: str, now: float) -> bool:
	if cached.get("friends_hash") != fingerprint:
		return False
	return now - float(cached.get("computed_at") or 0.0) < settings.recommendation_cache_ttl_seconds


async def get_recommendations(
	user_id: str,
	*,
	refresh: bool = False,
	rng: Optional[random.Random] = None,
) -> List[Recommendation]:
	profile = await identity.find_profile(user_id)
	if profile is None or not profile.friends:
		return []
	fingerprint = friends_hash(profile.friends)
	now = clock.now_ts()
	cached = None if refresh else await _read_cache(user_id)
	if cached is not None and _is_fresh(cached, fingerprint, now):
		obs_metrics.inc_recommendation_cache("hit")
		return [Recommendation(**item) for item in cached.get("items", [])]
	obs_metrics.inc_recommendation_cache("miss")
	items = await compute(user_id, profile.friends, rng=rng)
	logger.info("recommendations computed", extra={"user_id": user_id, "count": len(items)})
	await _write_cache(user_id, fingerprint, items, now)
	return items


async def dismiss(user_id: str, candidate_id: str) -> List[Recommendation]:
	"""Drop a candidate from this user's cached list only."""
	items = await get_recommendations(user_id)
	remaining = [item for item in items if item.user_id != candidate_id]
	cached = await _read_cache(user_id)
	if cached is not None:
		await _write_cache(user_id, cached.get("friends_hash", ""), remaining, float(cached.get("computed_at") or 0.0))
	return remaining


async def invalidate(*user_ids: str) -> None:
	keys = [_cache_key(user_id) for user_id in user_ids if user_id]
	if keys:
		await redis_client.delete(*keys)
