"""Audit helpers for friend requests & friendships."""

from __future__ import annotations

from typing import Dict

from stallmates.infra.redis import redis_client
from stallmates.obs import metrics as obs_metrics


async def log_request_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **{key: str(value) for key, value in fields.items()}}
	await redis_client.xadd("x:friend_requests.events", payload)


async def log_friend_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **{key: str(value) for key, value in fields.items()}}
	await redis_client.xadd("x:friendships.events", payload)


def inc_request(action: str) -> None:
	obs_metrics.inc_friend_request(action)


def inc_friendship_write(operation: str, outcome: str) -> None:
	obs_metrics.inc_friendship_write(operation, outcome)
