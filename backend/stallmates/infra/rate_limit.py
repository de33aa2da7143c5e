"""Fixed-window request budgets kept as Redis counters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from stallmates.domain.common import clock
from stallmates.infra.redis import redis_client


@dataclass(slots=True)
class Budget:
	allowed: bool
	used: int
	limit: int
	reset_in: float


def window_key(kind: str, actor_id: str, window_seconds: int, now: float) -> str:
	window = max(1, int(window_seconds))
	return f"rl:{kind}:{actor_id}:{int(now // window)}:{window}"


async def consume(
	kind: str,
	actor_id: str,
	*,
	limit: int,
	window_seconds: int = 60,
	now: Optional[float] = None,
) -> Budget:
	"""Spend one unit of ``actor_id``'s budget for ``kind`` in the current window."""
	ts = now if now is not None else clock.now_ts()
	window = max(1, int(window_seconds))
	reset_in = window - (ts % window)
	if limit <= 0:
		return Budget(False, 0, limit, reset_in)
	key = window_key(kind, actor_id, window, ts)
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, window)
		used, _ = await pipe.execute()
	return Budget(int(used) <= limit, int(used), limit, reset_in)


async def allow(kind: str, actor_id: str, *, limit: int, window_seconds: int = 60, now: Optional[float] = None) -> bool:
	budget = await consume(kind, actor_id, limit=limit, window_seconds=window_seconds, now=now)
	return budget.allowed
