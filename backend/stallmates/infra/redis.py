"""Redis connection management.

``redis_client`` is a stable proxy: modules import it once and the underlying
client can be swapped at runtime (fakeredis in tests) without breaking those
references. Presence hashes, rate-limit counters and the JSON caches for
timelines and recommendations all live here.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from stallmates.settings import settings

logger = logging.getLogger(__name__)


class RedisProxy:
	"""Forwards attribute access to the current client and adds JSON cache helpers."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	async def get_json(self, key: str) -> Optional[Any]:
		"""Decoded JSON at ``key``; None when absent or unreadable."""
		raw = await self._client.get(key)
		if not raw:
			return None
		try:
			return json.loads(raw)
		except ValueError:
			logger.warning("cache entry unreadable", extra={"key": key})
			return None

	async def set_json(self, key: str, value: Any, *, ttl_seconds: Optional[int] = None) -> None:
		payload = json.dumps(value, separators=(",", ":"))
		await self._client.set(key, payload, ex=ttl_seconds)

	def __getattr__(self, item):
		return getattr(self._client, item)


redis_client: RedisProxy = RedisProxy(redis.from_url(settings.redis_url, decode_responses=True))


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)
