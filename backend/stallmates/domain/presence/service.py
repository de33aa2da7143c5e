"""Session/presence tracking backed by Redis hashes.

Layout per identity:
  status:{id}            hash  is_shitting, last_active, current_event_id
  status:{id}:sessions   hash  session token -> attach/heartbeat timestamp
  status:{id}:events     pub/sub channel carrying the latest snapshot
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional

from stallmates.domain.common import clock
from stallmates.domain.presence import sockets, stats
from stallmates.domain.presence.models import ClientSession, PresenceRecord, VisitStats
from stallmates.infra.redis import redis_client
from stallmates.obs import metrics as obs_metrics
from stallmates.settings import settings

logger = logging.getLogger(__name__)


def status_key(identity_id: str) -> str:
	return f"status:{identity_id}"


def sessions_key(identity_id: str) -> str:
	return f"status:{identity_id}:sessions"


def events_channel(identity_id: str) -> str:
	return f"status:{identity_id}:events"


def new_session_token() -> str:
	return uuid.uuid4().hex


class DisconnectHook:
	"""Removes exactly one session field when its connection goes away.

	Firing is idempotent; a cancelled hook never touches the store.
	"""

	__slots__ = ("session", "_done")

	def __init__(self, session: ClientSession) -> None:
		self.session = session
		self._done = False

	@property
	def active(self) -> bool:
		return not self._done

	def cancel(self) -> None:
		self._done = True

	async def fire(self) -> bool:
		if self._done:
			return False
		self._done = True
		return await detach(self.session)


async def get_record(identity_id: str) -> PresenceRecord:
	status = await redis_client.hgetall(status_key(identity_id))
	sessions = await redis_client.hgetall(sessions_key(identity_id))
	return PresenceRecord.from_hashes(identity_id, status or {}, sessions or {})


async def get_records(identity_ids: Iterable[str]) -> Dict[str, PresenceRecord]:
	records: Dict[str, PresenceRecord] = {}
	for identity_id in dict.fromkeys(identity_ids):
		records[identity_id] = await get_record(identity_id)
	return records


async def is_online(identity_id: str) -> bool:
	return int(await redis_client.hlen(sessions_key(identity_id))) > 0


async def is_available(identity_id: str) -> bool:
	return (await get_record(identity_id)).is_available


async def _publish(identity_id: str) -> PresenceRecord:
	record = await get_record(identity_id)
	payload = record.to_payload()
	await redis_client.publish(events_channel(identity_id), json.dumps(payload))
	await sockets.emit_presence(identity_id, payload)
	return record


async def attach(identity_id: str, *, now: Optional[float] = None) -> ClientSession:
	"""Register a fresh session for ``identity_id`` and return it."""
	ts = now if now is not None else clock.now_ts()
	session = ClientSession(identity_id=identity_id, session_token=new_session_token())
	await redis_client.hset(sessions_key(identity_id), session.session_token, str(ts))
	await redis_client.hset(status_key(identity_id), "last_active", str(ts))
	obs_metrics.inc_presence_session("attach")
	logger.info("presence attach", extra={"user_id": identity_id, "session_id": session.session_token})
	await _publish(identity_id)
	return session


def register_disconnect_hook(session: ClientSession) -> DisconnectHook:
	return DisconnectHook(session)


async def detach(session: ClientSession) -> bool:
	"""Remove the session's field only; the rest of the node is untouched."""
	removed = int(await redis_client.hdel(sessions_key(session.identity_id), session.session_token))
	if removed:
		obs_metrics.inc_presence_session("detach")
		logger.info(
			"presence detach",
			extra={"user_id": session.identity_id, "session_id": session.session_token},
		)
		await _publish(session.identity_id)
	return bool(removed)


@asynccontextmanager
async def attached(identity_id: str) -> AsyncIterator[ClientSession]:
	session = await attach(identity_id)
	hook = register_disconnect_hook(session)
	try:
		yield session
	finally:
		await hook.fire()


async def touch(session: ClientSession, *, now: Optional[float] = None) -> bool:
	"""Heartbeat: refresh the session timestamp if the session is still present."""
	ts = now if now is not None else clock.now_ts()
	key = sessions_key(session.identity_id)
	if not await redis_client.hexists(key, session.session_token):
		return False
	await redis_client.hset(key, session.session_token, str(ts))
	await redis_client.hset(status_key(session.identity_id), "last_active", str(ts))
	return True


async def set_availability(session: ClientSession, is_available: bool, *, now: Optional[float] = None) -> PresenceRecord:
	"""Flip the availability flag; never touches the session map."""
	identity_id = session.identity_id
	ts = now if now is not None else clock.now_ts()
	current = await get_record(identity_id)
	mapping = {"is_shitting": "1" if is_available else "0", "last_active": str(ts)}
	if is_available and not current.is_shitting:
		mapping["current_event_id"] = await stats.open_visit(identity_id, now=ts)
	await redis_client.hset(status_key(identity_id), mapping=mapping)
	if not is_available and current.current_event_id:
		await redis_client.hdel(status_key(identity_id), "current_event_id")
		try:
			await stats.close_visit(identity_id, current.current_event_id, now=ts)
		except Exception:
			# availability already flipped; the stats miss one visit
			logger.exception("visit close failed", extra={"user_id": identity_id})
	if is_available != current.is_shitting:
		obs_metrics.inc_availability(is_available)
	return await _publish(identity_id)


async def visit_stats(identity_id: str) -> VisitStats:
	return await stats.visit_stats(identity_id)


async def observe(identity_id: str, *, poll_timeout: float = 1.0) -> AsyncIterator[PresenceRecord]:
	"""Yield the current snapshot, then one snapshot per committed change.

	Closing the generator unsubscribes.
	"""
	pubsub = redis_client.pubsub()
	await pubsub.subscribe(events_channel(identity_id))
	try:
		yield await get_record(identity_id)
		while True:
			message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=poll_timeout)
			if message is None:
				continue
			yield await get_record(identity_id)
	finally:
		await pubsub.unsubscribe(events_channel(identity_id))
		await pubsub.aclose()


async def sweep_stale_sessions(*, now: Optional[float] = None, ttl_seconds: Optional[int] = None) -> int:
	"""Drop session fields whose disconnect hook never fired."""
	ts = now if now is not None else clock.now_ts()
	ttl = settings.presence_session_ttl_seconds if ttl_seconds is None else ttl_seconds
	cutoff = ts - ttl
	trimmed = 0
	cursor = 0
	while True:
		cursor, keys = await redis_client.scan(cursor=cursor, match="status:*:sessions", count=100)
		for key in keys:
			identity_id = key[len("status:"):-len(":sessions")]
			entries = await redis_client.hgetall(key)
			stale: List[str] = []
			for token, raw in entries.items():
				try:
					seen = float(raw)
				except (TypeError, ValueError):
					seen = 0.0
				if seen < cutoff:
					stale.append(token)
			if stale:
				await redis_client.hdel(key, *stale)
				trimmed += len(stale)
				await _publish(identity_id)
		if cursor == 0:
			break
	return trimmed


async def run_session_sweeper(interval_s: Optional[float] = None) -> None:
	"""Periodically trims sessions older than the presence TTL."""
	interval = max(1.0, float(interval_s or settings.presence_sweep_interval_seconds))
	while True:
		await asyncio.sleep(interval)
		try:
			trimmed = await sweep_stale_sessions()
		except asyncio.CancelledError:
			raise
		except Exception:
			logger.exception("presence sweeper iteration failed")
			continue
		if trimmed:
			logger.info("presence sweeper removed %s stale sessions", trimmed)
			obs_metrics.inc_presence_sweeper_trim(trimmed)


__all__ = [
	"ClientSession",
	"DisconnectHook",
	"attach",
	"attached",
	"detach",
	"get_record",
	"get_records",
	"is_online",
	"is_available",
	"observe",
	"register_disconnect_hook",
	"run_session_sweeper",
	"set_availability",
	"sweep_stale_sessions",
	"touch",
	"visit_stats",
]
