"""Socket.IO namespace for presence.

Each connection is one client session: connect attaches a session and arms
its disconnect hook, disconnect (clean or not) fires it.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import socketio

from stallmates.infra.auth import user_from_token
from stallmates.obs import metrics as obs_metrics
from stallmates.settings import settings

logger = logging.getLogger(__name__)

_namespace: Optional["PresenceNamespace"] = None


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


def resolve_socket_user(environ: dict, auth: Optional[dict]) -> str:
	"""Return the identity id for a socket handshake or raise ValueError."""
	scope = environ.get("asgi.scope", environ)
	auth_payload = auth or environ.get("auth") or scope.get("auth") or {}
	token = auth_payload.get("token")
	if not token:
		auth_header = _header(scope, "authorization")
		if auth_header and auth_header.lower().startswith("bearer "):
			token = auth_header.split(" ", 1)[1]
	if token:
		return user_from_token(str(token)).id
	if settings.is_dev():
		user_id = auth_payload.get("userId") or _header(scope, "x-user-id")
		if user_id:
			return str(user_id)
	raise ValueError("missing_token")


class PresenceNamespace(socketio.AsyncNamespace):
	def __init__(self) -> None:
		super().__init__("/presence")
		self.hooks: Dict[str, object] = {}

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		from stallmates.domain.presence import service

		obs_metrics.socket_connected(self.namespace)
		try:
			user_id = resolve_socket_user(environ, auth)
		except ValueError:
			obs_metrics.socket_disconnected(self.namespace)
			raise ConnectionRefusedError("unauthorized") from None
		session = await service.attach(user_id)
		self.hooks[sid] = service.register_disconnect_hook(session)
		await self.enter_room(sid, self.user_room(user_id))
		logger.info("presence connect", extra={"sid": sid, "user_id": user_id})
		await self.emit("presence:session", {"session_id": session.session_token}, room=sid)

	async def on_disconnect(self, sid: str, *args) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		hook = self.hooks.pop(sid, None)
		if hook is None:
			return
		try:
			await hook.fire()
		except Exception:
			# the sweeper removes the session once its TTL lapses
			logger.exception("presence disconnect hook failed", extra={"sid": sid})

	async def on_hb(self, sid: str, *args) -> None:
		from stallmates.domain.presence import service

		hook = self.hooks.get(sid)
		if hook is None:
			return
		await service.touch(hook.session)

	async def on_availability(self, sid: str, data: Optional[dict] = None) -> None:
		from stallmates.domain.presence import service

		obs_metrics.socket_event(self.namespace, "availability")
		hook = self.hooks.get(sid)
		if hook is None:
			return
		available = bool((data or {}).get("available"))
		record = await service.set_availability(hook.session, available)
		await self.emit("presence:ack", record.to_payload(), room=sid)

	async def on_watch(self, sid: str, data: Optional[dict] = None) -> None:
		from stallmates.domain.presence import service

		obs_metrics.socket_event(self.namespace, "watch")
		if sid not in self.hooks:
			return
		ids = [str(item) for item in (data or {}).get("ids", []) if item]
		for identity_id in ids:
			await self.enter_room(sid, self.watch_room(identity_id))
		records = await service.get_records(ids)
		await self.emit(
			"presence:snapshot",
			{"users": [record.to_payload() for record in records.values()]},
			room=sid,
		)

	async def on_unwatch(self, sid: str, data: Optional[dict] = None) -> None:
		for identity_id in (data or {}).get("ids", []):
			await self.leave_room(sid, self.watch_room(str(identity_id)))

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"

	@staticmethod
	def watch_room(user_id: str) -> str:
		return f"watch:{user_id}"


def set_namespace(ns: Optional[PresenceNamespace]) -> None:
	global _namespace
	_namespace = ns


async def emit_presence(identity_id: str, payload: dict) -> None:
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, "presence:update")
	await _namespace.emit("presence:update", payload, room=PresenceNamespace.watch_room(identity_id))
	await _namespace.emit("presence:update", payload, room=PresenceNamespace.user_room(identity_id))
