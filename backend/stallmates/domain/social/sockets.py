"""Socket.IO namespace for social updates (friend requests & friendships)."""

from __future__ import annotations

from typing import Optional

import socketio

from stallmates.domain.presence.sockets import resolve_socket_user
from stallmates.obs import metrics as obs_metrics

_namespace: Optional["SocialNamespace"] = None


class SocialNamespace(socketio.AsyncNamespace):
	"""Namespace that keeps each client in their personal room."""

	def __init__(self) -> None:
		super().__init__("/social")
		self._sessions: dict[str, str] = {}

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		obs_metrics.socket_connected(self.namespace)
		try:
			user_id = resolve_socket_user(environ, auth)
		except ValueError:
			obs_metrics.socket_disconnected(self.namespace)
			raise ConnectionRefusedError("unauthorized") from None
		self._sessions[sid] = user_id
		await self.enter_room(sid, self.user_room(user_id))
		await self.emit("social:ack", {"ok": True}, room=sid)

	async def on_disconnect(self, sid: str, *args) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		user_id = self._sessions.pop(sid, None)
		if user_id:
			await self.leave_room(sid, self.user_room(user_id))

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"


def set_namespace(ns: Optional[SocialNamespace]) -> None:
	global _namespace
	_namespace = ns


async def _emit(event: str, user_id: str, payload: dict) -> None:
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, event)
	await _namespace.emit(event, payload, room=SocialNamespace.user_room(user_id))


async def emit_request_new(user_id: str, payload: dict) -> None:
	await _emit("request:new", user_id, payload)


async def emit_request_update(user_id: str, payload: dict) -> None:
	await _emit("request:update", user_id, payload)


async def emit_friend_update(user_id: str, payload: dict) -> None:
	await _emit("friend:update", user_id, payload)
