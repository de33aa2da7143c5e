"""Socket.IO namespace for game invites and games.

Each connection gets its own GameCoordinator. Invite and game writes call
``notify`` so coordinators of the affected users re-scan immediately instead
of waiting for the next poll.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import socketio

from stallmates.domain.common.errors import StallmatesError
from stallmates.domain.presence.sockets import resolve_socket_user
from stallmates.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_namespace: Optional["GamesNamespace"] = None
_listeners: Dict[str, Set[Callable[[], None]]] = {}


def subscribe(user_id: str, callback: Callable[[], None]) -> None:
	_listeners.setdefault(user_id, set()).add(callback)


def unsubscribe(user_id: str, callback: Callable[[], None]) -> None:
	callbacks = _listeners.get(user_id)
	if not callbacks:
		return
	callbacks.discard(callback)
	if not callbacks:
		_listeners.pop(user_id, None)


async def notify(*user_ids: str) -> None:
	"""Wake every local coordinator watching one of ``user_ids``."""
	for user_id in user_ids:
		for callback in list(_listeners.get(user_id, ())):
			callback()


class GamesNamespace(socketio.AsyncNamespace):
	def __init__(self) -> None:
		super().__init__("/games")
		self.coordinators: Dict[str, Any] = {}

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		from stallmates.domain.games.coordinator import GameCoordinator

		obs_metrics.socket_connected(self.namespace)
		try:
			user_id = resolve_socket_user(environ, auth)
		except ValueError:
			obs_metrics.socket_disconnected(self.namespace)
			raise ConnectionRefusedError("unauthorized") from None
		await self.enter_room(sid, self.user_room(user_id))
		coordinator = GameCoordinator(user_id, on_change=self._forward(sid))
		self.coordinators[sid] = coordinator
		coordinator.start()
		await self.emit("games:ack", {"ok": True}, room=sid)

	async def on_disconnect(self, sid: str, *args) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		coordinator = self.coordinators.pop(sid, None)
		if coordinator is not None:
			await coordinator.close()

	def _forward(self, sid: str) -> Callable[[Dict[str, Any]], Awaitable[None]]:
		async def _emit(view: Dict[str, Any]) -> None:
			await self.emit("coordinator:state", view, room=sid)

		return _emit

	async def _run(self, sid: str, event: str, action: Callable[[Any], Awaitable[Any]]) -> None:
		obs_metrics.socket_event(self.namespace, event)
		coordinator = self.coordinators.get(sid)
		if coordinator is None:
			return
		try:
			result = await action(coordinator)
		except StallmatesError as exc:
			await self.emit("sys.warn", {"code": exc.reason, "event": event}, room=sid)
			return
		if isinstance(result, dict):
			await self.emit(f"{event}:ok", result, room=sid)

	async def on_invite_send(self, sid: str, data: Optional[dict] = None) -> None:
		to_user_id = str((data or {}).get("to_user_id") or "")

		async def action(coordinator):
			return (await coordinator.send_invite(to_user_id)).to_payload()

		await self._run(sid, "invite_send", action)

	async def on_invite_accept(self, sid: str, data: Optional[dict] = None) -> None:
		invite_id = str((data or {}).get("invite_id") or "")

		async def action(coordinator):
			return (await coordinator.accept(invite_id)).to_payload()

		await self._run(sid, "invite_accept", action)

	async def on_invite_reject(self, sid: str, data: Optional[dict] = None) -> None:
		invite_id = str((data or {}).get("invite_id") or "")

		async def action(coordinator):
			return (await coordinator.reject(invite_id)).to_payload()

		await self._run(sid, "invite_reject", action)

	async def on_invite_cancel(self, sid: str, data: Optional[dict] = None) -> None:
		invite_id = str((data or {}).get("invite_id") or "")

		async def action(coordinator):
			return (await coordinator.cancel(invite_id)).to_payload()

		await self._run(sid, "invite_cancel", action)

	async def on_game_open(self, sid: str, data: Optional[dict] = None) -> None:
		async def action(coordinator):
			return await coordinator.open_game()

		await self._run(sid, "game_open", action)

	async def on_game_guess(self, sid: str, data: Optional[dict] = None) -> None:
		guess = str((data or {}).get("guess") or "")

		async def action(coordinator):
			return await coordinator.guess(guess)

		await self._run(sid, "game_guess", action)

	async def on_game_close(self, sid: str, data: Optional[dict] = None) -> None:
		async def action(coordinator):
			await coordinator.close_game()
			return {"ok": True}

		await self._run(sid, "game_close", action)

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"


def set_namespace(ns: Optional[GamesNamespace]) -> None:
	global _namespace
	_namespace = ns


async def emit_invite(user_id: str, event: str, payload: dict) -> None:
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, event)
	await _namespace.emit(event, payload, room=GamesNamespace.user_room(user_id))


async def emit_game_state(user_id: str, view: dict) -> None:
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, "game:state")
	await _namespace.emit("game:state", view, room=GamesNamespace.user_room(user_id))
