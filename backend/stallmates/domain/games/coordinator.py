"""Per-client invite/game coordinator.

States: idle, incoming (a pending invite addressed to us), active (an
accepted invite whose game has not completed). ``tick`` re-derives the state
from the store; ``run`` ticks on a fixed interval and immediately whenever an
invite or game write for this user is announced.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from stallmates.domain.common.errors import NotFound, StallmatesError
from stallmates.domain.games import engine, invites, sockets
from stallmates.domain.games.models import GameInvite
from stallmates.obs import logging as obs_logging
from stallmates.settings import settings

logger = logging.getLogger(__name__)

StateCallback = Callable[[Dict[str, Any]], Awaitable[None]]


@dataclass(slots=True)
class ActiveGame:
	game_id: str
	invite_id: str
	opponent_id: str


class GameCoordinator:
	def __init__(
		self,
		user_id: str,
		*,
		on_change: Optional[StateCallback] = None,
		poll_interval: Optional[float] = None,
		status_clear_delay: Optional[float] = None,
	) -> None:
		self.user_id = user_id
		self._on_change = on_change
		self._poll_interval = float(poll_interval if poll_interval is not None else settings.game_poll_interval_seconds)
		self._clear_delay = float(
			status_clear_delay if status_clear_delay is not None else settings.invite_status_clear_seconds
		)
		self.current: Optional[ActiveGame] = None
		self.incoming: Optional[GameInvite] = None
		self.send_status: Optional[str] = None
		self.send_error: Optional[str] = None
		self._wake_event = asyncio.Event()
		self._task: Optional[asyncio.Task] = None
		self._clear_task: Optional[asyncio.Task] = None
		self._timers: Set[asyncio.Task] = set()
		self._closed = False

	@property
	def closed(self) -> bool:
		return self._closed

	@property
	def state(self) -> str:
		if self.current is not None:
			return "active"
		if self.incoming is not None:
			return "incoming"
		return "idle"

	def view(self) -> Dict[str, Any]:
		return {
			"user_id": self.user_id,
			"state": self.state,
			"game": (
				{
					"game_id": self.current.game_id,
					"invite_id": self.current.invite_id,
					"opponent_id": self.current.opponent_id,
				}
				if self.current
				else None
			),
			"incoming": self.incoming.to_payload() if self.incoming else None,
			"send_status": self.send_status,
			"send_error": self.send_error,
		}

	async def _publish(self) -> None:
		if self._closed or self._on_change is None:
			return
		try:
			await self._on_change(self.view())
		except Exception:
			logger.exception("coordinator state callback failed", extra={"user_id": self.user_id})

	async def _scan_accepted(self) -> Optional[ActiveGame]:
		for invite in await invites.accepted_for(self.user_id):
			if await invites.collect_if_stale(invite):
				continue
			if invite.game_id:
				return ActiveGame(invite.game_id, invite.id, invite.other(self.user_id))
		return None

	async def tick(self) -> Dict[str, Any]:
		"""One scan: accepted games first, then the earliest incoming invite."""
		if self._closed:
			return self.view()
		self.current = await self._scan_accepted()
		self.incoming = None if self.current else await invites.earliest_pending_for(self.user_id)
		await self._publish()
		return self.view()

	def wake(self) -> None:
		if not self._closed:
			self._wake_event.set()

	async def run(self) -> None:
		with obs_logging.log_context(user_id=self.user_id):
			while not self._closed:
				self._wake_event.clear()
				try:
					await self.tick()
				except asyncio.CancelledError:
					raise
				except Exception:
					logger.exception("game coordinator tick failed")
				with suppress(asyncio.TimeoutError):
					await asyncio.wait_for(self._wake_event.wait(), timeout=self._poll_interval)

	def start(self) -> asyncio.Task:
		if self._task is None:
			sockets.subscribe(self.user_id, self.wake)
			self._task = asyncio.create_task(self.run(), name=f"game-coordinator:{self.user_id}")
		return self._task

	async def close(self) -> None:
		"""Stop polling and cancel every timer; no callback fires afterwards."""
		if self._closed:
			return
		self._closed = True
		sockets.unsubscribe(self.user_id, self.wake)
		pending = [task for task in (self._task, *self._timers) if task is not None and not task.done()]
		for task in pending:
			task.cancel()
		for task in pending:
			with suppress(asyncio.CancelledError):
				await task
		self._timers.clear()
		self._task = None
		self._clear_task = None

	def _schedule_status_clear(self) -> None:
		if self._clear_task is not None and not self._clear_task.done():
			self._clear_task.cancel()

		async def _clear() -> None:
			await asyncio.sleep(self._clear_delay)
			self.send_status = None
			self.send_error = None
			await self._publish()

		task = asyncio.create_task(_clear(), name=f"invite-status-clear:{self.user_id}")
		self._timers.add(task)
		task.add_done_callback(self._timers.discard)
		self._clear_task = task

	async def send_invite(self, to_user_id: str) -> GameInvite:
		self.send_status = "sending"
		self.send_error = None
		await self._publish()
		try:
			invite = await invites.send_invite(self.user_id, to_user_id)
		except StallmatesError as exc:
			self.send_status = "error"
			self.send_error = exc.reason
			await self._publish()
			self._schedule_status_clear()
			raise
		self.send_status = "sent"
		await self._publish()
		self._schedule_status_clear()
		return invite

	async def accept(self, invite_id: str) -> GameInvite:
		invite = await invites.accept_invite(self.user_id, invite_id)
		await self.tick()
		return invite

	async def reject(self, invite_id: str) -> GameInvite:
		invite = await invites.reject_invite(self.user_id, invite_id)
		await self.tick()
		return invite

	async def cancel(self, invite_id: str) -> GameInvite:
		return await invites.cancel_invite(self.user_id, invite_id)

	def _require_current(self) -> ActiveGame:
		if self.current is None:
			raise NotFound("no_active_game")
		return self.current

	async def open_game(self) -> Dict[str, Any]:
		current = self._require_current()
		state = await engine.initialize_game(current.game_id, self.user_id, current.opponent_id)
		return engine.game_view(state, self.user_id)

	async def guess(self, word: str) -> Dict[str, Any]:
		current = self._require_current()
		state = await engine.submit_guess(current.game_id, self.user_id, word)
		return engine.game_view(state, self.user_id)

	async def close_game(self) -> None:
		"""Delete the game's invite first, then drop the local game."""
		if self.current is None:
			return
		await invites.close_game(self.user_id, self.current.game_id)
		self.current = None
		await self._publish()
