from unittest.mock import AsyncMock

import pytest
import socketio

from stallmates.domain.presence import service as presence
from stallmates.domain.presence.sockets import PresenceNamespace


def _scope_with_user(user_id: str) -> dict:
	return {"headers": [(b"x-user-id", user_id.encode())]}


def _namespace() -> PresenceNamespace:
	server = socketio.AsyncServer(async_mode="asgi")
	namespace = PresenceNamespace()
	server.register_namespace(namespace)
	namespace.emit = AsyncMock()
	namespace.enter_room = AsyncMock()
	return namespace


@pytest.mark.asyncio
async def test_connect_requires_credentials():
	namespace = _namespace()
	with pytest.raises(ConnectionRefusedError):
		await namespace.trigger_event("connect", "sid-1", {"asgi.scope": {"headers": []}})


@pytest.mark.asyncio
async def test_connect_and_disconnect_track_one_session_each():
	namespace = _namespace()
	await namespace.trigger_event("connect", "sid-1", {"asgi.scope": _scope_with_user("user-1")})
	await namespace.trigger_event("connect", "sid-2", {"asgi.scope": _scope_with_user("user-1")})

	record = await presence.get_record("user-1")
	assert record.is_online
	assert len(record.sessions) == 2
	events = [call.args[0] for call in namespace.emit.await_args_list]
	assert events.count("presence:session") == 2

	await namespace.trigger_event("disconnect", "sid-1")
	record = await presence.get_record("user-1")
	assert record.is_online
	assert len(record.sessions) == 1

	await namespace.trigger_event("disconnect", "sid-2")
	assert not (await presence.get_record("user-1")).is_online


@pytest.mark.asyncio
async def test_availability_event_acks_the_record():
	namespace = _namespace()
	await namespace.trigger_event("connect", "sid-1", {"asgi.scope": _scope_with_user("user-1")})
	await namespace.trigger_event("availability", "sid-1", {"available": True})

	ack = namespace.emit.await_args_list[-1]
	assert ack.args[0] == "presence:ack"
	assert ack.args[1]["available"] is True
	assert (await presence.get_record("user-1")).is_available
