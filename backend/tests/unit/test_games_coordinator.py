import asyncio

import pytest

from stallmates.domain.common.errors import DuplicateRequest, PermissionDenied, Stale
from stallmates.domain.games import engine, invites
from stallmates.domain.games.coordinator import GameCoordinator
from stallmates.domain.games.models import GAMES, INVITES, GameStatus, InviteStatus
from stallmates.domain.presence import service as presence


async def _available(*uids):
    for uid in uids:
        session = await presence.attach(uid)
        await presence.set_availability(session, True)


@pytest.mark.asyncio
async def test_invite_requires_both_players_available(make_user):
    await make_user("alice")
    await make_user("bob")
    await _available("alice")
    with pytest.raises(PermissionDenied) as exc_info:
        await invites.send_invite("alice", "bob")
    assert exc_info.value.reason == "receiver_unavailable"

    await _available("bob")
    invite = await invites.send_invite("alice", "bob")
    assert invite.status is InviteStatus.PENDING
    with pytest.raises(DuplicateRequest):
        await invites.send_invite("alice", "bob")


@pytest.mark.asyncio
async def test_only_the_receiver_accepts(make_user):
    await make_user("alice")
    await make_user("bob")
    await _available("alice", "bob")
    invite = await invites.send_invite("alice", "bob")
    with pytest.raises(PermissionDenied):
        await invites.accept_invite("alice", invite.id)
    accepted = await invites.accept_invite("bob", invite.id)
    assert accepted.game_id.startswith("wordle_")
    assert await engine.get_game(accepted.game_id) is None
    with pytest.raises(Stale):
        await invites.cancel_invite("alice", invite.id)


@pytest.mark.asyncio
async def test_full_invite_to_game_flow(make_user):
    await make_user("alice")
    await make_user("bob")
    await _available("alice", "bob")
    alice = GameCoordinator("alice")
    bob = GameCoordinator("bob")
    try:
        await alice.send_invite("bob")
        view = await bob.tick()
        assert view["state"] == "incoming"

        await bob.accept(bob.incoming.id)
        assert bob.state == "active"
        assert (await alice.tick())["state"] == "active"
        assert alice.current.game_id == bob.current.game_id

        opened_by_bob = await bob.open_game()
        opened_by_alice = await alice.open_game()
        assert opened_by_bob["player1"] == opened_by_alice["player1"] == "bob"

        await bob.guess("slate")
        await alice.close_game()
        assert alice.current is None
        assert await invites.find_by_game_id(opened_by_bob["game_id"]) is None
        assert (await bob.tick())["state"] == "idle"
    finally:
        await alice.close()
        await bob.close()


@pytest.mark.asyncio
async def test_tick_collects_invite_for_completed_game(memory_store):
    await memory_store.create(
        INVITES,
        "inv-1",
        {
            "senderId": "alice",
            "receiverId": "bob",
            "gameType": "wordle",
            "status": InviteStatus.ACCEPTED.value,
            "gameId": "wordle_done",
            "createdAt": 1.0,
        },
    )
    await memory_store.create(
        GAMES,
        "wordle_done",
        {
            "word": "CRANE",
            "player1": "alice",
            "player2": "bob",
            "currentPlayer": "bob",
            "player1Guesses": ["CRANE"],
            "player2Guesses": [],
            "status": GameStatus.COMPLETED.value,
            "winner": "alice",
        },
    )
    coordinator = GameCoordinator("bob")
    try:
        view = await coordinator.tick()
    finally:
        await coordinator.close()
    assert view["state"] == "idle"
    assert await memory_store.get(INVITES, "inv-1") is None


@pytest.mark.asyncio
async def test_accepted_invite_without_game_is_active(memory_store):
    await memory_store.create(
        INVITES,
        "inv-2",
        {
            "senderId": "alice",
            "receiverId": "bob",
            "status": InviteStatus.ACCEPTED.value,
            "gameId": "wordle_new",
            "createdAt": 1.0,
        },
    )
    coordinator = GameCoordinator("alice")
    try:
        await coordinator.tick()
    finally:
        await coordinator.close()
    assert coordinator.current.game_id == "wordle_new"
    assert coordinator.current.opponent_id == "bob"


@pytest.mark.asyncio
async def test_send_status_clears_after_delay(make_user):
    await make_user("alice")
    await make_user("bob")
    await _available("alice")
    coordinator = GameCoordinator("alice", status_clear_delay=0.01)
    try:
        with pytest.raises(PermissionDenied):
            await coordinator.send_invite("bob")
        assert coordinator.send_status == "error"
        assert coordinator.send_error == "receiver_unavailable"
        await asyncio.sleep(0.1)
        assert coordinator.send_status is None
    finally:
        await coordinator.close()


@pytest.mark.asyncio
async def test_pushed_invite_wakes_the_loop(make_user):
    await make_user("alice")
    await make_user("bob")
    await _available("alice", "bob")
    bob = GameCoordinator("bob", poll_interval=60)
    bob.start()
    try:
        await asyncio.sleep(0.01)
        assert bob.state == "idle"
        await invites.send_invite("alice", "bob")
        for _ in range(50):
            if bob.state == "incoming":
                break
            await asyncio.sleep(0.01)
        assert bob.state == "incoming"
    finally:
        await bob.close()


@pytest.mark.asyncio
async def test_close_stops_callbacks_and_timers(make_user):
    await make_user("alice")
    await make_user("bob")
    await _available("alice", "bob")
    seen = []

    async def on_change(view):
        seen.append(view)

    coordinator = GameCoordinator("alice", on_change=on_change, poll_interval=0.01, status_clear_delay=30)
    coordinator.start()
    await coordinator.send_invite("bob")
    await asyncio.sleep(0.02)
    await coordinator.close()
    count = len(seen)
    assert coordinator.closed
    assert not coordinator._timers

    coordinator.wake()
    await asyncio.sleep(0.05)
    assert len(seen) == count
