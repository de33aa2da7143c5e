import pytest

from stallmates.domain.games import words
from stallmates.domain.presence import service as presence


def _as(uid):
    return {"X-User-Id": uid}


@pytest.fixture
def fixed_word(monkeypatch):
    monkeypatch.setattr(words, "pick_word", lambda rng=None: "CRANE")


async def _available(*uids):
    for uid in uids:
        session = await presence.attach(uid)
        await presence.set_availability(session, True)


@pytest.mark.asyncio
async def test_invite_to_finished_game(api_client, make_user, fixed_word):
    await make_user("alice")
    await make_user("bob")
    await _available("alice", "bob")

    sent = await api_client.post("/games/invites", json={"to_user_id": "bob"}, headers=_as("alice"))
    assert sent.status_code == 201
    invite_id = sent.json()["id"]

    tick = await api_client.post("/games/coordinator/tick", headers=_as("bob"))
    assert tick.json()["state"] == "incoming"
    assert tick.json()["incoming"]["id"] == invite_id
    assert tick.json()["incoming"]["sender_name"] == "Alice"

    incoming = await api_client.get("/games/invites/incoming", headers=_as("bob"))
    assert [(row["id"], row["sender_name"]) for row in incoming.json()] == [(invite_id, "Alice")]

    accepted = await api_client.post(f"/games/invites/{invite_id}/accept", headers=_as("bob"))
    assert accepted.status_code == 200
    game_id = accepted.json()["game_id"]

    tick = await api_client.post("/games/coordinator/tick", headers=_as("alice"))
    assert tick.json()["state"] == "active"
    assert tick.json()["game"]["opponent_id"] == "bob"

    opened = await api_client.post(f"/games/{game_id}/open", headers=_as("bob"))
    assert opened.status_code == 200
    assert opened.json()["your_turn"] is True
    assert opened.json()["word"] is None

    wrong_turn = await api_client.post(f"/games/{game_id}/guess", json={"guess": "slate"}, headers=_as("alice"))
    assert wrong_turn.status_code == 409
    assert wrong_turn.json()["detail"] == "not_your_turn"

    first = await api_client.post(f"/games/{game_id}/guess", json={"guess": "slate"}, headers=_as("bob"))
    assert first.status_code == 200
    assert first.json()["player1_guesses"][0]["feedback"] == ["absent", "absent", "exact", "absent", "exact"]

    peek = await api_client.get(f"/games/{game_id}", headers=_as("alice"))
    assert peek.json()["your_turn"] is True
    assert peek.json()["word"] is None

    won = await api_client.post(f"/games/{game_id}/guess", json={"guess": "crane"}, headers=_as("alice"))
    assert won.json()["status"] == "completed"
    assert won.json()["winner"] == "alice"
    assert won.json()["word"] == "CRANE"

    closed = await api_client.post(f"/games/{game_id}/close", headers=_as("alice"))
    assert closed.json() == {"ok": True, "removed": 1}
    tick = await api_client.post("/games/coordinator/tick", headers=_as("bob"))
    assert tick.json()["state"] == "idle"


@pytest.mark.asyncio
async def test_unavailable_receiver_is_forbidden(api_client, make_user):
    await make_user("alice")
    await make_user("bob")
    await _available("alice")
    response = await api_client.post("/games/invites", json={"to_user_id": "bob"}, headers=_as("alice"))
    assert response.status_code == 403
    assert response.json()["detail"] == "receiver_unavailable"


@pytest.mark.asyncio
async def test_outsiders_cannot_view_a_game(api_client, make_user):
    await make_user("alice")
    await make_user("bob")
    await make_user("mallory")
    await _available("alice", "bob")
    sent = await api_client.post("/games/invites", json={"to_user_id": "bob"}, headers=_as("alice"))
    accepted = await api_client.post(f"/games/invites/{sent.json()['id']}/accept", headers=_as("bob"))
    game_id = accepted.json()["game_id"]

    assert (await api_client.post(f"/games/{game_id}/open", headers=_as("mallory"))).status_code == 403
    assert (await api_client.get("/games/wordle_missing", headers=_as("alice"))).status_code == 404
