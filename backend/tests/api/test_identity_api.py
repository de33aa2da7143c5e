import pytest


@pytest.mark.asyncio
async def test_register_sign_in_and_me(api_client):
    response = await api_client.post(
        "/auth/register",
        json={"email": "ann@example.com", "password": "hunter22", "display_name": "Ann"},
    )
    assert response.status_code == 201
    user_id = response.json()["id"]

    response = await api_client.post("/auth/sign-in", json={"email": "ann@example.com", "password": "hunter22"})
    assert response.status_code == 200
    body = response.json()
    assert body["profile"]["id"] == user_id
    headers = {"Authorization": f"Bearer {body['access_token']}"}

    me = await api_client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["display_name"] == "Ann"

    presence = await api_client.get("/presence/me", headers=headers)
    assert presence.json()["online"] is True

    out = await api_client.post("/auth/sign-out", headers=headers)
    assert out.status_code == 200
    presence = await api_client.get("/presence/me", headers=headers)
    assert presence.json()["online"] is False


@pytest.mark.asyncio
async def test_duplicate_email_conflicts(api_client):
    payload = {"email": "ann@example.com", "password": "hunter22", "display_name": "Ann"}
    assert (await api_client.post("/auth/register", json=payload)).status_code == 201
    response = await api_client.post("/auth/register", json=payload)
    assert response.status_code == 409
    assert response.json()["detail"] == "email_taken"


@pytest.mark.asyncio
async def test_bad_credentials_are_unauthorised(api_client):
    response = await api_client.post("/auth/sign-in", json={"email": "nobody@example.com", "password": "whatever"})
    assert response.status_code == 401
    assert response.json()["detail"] == "invalid_credentials"


@pytest.mark.asyncio
async def test_missing_auth_is_rejected(api_client):
    response = await api_client.get("/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_profile_hides_email_of_others(api_client, make_user):
    await make_user("alice")
    await make_user("bob")
    response = await api_client.get("/profile/bob", headers={"X-User-Id": "alice"})
    assert response.status_code == 200
    assert response.json()["email"] == ""
    own = await api_client.get("/profile/alice", headers={"X-User-Id": "alice"})
    assert own.json()["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_rename(api_client, make_user):
    await make_user("alice")
    response = await api_client.patch("/profile/me", json={"display_name": "Ally"}, headers={"X-User-Id": "alice"})
    assert response.status_code == 200
    assert response.json()["display_name"] == "Ally"
