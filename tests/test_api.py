"""Tests for basic API functionality and authentication."""
import pytest


@pytest.mark.asyncio
async def test_health(client):
    """Health endpoint returns ok."""
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["success"] is True


@pytest.mark.asyncio
async def test_root_info(client):
    """Root describes the API when no frontend build exists."""
    r = await client.get("/")
    assert r.status_code == 200
    assert r.json()["message"] == "Commander Playgroup Tracker API"


@pytest.mark.asyncio
async def test_unknown_api_route_uses_envelope(client):
    """Unknown routes return the error envelope."""
    r = await client.get("/api/nope")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Not Found"}


@pytest.mark.asyncio
async def test_login_bootstraps_admin(client):
    """First login with the configured admin credentials creates an admin."""
    r = await client.post("/api/auth/login", json={"email": "ADMIN@tracker.io", "password": "testpass123"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["is_admin"] is True
    assert body["user"]["email"] == "admin@tracker.io"


@pytest.mark.asyncio
async def test_login_invalid_credentials(client, register):
    """Wrong password and unknown email both get 401."""
    await register(name="Alice")
    r = await client.post("/api/auth/login", json={"email": "alice@mail.com", "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Invalid credentials"}
    r = await client.post("/api/auth/login", json={"email": "nobody@mail.com", "password": "secret123"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_register_and_me(client, register):
    """Registered player gets a token that works for /me."""
    headers, user = await register(name="Alice", nickname="Ally")
    assert user["display_name"] == "Ally"
    assert user["is_admin"] is False
    assert user["is_guest"] is False
    r = await client.get("/api/auth/me", headers=headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["id"] == user["id"]
    assert data["email"] == "alice@mail.com"
    assert data["decks"] == []


@pytest.mark.asyncio
async def test_register_duplicate_email(client, register):
    """Registering an existing email is rejected."""
    await register(name="Alice")
    r = await client.post(
        "/api/auth/register",
        json={"name": "Other", "email": "Alice@Mail.com", "password": "secret123"},
    )
    assert r.status_code == 400
    assert r.json()["message"] == "User with this email already exists"


@pytest.mark.asyncio
async def test_register_validation_errors(client):
    """Short password and bad email are reported per field."""
    r = await client.post(
        "/api/auth/register",
        json={"name": "Alice", "email": "not-an-email", "password": "123"},
    )
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    fields = {e["field"] for e in body["errors"]}
    assert {"email", "password"} <= fields


@pytest.mark.asyncio
async def test_me_requires_auth(client):
    """Protected route without a token is 401 with a Bearer challenge."""
    r = await client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json()["message"] == "Not authorized to access this route"
    assert r.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_invalid_token_rejected(client):
    """Garbage token is treated as not logged in."""
    r = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_x_auth_token_fallback(client, register):
    """X-Auth-Token works when Authorization is stripped by a proxy."""
    headers, user = await register(name="Alice")
    token = headers["Authorization"].split(" ", 1)[1]
    r = await client.get("/api/auth/me", headers={"X-Auth-Token": token})
    assert r.status_code == 200
    assert r.json()["data"]["id"] == user["id"]


@pytest.mark.asyncio
async def test_update_details(client, register):
    """Player updates own name, nickname and email."""
    headers, _ = await register(name="Alice")
    await register(name="Bruno")
    r = await client.put(
        "/api/auth/updatedetails",
        json={"name": "Alicia", "nickname": "Lici", "profile_image": "https://img.host/me.png?size=64"},
        headers=headers,
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["name"] == "Alicia"
    assert data["display_name"] == "Lici"
    assert data["profile_image"] == "https://img.host/me.png?size=64"

    r = await client.put("/api/auth/updatedetails", json={"email": "bruno@mail.com"}, headers=headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_update_password(client, register):
    """Wrong current password is 401; the new password works afterwards."""
    headers, _ = await register(name="Alice")
    r = await client.put(
        "/api/auth/updatepassword",
        json={"current_password": "nope-nope", "new_password": "another1"},
        headers=headers,
    )
    assert r.status_code == 401
    r = await client.put(
        "/api/auth/updatepassword",
        json={"current_password": "secret123", "new_password": "another1"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["token"]
    r = await client.post("/api/auth/login", json={"email": "alice@mail.com", "password": "another1"})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_logout(client, register):
    """Logout acknowledges."""
    headers, _ = await register(name="Alice")
    r = await client.post("/api/auth/logout", headers=headers)
    assert r.status_code == 200
    assert r.json()["success"] is True


@pytest.mark.asyncio
async def test_register_claims_guest(client, auth_headers):
    """Registering with a guest's nickname converts that guest, keeping id, decks and games."""
    r = await client.post("/api/players/guest", json={"nickname": "Bob"}, headers=auth_headers)
    assert r.status_code == 201
    guest = r.json()["data"]
    assert guest["is_guest"] is True

    r = await client.post(
        "/api/decks/guest",
        json={"guest_player_id": guest["id"], "name": "Bob's Goblins", "commander": "Krenko, Mob Boss"},
        headers=auth_headers,
    )
    assert r.status_code == 201
    deck = r.json()["data"]

    me = (await client.get("/api/auth/me", headers=auth_headers)).json()["data"]
    admin_deck = (
        await client.post("/api/decks", json={"name": "Vamps", "commander": "Edgar Markov"}, headers=auth_headers)
    ).json()["data"]
    r = await client.post(
        "/api/games",
        json={
            "participants": [
                {"player_id": guest["id"], "deck_id": deck["id"], "placement": 1},
                {"player_id": me["id"], "deck_id": admin_deck["id"], "placement": 2, "eliminated_by_id": guest["id"]},
            ]
        },
        headers=auth_headers,
    )
    assert r.status_code == 201

    r = await client.post(
        "/api/auth/register",
        json={"name": "Robert", "email": "bob@mail.com", "password": "secret123", "nickname": "Bob"},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["converted_from_guest"] is True
    assert body["user"]["id"] == guest["id"]
    assert body["user"]["is_guest"] is False
    assert [d["id"] for d in body["user"]["decks"]] == [deck["id"]]

    headers = {"Authorization": f"Bearer {body['token']}"}
    r = await client.get(f"/api/stats/player/{guest['id']}", headers=headers)
    assert r.json()["data"]["statistics"]["wins"] == 1
