"""Tests for player routes."""
import pytest


@pytest.mark.asyncio
async def test_list_players_paginated(client, register):
    """Players are sorted by name and paginated."""
    headers, _ = await register(name="Chloe")
    await register(name="Alice")
    await register(name="Bruno")
    r = await client.get("/api/players?limit=2", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 2
    assert body["total"] == 3
    assert [p["name"] for p in body["data"]] == ["Alice", "Bruno"]
    assert body["pagination"] == {"next": {"page": 2, "limit": 2}}

    r = await client.get("/api/players?limit=2&page=2", headers=headers)
    body = r.json()
    assert [p["name"] for p in body["data"]] == ["Chloe"]
    assert body["pagination"] == {"prev": {"page": 1, "limit": 2}}


@pytest.mark.asyncio
async def test_list_players_requires_auth(client):
    r = await client.get("/api/players")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_get_player_not_found(client, register):
    headers, _ = await register(name="Alice")
    r = await client.get("/api/players/999", headers=headers)
    assert r.status_code == 404
    assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_update_self_and_others(client, register):
    """Players edit themselves but not others."""
    alice_headers, alice = await register(name="Alice")
    _, bruno = await register(name="Bruno")
    r = await client.put(f"/api/players/{alice['id']}", json={"nickname": "Ace"}, headers=alice_headers)
    assert r.status_code == 200
    assert r.json()["data"]["nickname"] == "Ace"

    r = await client.put(f"/api/players/{bruno['id']}", json={"nickname": "Bozo"}, headers=alice_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_only_admin_changes_admin_status(client, register, auth_headers):
    """Non-admins cannot promote themselves; admins can promote others."""
    headers, alice = await register(name="Alice")
    r = await client.put(f"/api/players/{alice['id']}", json={"is_admin": True}, headers=headers)
    assert r.status_code == 403
    assert r.json()["message"] == "Only admins can change admin status"

    r = await client.put(f"/api/players/{alice['id']}", json={"is_admin": True}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["data"]["is_admin"] is True


@pytest.mark.asyncio
async def test_cannot_delete_last_admin(client, auth_headers):
    """The only admin cannot be deleted."""
    me = (await client.get("/api/auth/me", headers=auth_headers)).json()["data"]
    r = await client.delete(f"/api/players/{me['id']}", headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Cannot delete the last admin user"


@pytest.mark.asyncio
async def test_cannot_demote_last_admin(client, auth_headers):
    me = (await client.get("/api/auth/me", headers=auth_headers)).json()["data"]
    r = await client.put(f"/api/players/{me['id']}", json={"is_admin": False}, headers=auth_headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_delete_player_requires_admin(client, register):
    headers, _ = await register(name="Alice")
    _, bruno = await register(name="Bruno")
    r = await client.delete(f"/api/players/{bruno['id']}", headers=headers)
    assert r.status_code == 403
    assert r.json()["message"] == "Access denied. Admin privileges required."


@pytest.mark.asyncio
async def test_delete_player_removes_decks(client, register, create_deck, auth_headers):
    """Deleting a player deletes the decks they own."""
    headers, bruno = await register(name="Bruno")
    deck = await create_deck(headers)
    r = await client.delete(f"/api/players/{bruno['id']}", headers=auth_headers)
    assert r.status_code == 200
    r = await client.get(f"/api/decks/{deck['id']}", headers=auth_headers)
    assert r.status_code == 404
    r = await client.get(f"/api/players/{bruno['id']}", headers=auth_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_guest_players(client, register):
    """Guests are created once per nickname and can be looked up publicly."""
    headers, _ = await register(name="Alice")
    r = await client.get("/api/players/guest/check/Bob")
    assert r.status_code == 200
    assert r.json() == {"success": True, "exists": False, "data": None}

    r = await client.post("/api/players/guest", json={"nickname": " Bob "}, headers=headers)
    assert r.status_code == 201
    guest = r.json()["data"]
    assert guest["name"] == "Bob"
    assert guest["is_guest"] is True
    assert guest["email"] is None

    r = await client.post("/api/players/guest", json={"nickname": "bob"}, headers=headers)
    assert r.status_code == 400

    r = await client.get("/api/players/guest/check/bob")
    body = r.json()
    assert body["exists"] is True
    assert body["data"]["id"] == guest["id"]


@pytest.mark.asyncio
async def test_guest_nickname_validation(client, register):
    headers, _ = await register(name="Alice")
    r = await client.post("/api/players/guest", json={"nickname": "B"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "nickname"
