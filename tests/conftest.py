"""Pytest configuration and fixtures for API tests."""
import os

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["ENABLE_RATE_LIMITING"] = "false"
os.environ["INITIAL_ADMIN_EMAIL"] = "admin@tracker.io"
os.environ["INITIAL_ADMIN_PASSWORD"] = "testpass123"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from httpx import ASGITransport, AsyncClient

from tracker.models.base import reset_db
from web.api.main import app

COMMANDERS = ["Atraxa, Praetors' Voice", "Edgar Markov", "Krenko, Mob Boss", "Yuriko, the Tiger's Shadow"]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh tables for every test (ASGI lifespan doesn't run with httpx)."""
    await reset_db()


@pytest.fixture
async def client():
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def auth_headers(client):
    """Login as the bootstrap admin and return Authorization headers."""
    r = await client.post(
        "/api/auth/login",
        json={"email": "admin@tracker.io", "password": "testpass123"},
    )
    assert r.status_code == 200, f"Login failed: {r.text}"
    token = r.json()["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register(client):
    """Factory: register a player, return (headers, user)."""

    async def _register(name="Alice", email=None, password="secret123", **extra):
        r = await client.post(
            "/api/auth/register",
            json={
                "name": name,
                "email": email or f"{name.lower()}@mail.com",
                "password": password,
                **extra,
            },
        )
        assert r.status_code == 201, f"Register failed: {r.text}"
        body = r.json()
        return {"Authorization": f"Bearer {body['token']}"}, body["user"]

    return _register


@pytest.fixture
def create_deck(client):
    """Factory: create a deck with the given headers, return its data."""

    async def _create_deck(headers, name="Test Deck", commander="Edgar Markov", **extra):
        r = await client.post(
            "/api/decks",
            json={"name": name, "commander": commander, **extra},
            headers=headers,
        )
        assert r.status_code == 201, f"Create deck failed: {r.text}"
        return r.json()["data"]

    return _create_deck


@pytest.fixture
async def pod(register, create_deck):
    """Four registered players, each with one deck: list of (headers, user, deck)."""
    seats = []
    for name, commander in zip(["Alice", "Bruno", "Chloe", "Dario"], COMMANDERS):
        headers, user = await register(name=name)
        deck = await create_deck(headers, name=f"{name}'s deck", commander=commander)
        seats.append((headers, user, deck))
    return seats


@pytest.fixture
def participants_for(pod):
    """Factory: participant list for the pod with the given placements.

    eliminated_by maps a seat index to the index of the seat that knocked it out.
    """

    def _participants(placements, eliminated_by=None):
        eliminated_by = eliminated_by or {}
        rows = []
        for i, (_, user, deck) in enumerate(pod):
            row = {"player_id": user["id"], "deck_id": deck["id"], "placement": placements[i]}
            if i in eliminated_by:
                row["eliminated_by_id"] = pod[eliminated_by[i]][1]["id"]
            rows.append(row)
        return rows

    return _participants
