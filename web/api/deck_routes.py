"""Deck API routes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, or_, select

from tracker.models import COLORS, Deck, DeckTag, Player, normalize_colors
from tracker.models.base import async_session_factory
from web.api.utils import (
    DECK_OPTIONS,
    IMAGE_URL_PATTERN,
    URL_PATTERN,
    clean_url,
    envelope,
    load_deck,
    paginated,
    serialize_deck,
)
from web.auth import ensure_owner_or_admin, require_player

router = APIRouter(prefix="/api/decks", tags=["decks"])


def _split(value: Optional[str]) -> list[str]:
    return [x.strip() for x in (value or "").split(",") if x.strip()]


def _clean_tags(tags: list[str]) -> list[str]:
    seen = []
    for tag in tags:
        tag = tag.strip()
        if not tag:
            continue
        if len(tag) > 30:
            raise ValueError("Tags cannot be more than 30 characters")
        if tag not in seen:
            seen.append(tag)
    return seen


def _check_colors(colors: list[str]) -> list[str]:
    for c in colors:
        if c.strip().upper() not in COLORS:
            raise ValueError(f"Invalid color: {c}. Use W, U, B, R, G or C")
    return colors


class DeckFields(BaseModel):
    decklist_url: Optional[str] = None
    image_url: Optional[str] = None
    color_identity: list[str] = []
    tags: list[str] = []

    @field_validator("decklist_url")
    @classmethod
    def check_decklist_url(cls, v):
        return clean_url(v, URL_PATTERN, "Please use a valid URL with HTTP or HTTPS")

    @field_validator("image_url")
    @classmethod
    def check_image_url(cls, v):
        return clean_url(v, IMAGE_URL_PATTERN, "Please provide a valid image URL")

    @field_validator("color_identity")
    @classmethod
    def check_colors(cls, v):
        return _check_colors(v)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, v):
        return _clean_tags(v)


class DeckCreate(DeckFields):
    name: str = Field(min_length=1, max_length=100)
    commander: str = Field(min_length=1, max_length=100)
    owner_id: Optional[int] = None  # admins only

    @field_validator("name", "commander", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class GuestDeckCreate(DeckCreate):
    guest_player_id: int


class DeckUpdate(DeckFields):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    commander: Optional[str] = Field(None, min_length=1, max_length=100)
    color_identity: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    owner_id: Optional[int] = None

    @field_validator("name", "commander", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("color_identity")
    @classmethod
    def check_colors(cls, v):
        return None if v is None else _check_colors(v)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, v):
        return None if v is None else _clean_tags(v)


def _new_deck(body: DeckCreate, owner_id: int) -> Deck:
    return Deck(
        owner_id=owner_id,
        name=body.name,
        commander=body.commander,
        decklist_url=body.decklist_url,
        image_url=body.image_url,
        colors=normalize_colors(body.color_identity),
        tag_rows=[DeckTag(tag=t) for t in body.tags],
    )


@router.get("")
async def list_decks(
    owner: Optional[int] = None,
    colors: Optional[str] = Query(None, description="Comma list, e.g. W,U: decks with any of them"),
    tags: Optional[str] = Query(None, description="Comma list: decks with any of them"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    current: Player = Depends(require_player),
):
    """List decks, newest first."""
    filters = []
    if owner is not None:
        filters.append(Deck.owner_id == owner)
    wanted_colors = normalize_colors(_split(colors))
    if wanted_colors:
        filters.append(or_(*[Deck.colors.contains(c) for c in wanted_colors]))
    wanted_tags = _split(tags)
    if wanted_tags:
        filters.append(Deck.tag_rows.any(DeckTag.tag.in_(wanted_tags)))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        filters.append(or_(Deck.name.ilike(pattern), Deck.commander.ilike(pattern)))

    async with async_session_factory() as session:
        total = (await session.execute(select(func.count(Deck.id)).where(*filters))).scalar_one()
        result = await session.execute(
            select(Deck)
            .where(*filters)
            .options(*DECK_OPTIONS)
            .order_by(Deck.created_at.desc(), Deck.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        data = [serialize_deck(d) for d in result.scalars().all()]
    return paginated(data, page=page, limit=limit, total=total)


@router.get("/{deck_id}")
async def get_deck(deck_id: int, current: Player = Depends(require_player)):
    async with async_session_factory() as session:
        deck = await load_deck(session, deck_id)
        if not deck:
            raise HTTPException(404, f"Deck not found with id of {deck_id}")
        return envelope(serialize_deck(deck))


@router.post("", status_code=201)
async def create_deck(body: DeckCreate, current: Player = Depends(require_player)):
    """Create a deck for the caller (admins may create for another player)."""
    owner_id = current.id
    async with async_session_factory() as session:
        if body.owner_id is not None and body.owner_id != current.id:
            if not current.is_admin:
                raise HTTPException(403, "Only admins can create decks for other players")
            if not await session.get(Player, body.owner_id):
                raise HTTPException(404, f"Player not found with id of {body.owner_id}")
            owner_id = body.owner_id
        deck = _new_deck(body, owner_id)
        session.add(deck)
        await session.commit()
        deck = await load_deck(session, deck.id)
        return envelope(serialize_deck(deck))


@router.post("/guest", status_code=201)
async def create_guest_deck(body: GuestDeckCreate, current: Player = Depends(require_player)):
    """Create a deck owned by a guest player."""
    async with async_session_factory() as session:
        guest = await session.get(Player, body.guest_player_id)
        if not guest:
            raise HTTPException(404, f"Player not found with id of {body.guest_player_id}")
        if not guest.is_guest:
            raise HTTPException(400, "Player is not a guest")
        deck = _new_deck(body, guest.id)
        session.add(deck)
        await session.commit()
        deck = await load_deck(session, deck.id)
        return envelope(serialize_deck(deck))


@router.put("/{deck_id}")
async def update_deck(deck_id: int, body: DeckUpdate, current: Player = Depends(require_player)):
    async with async_session_factory() as session:
        deck = await load_deck(session, deck_id)
        if not deck:
            raise HTTPException(404, f"Deck not found with id of {deck_id}")
        ensure_owner_or_admin(current, deck.owner_id, "Not authorized to update this deck")
        if body.owner_id is not None and body.owner_id != deck.owner_id:
            if not current.is_admin:
                raise HTTPException(403, "Only admins can change the deck owner")
            if not await session.get(Player, body.owner_id):
                raise HTTPException(404, f"Player not found with id of {body.owner_id}")
            deck.owner_id = body.owner_id
        if body.name is not None:
            deck.name = body.name
        if body.commander is not None:
            deck.commander = body.commander
        if "decklist_url" in body.model_fields_set:
            deck.decklist_url = body.decklist_url
        if "image_url" in body.model_fields_set:
            deck.image_url = body.image_url
        if body.color_identity is not None:
            deck.colors = normalize_colors(body.color_identity)
        if body.tags is not None:
            deck.tag_rows = [DeckTag(tag=t) for t in body.tags]
        await session.commit()
        deck = await load_deck(session, deck.id)
        return envelope(serialize_deck(deck))


@router.delete("/{deck_id}")
async def delete_deck(deck_id: int, current: Player = Depends(require_player)):
    async with async_session_factory() as session:
        deck = await load_deck(session, deck_id)
        if not deck:
            raise HTTPException(404, f"Deck not found with id of {deck_id}")
        ensure_owner_or_admin(current, deck.owner_id, "Not authorized to delete this deck")
        await session.delete(deck)
        await session.commit()
    return envelope({})
