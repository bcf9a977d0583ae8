"""Shared API utilities: response envelope, pagination, serializers, loaders."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tracker.models import Deck, Game, GameParticipant, Player

URL_PATTERN = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)
IMAGE_URL_PATTERN = re.compile(r"^https?://[^\s]+\.(jpe?g|png|gif|webp)(\?[^\s]*)?$", re.IGNORECASE)


def clean_url(value: Optional[str], pattern: re.Pattern, message: str) -> Optional[str]:
    """Strip a URL field; blank becomes None, anything not matching raises ValueError."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not pattern.match(value):
        raise ValueError(message)
    return value


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert aware datetimes to naive UTC (the storage format)."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# --- Envelope ---


def envelope(data: Any = None, message: Optional[str] = None, **extra) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    body.update(extra)
    return body


def paginated(data: list, *, page: int, limit: int, total: int) -> dict:
    """List envelope with count, total and next/prev page links."""
    start = (page - 1) * limit
    pagination = {}
    if start + limit < total:
        pagination["next"] = {"page": page + 1, "limit": limit}
    if start > 0:
        pagination["prev"] = {"page": page - 1, "limit": limit}
    return {
        "success": True,
        "count": len(data),
        "total": total,
        "pagination": pagination,
        "data": data,
    }


# --- Response schemas ---


class PlayerSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    nickname: Optional[str] = None
    display_name: str
    profile_image: str = ""
    is_guest: bool = False


class DeckSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    name: str
    commander: str
    color_identity: list[str]
    image_url: Optional[str] = None


class PlayerResponse(PlayerSummary):
    email: Optional[str] = None
    is_admin: bool = False
    created_at: datetime
    updated_at: datetime
    decks: list[DeckSummary] = []


class DeckResponse(DeckSummary):
    decklist_url: Optional[str] = None
    tags: list[str] = []
    created_at: datetime
    updated_at: datetime
    owner: Optional[PlayerSummary] = None


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: int
    deck_id: int
    placement: int
    eliminated_by_id: Optional[int] = None
    borrowed_from_id: Optional[int] = None
    # None when the referenced player or deck has since been deleted
    player: Optional[PlayerSummary] = None
    deck: Optional[DeckSummary] = None
    eliminated_by: Optional[PlayerSummary] = None
    borrowed_from: Optional[PlayerSummary] = None


class GameResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: datetime
    duration_minutes: Optional[int] = None
    notes: Optional[str] = None
    created_by_id: int
    created_by: Optional[PlayerSummary] = None
    created_at: datetime
    updated_at: datetime
    participants: list[ParticipantResponse]


def player_summary(player: Optional[Player]) -> Optional[dict]:
    return PlayerSummary.model_validate(player).model_dump() if player else None


def deck_summary(deck: Optional[Deck]) -> Optional[dict]:
    return DeckSummary.model_validate(deck).model_dump() if deck else None


def serialize_player(player: Player) -> dict:
    return PlayerResponse.model_validate(player).model_dump()


def serialize_deck(deck: Deck) -> dict:
    return DeckResponse.model_validate(deck).model_dump()


def serialize_game(game: Game) -> dict:
    return GameResponse.model_validate(game).model_dump()


# --- Eager-loading options (async sessions cannot lazy load) ---

PLAYER_OPTIONS = (selectinload(Player.decks),)
DECK_OPTIONS = (selectinload(Deck.owner), selectinload(Deck.tag_rows))
GAME_OPTIONS = (
    selectinload(Game.created_by),
    selectinload(Game.participants).selectinload(GameParticipant.player),
    selectinload(Game.participants).selectinload(GameParticipant.deck),
    selectinload(Game.participants).selectinload(GameParticipant.eliminated_by),
    selectinload(Game.participants).selectinload(GameParticipant.borrowed_from),
)


async def load_player(session: AsyncSession, player_id: int) -> Optional[Player]:
    result = await session.execute(
        select(Player)
        .where(Player.id == player_id)
        .options(*PLAYER_OPTIONS)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def load_deck(session: AsyncSession, deck_id: int) -> Optional[Deck]:
    result = await session.execute(
        select(Deck)
        .where(Deck.id == deck_id)
        .options(*DECK_OPTIONS)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def load_game(session: AsyncSession, game_id: int) -> Optional[Game]:
    result = await session.execute(
        select(Game)
        .where(Game.id == game_id)
        .options(*GAME_OPTIONS)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
