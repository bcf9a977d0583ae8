"""Game API routes. Participant lists are validated as a whole before anything is written."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.models import MAX_PLAYERS, Deck, Game, GameParticipant, Player
from tracker.models.base import async_session_factory, utcnow
from tracker.services.game_validation import validate_participants
from web.api.errors import ValidationFailed
from web.api.utils import GAME_OPTIONS, envelope, load_game, naive_utc, paginated, serialize_game
from web.auth import ensure_owner_or_admin, require_player

logger = logging.getLogger("tracker.api")

router = APIRouter(prefix="/api/games", tags=["games"])


class ParticipantIn(BaseModel):
    player_id: int
    deck_id: int
    placement: int = Field(ge=1, le=MAX_PLAYERS)
    eliminated_by_id: Optional[int] = None
    borrowed_from_id: Optional[int] = None


class GameCreate(BaseModel):
    date: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, ge=1, le=600)
    notes: Optional[str] = Field(None, max_length=500)
    participants: list[ParticipantIn]


class GameUpdate(BaseModel):
    date: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, ge=1, le=600)
    notes: Optional[str] = Field(None, max_length=500)
    participants: Optional[list[ParticipantIn]] = None


async def _check_participants(session: AsyncSession, participants: list[ParticipantIn]) -> list[GameParticipant]:
    """Validate placements and references; raise ValidationFailed or return new rows."""
    result = validate_participants(participants)
    errors = list(result.errors)

    player_ids = {p.player_id for p in participants}
    player_ids |= {p.borrowed_from_id for p in participants if p.borrowed_from_id is not None}
    deck_ids = {p.deck_id for p in participants}
    found_players = set((await session.execute(select(Player.id).where(Player.id.in_(player_ids)))).scalars())
    found_decks = set((await session.execute(select(Deck.id).where(Deck.id.in_(deck_ids)))).scalars())
    for missing in sorted(player_ids - found_players):
        errors.append({"field": "participants.player_id", "message": f"Player not found with id of {missing}"})
    for missing in sorted(deck_ids - found_decks):
        errors.append({"field": "participants.deck_id", "message": f"Deck not found with id of {missing}"})

    if errors:
        raise ValidationFailed(errors)
    return [GameParticipant(**p.model_dump()) for p in participants]


@router.get("")
async def list_games(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    player: Optional[int] = None,
    deck: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    current: Player = Depends(require_player),
):
    """List games, newest first."""
    filters = []
    if start_date is not None:
        filters.append(Game.date >= naive_utc(start_date))
    if end_date is not None:
        filters.append(Game.date <= naive_utc(end_date))
    if player is not None:
        filters.append(Game.participants.any(GameParticipant.player_id == player))
    if deck is not None:
        filters.append(Game.participants.any(GameParticipant.deck_id == deck))

    async with async_session_factory() as session:
        total = (await session.execute(select(func.count(Game.id)).where(*filters))).scalar_one()
        result = await session.execute(
            select(Game)
            .where(*filters)
            .options(*GAME_OPTIONS)
            .order_by(Game.date.desc(), Game.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        data = [serialize_game(g) for g in result.scalars().all()]
    return paginated(data, page=page, limit=limit, total=total)


@router.get("/{game_id}")
async def get_game(game_id: int, current: Player = Depends(require_player)):
    async with async_session_factory() as session:
        game = await load_game(session, game_id)
        if not game:
            raise HTTPException(404, f"Game not found with id of {game_id}")
        return envelope(serialize_game(game))


@router.post("", status_code=201)
async def create_game(body: GameCreate, current: Player = Depends(require_player)):
    """Record a finished game. The caller becomes its creator."""
    async with async_session_factory() as session:
        participants = await _check_participants(session, body.participants)
        game = Game(
            created_by_id=current.id,
            date=naive_utc(body.date) or utcnow(),
            duration_minutes=body.duration_minutes,
            notes=body.notes,
            participants=participants,
        )
        session.add(game)
        await session.commit()
        game = await load_game(session, game.id)
        logger.info("Player %s recorded game %s with %d players", current.id, game.id, len(participants))
        return envelope(serialize_game(game))


@router.put("/{game_id}")
async def update_game(game_id: int, body: GameUpdate, current: Player = Depends(require_player)):
    """Update a game (creator or admin). Supplied participants replace the old list."""
    async with async_session_factory() as session:
        game = await load_game(session, game_id)
        if not game:
            raise HTTPException(404, f"Game not found with id of {game_id}")
        ensure_owner_or_admin(current, game.created_by_id, "Not authorized to update this game")
        if body.participants is not None:
            game.participants = await _check_participants(session, body.participants)
        if body.date is not None:
            game.date = naive_utc(body.date)
        if "duration_minutes" in body.model_fields_set:
            game.duration_minutes = body.duration_minutes
        if "notes" in body.model_fields_set:
            game.notes = body.notes
        await session.commit()
        game = await load_game(session, game.id)
        return envelope(serialize_game(game))


@router.delete("/{game_id}")
async def delete_game(game_id: int, current: Player = Depends(require_player)):
    async with async_session_factory() as session:
        game = await load_game(session, game_id)
        if not game:
            raise HTTPException(404, f"Game not found with id of {game_id}")
        ensure_owner_or_admin(current, game.created_by_id, "Not authorized to delete this game")
        await session.delete(game)
        await session.commit()
    return envelope({})
