"""Player API routes: guests, listing, profile edits, admin deletion."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from tracker.models import Deck, Player
from tracker.models.base import async_session_factory
from web.api.utils import (
    IMAGE_URL_PATTERN,
    PLAYER_OPTIONS,
    clean_url,
    envelope,
    load_player,
    paginated,
    player_summary,
    serialize_player,
)
from web.auth import ensure_owner_or_admin, require_admin_player, require_player

logger = logging.getLogger("tracker.api")

router = APIRouter(prefix="/api/players", tags=["players"])


class GuestCreate(BaseModel):
    nickname: str = Field(min_length=2, max_length=30)

    @field_validator("nickname", mode="before")
    @classmethod
    def strip_nickname(cls, v):
        return v.strip() if isinstance(v, str) else v


class PlayerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    nickname: Optional[str] = Field(None, max_length=30)
    profile_image: Optional[str] = None
    is_admin: Optional[bool] = None

    @field_validator("name", "nickname", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("profile_image")
    @classmethod
    def check_image(cls, v):
        return clean_url(v, IMAGE_URL_PATTERN, "Please provide a valid image URL")


async def _count_admins(session) -> int:
    result = await session.execute(select(func.count(Player.id)).where(Player.is_admin.is_(True)))
    return result.scalar_one()


@router.post("/guest", status_code=201)
async def create_guest(body: GuestCreate, current: Player = Depends(require_player)):
    """Create a guest player (no login) so their games can be recorded."""
    async with async_session_factory() as session:
        taken = await session.execute(
            select(Player.id).where(
                or_(
                    func.lower(Player.nickname) == body.nickname.lower(),
                    func.lower(Player.name) == body.nickname.lower(),
                )
            )
        )
        if taken.first() is not None:
            raise HTTPException(400, "A player with this nickname already exists")
        player = Player(name=body.nickname, nickname=body.nickname, is_guest=True)
        session.add(player)
        await session.commit()
        player = await load_player(session, player.id)
    logger.info("Player %s created guest %s (%s)", current.id, player.id, player.nickname)
    return envelope(serialize_player(player))


@router.get("/guest/check/{nickname}")
async def check_guest(nickname: str):
    """Public: does a guest with this nickname exist? Used by registration to offer claiming it."""
    async with async_session_factory() as session:
        result = await session.execute(
            select(Player).where(
                Player.is_guest.is_(True),
                func.lower(Player.nickname) == nickname.strip().lower(),
            )
        )
        guest = result.scalars().first()
    return {"success": True, "exists": guest is not None, "data": player_summary(guest)}


@router.get("")
async def list_players(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    current: Player = Depends(require_player),
):
    """List players sorted by name, with their decks."""
    async with async_session_factory() as session:
        total = (await session.execute(select(func.count(Player.id)))).scalar_one()
        result = await session.execute(
            select(Player)
            .options(*PLAYER_OPTIONS)
            .order_by(Player.name, Player.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        players = result.scalars().all()
        data = [serialize_player(p) for p in players]
    return paginated(data, page=page, limit=limit, total=total)


@router.get("/{player_id}")
async def get_player(player_id: int, current: Player = Depends(require_player)):
    async with async_session_factory() as session:
        player = await load_player(session, player_id)
        if not player:
            raise HTTPException(404, f"Player not found with id of {player_id}")
        return envelope(serialize_player(player))


@router.put("/{player_id}")
async def update_player(player_id: int, body: PlayerUpdate, current: Player = Depends(require_player)):
    """Update a player. Players edit themselves; admins edit anyone and grant admin."""
    async with async_session_factory() as session:
        player = await session.get(Player, player_id)
        if not player:
            raise HTTPException(404, f"Player not found with id of {player_id}")
        ensure_owner_or_admin(current, player.id, "Not authorized to update this player")
        if body.is_admin is not None and body.is_admin != player.is_admin:
            if not current.is_admin:
                raise HTTPException(403, "Only admins can change admin status")
            if not body.is_admin and await _count_admins(session) <= 1:
                raise HTTPException(400, "Cannot remove admin status from the last admin user")
            player.is_admin = body.is_admin
        if body.email is not None:
            email = body.email.lower()
            if email != player.email:
                taken = await session.execute(select(Player.id).where(Player.email == email))
                if taken.scalar_one_or_none() is not None:
                    raise HTTPException(400, "Email is already in use")
                player.email = email
        if body.name is not None:
            player.name = body.name
        if "nickname" in body.model_fields_set:
            player.nickname = body.nickname or None
        if "profile_image" in body.model_fields_set:
            player.profile_image = body.profile_image or ""
        await session.commit()
        player = await load_player(session, player.id)
        return envelope(serialize_player(player))


@router.delete("/{player_id}")
async def delete_player(player_id: int, admin: Player = Depends(require_admin_player)):
    """Delete a player and their decks (admin only). Recorded games are kept."""
    async with async_session_factory() as session:
        result = await session.execute(
            select(Player)
            .where(Player.id == player_id)
            .options(selectinload(Player.decks).selectinload(Deck.tag_rows))
        )
        player = result.scalar_one_or_none()
        if not player:
            raise HTTPException(404, f"Player not found with id of {player_id}")
        if player.is_admin and await _count_admins(session) <= 1:
            raise HTTPException(400, "Cannot delete the last admin user")
        await session.delete(player)
        await session.commit()
    logger.info("Admin %s deleted player %s", admin.id, player_id)
    return envelope({})
