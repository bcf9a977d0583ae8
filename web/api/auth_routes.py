"""Auth API routes: register, login, current player, profile and password updates."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import func, select

import config
from tracker.models import Player
from tracker.models.base import async_session_factory
from web.api.utils import IMAGE_URL_PATTERN, clean_url, envelope, load_player, serialize_player
from web.auth import (
    create_access_token,
    get_player_by_email,
    hash_password,
    require_player,
    verify_password,
)

logger = logging.getLogger("tracker.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    nickname: Optional[str] = Field(None, max_length=30)
    profile_image: Optional[str] = None

    @field_validator("name", "nickname", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("profile_image")
    @classmethod
    def check_image(cls, v):
        return clean_url(v, IMAGE_URL_PATTERN, "Please provide a valid image URL")


class LoginRequest(BaseModel):
    email: str
    password: str


class UpdateDetailsRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    nickname: Optional[str] = Field(None, max_length=30)
    profile_image: Optional[str] = None

    @field_validator("name", "nickname", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("profile_image")
    @classmethod
    def check_image(cls, v):
        return clean_url(v, IMAGE_URL_PATTERN, "Please provide a valid image URL")


class UpdatePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


def _token_response(player: Player, **extra) -> dict:
    return {
        "success": True,
        "token": create_access_token(player.id),
        "user": serialize_player(player),
        **extra,
    }


@router.post("/register", status_code=201)
async def register(body: RegisterRequest):
    """Create an account. A guest with the same nickname is converted in place."""
    email = body.email.lower()
    async with async_session_factory() as session:
        existing = await session.execute(select(Player).where(Player.email == email))
        if existing.scalar_one_or_none():
            raise HTTPException(400, "User with this email already exists")

        guest = None
        if body.nickname:
            result = await session.execute(
                select(Player).where(
                    Player.is_guest.is_(True),
                    func.lower(Player.nickname) == body.nickname.lower(),
                )
            )
            guest = result.scalars().first()

        if guest:
            # Same row, so decks and game history stay attached
            player = guest
            player.name = body.name
            player.nickname = body.nickname
            player.email = email
            player.password_hash = hash_password(body.password)
            player.is_guest = False
            if body.profile_image:
                player.profile_image = body.profile_image
        else:
            player = Player(
                name=body.name,
                nickname=body.nickname or None,
                email=email,
                password_hash=hash_password(body.password),
                profile_image=body.profile_image or "",
            )
            session.add(player)
        await session.commit()
        player = await load_player(session, player.id)

    if guest:
        logger.info("Guest player %s converted to registered account", player.id)
        return _token_response(
            player,
            converted_from_guest=True,
            message="Your guest profile has been claimed. Existing games and decks are now linked to your account.",
        )
    return _token_response(player)


@router.post("/login")
async def login(body: LoginRequest):
    """Authenticate and return JWT."""
    email = body.email.strip().lower()
    player = await get_player_by_email(email)
    if not player:
        # Bootstrap: if INITIAL_ADMIN_PASSWORD is set and matches, create admin
        if (
            config.INITIAL_ADMIN_EMAIL
            and config.INITIAL_ADMIN_PASSWORD
            and email == config.INITIAL_ADMIN_EMAIL
            and body.password == config.INITIAL_ADMIN_PASSWORD
        ):
            async with async_session_factory() as session:
                player = Player(
                    name=config.INITIAL_ADMIN_NAME,
                    email=config.INITIAL_ADMIN_EMAIL,
                    password_hash=hash_password(config.INITIAL_ADMIN_PASSWORD),
                    is_admin=True,
                )
                session.add(player)
                await session.commit()
                player = await load_player(session, player.id)
            logger.info("Bootstrapped initial admin %s", player.email)
            return _token_response(player)
        logger.warning("Failed login for %s", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if player.is_guest or not verify_password(body.password, player.password_hash):
        logger.warning("Failed login for %s", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    async with async_session_factory() as session:
        player = await load_player(session, player.id)
    return _token_response(player)


@router.get("/me")
async def get_me(current: Player = Depends(require_player)):
    """Get current player with their decks."""
    async with async_session_factory() as session:
        player = await load_player(session, current.id)
    return envelope(serialize_player(player))


@router.put("/updatedetails")
async def update_details(body: UpdateDetailsRequest, current: Player = Depends(require_player)):
    """Update name, email, nickname or profile image of the current player."""
    async with async_session_factory() as session:
        player = await session.get(Player, current.id)
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


@router.put("/updatepassword")
async def update_password(body: UpdatePasswordRequest, current: Player = Depends(require_player)):
    """Change password; returns a fresh token."""
    async with async_session_factory() as session:
        player = await session.get(Player, current.id)
        if not verify_password(body.current_password, player.password_hash):
            raise HTTPException(401, "Password is incorrect")
        player.password_hash = hash_password(body.new_password)
        await session.commit()
        player = await load_player(session, player.id)
    return _token_response(player)


@router.post("/logout")
async def logout(current: Player = Depends(require_player)):
    """Tokens are stateless; the client discards its copy."""
    return envelope({}, message="Logged out")
