"""Authentication for web API: JWT, password hashing, role checks."""
from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy import select

import config
from tracker.models import Player
from tracker.models.base import async_session_factory

logger = logging.getLogger("tracker.auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)
http_bearer = HTTPBearer(auto_error=False)


def _prepare_password(password: str) -> str:
    """Bcrypt has a 72-byte limit. Pre-hash longer passwords with SHA256."""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        return hashlib.sha256(encoded).hexdigest()
    return password


def hash_password(password: str) -> str:
    return pwd_context.hash(_prepare_password(password))


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(_prepare_password(plain), hashed)


def create_access_token(player_id: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRE_DAYS)
    payload = {"sub": str(player_id), "exp": expire}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


async def get_player_by_email(email: str) -> Optional[Player]:
    async with async_session_factory() as session:
        result = await session.execute(select(Player).where(Player.email == email.strip().lower()))
        return result.scalar_one_or_none()


async def get_current_player(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    x_auth_token: Optional[str] = Header(None, alias="X-Auth-Token"),
) -> Optional[Player]:
    """Return current player from JWT, or None if not authenticated. Accepts Authorization: Bearer or X-Auth-Token (fallback for proxies that strip Authorization)."""
    token = None
    if credentials and credentials.credentials:
        token = credentials.credentials
    elif x_auth_token:
        token = x_auth_token
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    try:
        player_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    async with async_session_factory() as session:
        player = await session.get(Player, player_id)
    if not player or player.is_guest:
        return None
    return player


async def require_player(
    player: Optional[Player] = Depends(get_current_player),
) -> Player:
    """Require authenticated player. Raises 401 if not logged in."""
    if not player:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized to access this route",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return player


def require_admin(player: Player) -> Player:
    """Require admin flag. Raises 403 if insufficient."""
    if not player.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admin privileges required.",
        )
    return player


async def require_admin_player(
    player: Player = Depends(require_player),
) -> Player:
    """Dependency: require logged-in admin."""
    return require_admin(player)


def ensure_owner_or_admin(player: Player, owner_id: Optional[int], detail: str) -> None:
    """Raise 403 unless the player owns the resource or is an admin."""
    if player.is_admin or player.id == owner_id:
        return
    logger.info("Player %s denied access to resource owned by %s", player.id, owner_id)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
