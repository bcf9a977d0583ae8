"""Configuration for the Commander playgroup tracker."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"

# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'tracker.db'}",
)


def _parse_list(value: str) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Web auth (JWT secret, initial admin bootstrap)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-use-long-random-string")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "30"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
INITIAL_ADMIN_EMAIL = os.getenv("INITIAL_ADMIN_EMAIL", "").strip().lower()
INITIAL_ADMIN_PASSWORD = os.getenv("INITIAL_ADMIN_PASSWORD", "")  # Set to bootstrap first admin
INITIAL_ADMIN_NAME = os.getenv("INITIAL_ADMIN_NAME", "Admin")

# CORS: explicit origins plus a pattern for preview deployments
FRONTEND_URL = os.getenv("FRONTEND_URL", "")
CORS_ORIGINS = _parse_list(os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001"))
if FRONTEND_URL and FRONTEND_URL not in CORS_ORIGINS:
    CORS_ORIGINS.append(FRONTEND_URL)
CORS_ORIGIN_REGEX = os.getenv(
    "CORS_ORIGIN_REGEX",
    r"https?://([a-z0-9-]+\.)*vercel\.app|https?://(localhost|127\.0\.0\.1)(:\d+)?",
)

# Rate limiting (always on in production, opt-in elsewhere)
RATE_LIMIT_ENABLED = IS_PRODUCTION or _parse_bool(os.getenv("ENABLE_RATE_LIMITING", ""))
RATE_LIMIT = os.getenv("RATE_LIMIT", "100/15minutes" if IS_PRODUCTION else "1000/15minutes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Statistics
MATCHUP_MIN_GAMES = 2  # Matchups with fewer shared games are hidden
RECENT_GAMES_LIMIT = 10
RECENT_DAYS = 30  # Window for "recent eliminations"
BAYESIAN_PRIOR_GAMES = 10
WEIGHTED_SCORE_K = 5
DEFAULT_WIN_SHARE = 0.25  # Prior when no games exist (4-player pods)
