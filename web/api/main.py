"""FastAPI app for the playgroup tracker - serves the JSON API and the built web UI."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

import config
from tracker.models.base import init_db
from web.api.auth_routes import router as auth_router
from web.api.deck_routes import router as deck_router
from web.api.errors import register_exception_handlers
from web.api.game_routes import router as game_router
from web.api.middleware import RateLimitMiddleware, SecurityHeadersMiddleware, SPAFallbackMiddleware
from web.api.player_routes import router as player_router
from web.api.stats_routes import router as stats_router

logger = logging.getLogger("tracker.api")

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Tracker API started (%s)", config.ENVIRONMENT)
    yield


app = FastAPI(title="Commander Playgroup Tracker API", version=API_VERSION, lifespan=lifespan)

_frontend_dist = Path(__file__).resolve().parent.parent / "frontend" / "dist"

# Last added middleware runs outermost; CORS stays last.
if _frontend_dist.exists():
    app.add_middleware(SPAFallbackMiddleware, dist=_frontend_dist)
app.add_middleware(SecurityHeadersMiddleware)
if config.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware, limit=config.RATE_LIMIT)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_origin_regex=config.CORS_ORIGIN_REGEX or None,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Auth-Token"],
)

register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(player_router)
app.include_router(deck_router)
app.include_router(game_router)
app.include_router(stats_router)


@app.get("/api/health")
async def health():
    return {"success": True, "status": "ok", "environment": config.ENVIRONMENT}


# Serve built frontend (SPA fallback handled by SPAFallbackMiddleware above)
if _frontend_dist.exists():
    app.mount("/", StaticFiles(directory=str(_frontend_dist), html=True), name="frontend")
else:

    @app.get("/")
    async def root():
        return {
            "success": True,
            "message": "Commander Playgroup Tracker API",
            "version": API_VERSION,
        }
