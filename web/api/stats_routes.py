"""Statistics API routes.

Games are loaded with their participants and aggregated in tracker.services.stats;
this module resolves the resulting ids to player and deck summaries. Rows whose
player or deck no longer exists are dropped.
"""
from __future__ import annotations

from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tracker.models import Deck, Game, GameParticipant, Player
from tracker.models.base import async_session_factory
from tracker.services import stats
from web.api.utils import GAME_OPTIONS, deck_summary, envelope, player_summary, serialize_game
from web.auth import require_player

router = APIRouter(prefix="/api/stats", tags=["stats"])

TOP_LIMIT = 10


async def _games(session: AsyncSession, *filters, full: bool = False) -> list[Game]:
    options = GAME_OPTIONS if full else (selectinload(Game.participants),)
    result = await session.execute(
        select(Game).where(*filters).options(*options).order_by(Game.date.desc(), Game.id.desc())
    )
    return list(result.scalars().all())


async def _players(session: AsyncSession) -> dict[int, Player]:
    result = await session.execute(select(Player))
    return {p.id: p for p in result.scalars().all()}


async def _decks(session: AsyncSession) -> dict[int, Deck]:
    result = await session.execute(select(Deck))
    return {d.id: d for d in result.scalars().all()}


def _resolve(rows: list[dict], lookups: dict[str, tuple[str, dict, Callable]], limit: Optional[int] = None) -> list[dict]:
    """Attach summaries for id fields; drop rows with an id that no longer resolves.

    lookups maps an id field to (output field, id -> entity map, serializer).
    """
    out = []
    for row in rows:
        resolved = dict(row)
        for id_field, (name, entities, serializer) in lookups.items():
            entity = entities.get(row[id_field])
            if entity is None:
                break
            resolved[name] = serializer(entity)
        else:
            out.append(resolved)
    return out[:limit] if limit else out


@router.get("/player/{player_id}")
async def player_stats(player_id: int, current: Player = Depends(require_player)):
    async with async_session_factory() as session:
        player = await session.get(Player, player_id)
        if not player:
            raise HTTPException(404, f"Player not found with id of {player_id}")
        games = await _games(session, Game.participants.any(GameParticipant.player_id == player_id))
        players = await _players(session)
        decks = await _decks(session)

    result = stats.player_statistics(games, player_id)
    by_player = {"opponent_id": ("opponent", players, player_summary)}
    by_deck = {"deck_id": ("deck", decks, deck_summary)}
    eliminations = result["elimination_stats"]
    return envelope({
        "player": player_summary(player),
        "statistics": result["statistics"],
        "matchups": _resolve(result["matchups"], by_player),
        "deck_usage": _resolve(result["deck_usage"], by_deck),
        "recent_games": [
            {**row, "deck": deck_summary(decks.get(row["deck_id"]))} for row in result["recent_games"]
        ],
        "elimination_stats": {
            "players_eliminated": _resolve(
                eliminations["players_eliminated"], {"player_id": ("player", players, player_summary)}
            ),
            "eliminated_by": _resolve(
                eliminations["eliminated_by"], {"player_id": ("player", players, player_summary)}
            ),
        },
    })


@router.get("/deck/{deck_id}")
async def deck_stats(deck_id: int, current: Player = Depends(require_player)):
    async with async_session_factory() as session:
        result = await session.execute(
            select(Deck).where(Deck.id == deck_id).options(selectinload(Deck.owner))
        )
        deck = result.scalar_one_or_none()
        if not deck:
            raise HTTPException(404, f"Deck not found with id of {deck_id}")
        games = await _games(session)
        players = await _players(session)
        decks = await _decks(session)

    result = stats.deck_statistics(games, deck_id, prior=stats.playgroup_win_share(games))
    return envelope({
        "deck": deck_summary(deck),
        "owner": player_summary(deck.owner),
        "statistics": result["statistics"],
        "matchups": _resolve(result["matchups"], {"opponent_deck_id": ("opponent_deck", decks, deck_summary)}),
        "recent_games": [
            {**row, "player": player_summary(players.get(row["player_id"]))} for row in result["recent_games"]
        ],
        "advanced_metrics": result["advanced_metrics"],
    })


@router.get("/dashboard")
async def dashboard(current: Player = Depends(require_player)):
    """Numbers for the logged-in player's home screen."""
    async with async_session_factory() as session:
        games = await _games(
            session, Game.participants.any(GameParticipant.player_id == current.id), full=True
        )
        result = await session.execute(select(Deck).where(Deck.owner_id == current.id))
        my_decks = {d.id: d for d in result.scalars().all()}
        recent = [serialize_game(g) for g in stats.most_recent(games, 5)]

    summary = stats.personal_summary(games, current.id, set(my_decks))
    return envelope({
        "deck_count": len(my_decks),
        "total_games": summary["total_games"],
        "wins": summary["wins"],
        "win_rate": summary["win_rate"],
        "top_decks": _resolve(summary["top_decks"], {"deck_id": ("deck", my_decks, deck_summary)}),
        "recent_games": recent,
    })


@router.get("/global")
async def global_stats(current: Player = Depends(require_player)):
    """Playgroup-wide totals, leaderboards and recent activity."""
    async with async_session_factory() as session:
        games = await _games(session)
        players = await _players(session)
        decks = await _decks(session)
        total_games = (await session.execute(select(func.count(Game.id)))).scalar_one()

    recent_activity = []
    for game in stats.most_recent(games, TOP_LIMIT):
        winner = game.winner
        player = players.get(winner.player_id) if winner else None
        deck = decks.get(winner.deck_id) if winner else None
        if player is None or deck is None:
            continue
        recent_activity.append({
            "game_id": game.id,
            "date": game.date,
            "player_count": len(game.participants),
            "winner": player_summary(player),
            "deck": deck_summary(deck),
            "message": f"{player.display_name} won with {deck.commander}",
        })

    return envelope({
        "totals": {"players": len(players), "decks": len(decks), "games": total_games},
        "average_game_length": stats.average_game_length(games),
        "top_players": _resolve(
            stats.leaderboard(games, "player_id", limit=None),
            {"player_id": ("player", players, player_summary)},
            TOP_LIMIT,
        ),
        "top_decks": _resolve(
            stats.leaderboard(games, "deck_id", limit=None),
            {"deck_id": ("deck", decks, deck_summary)},
            TOP_LIMIT,
        ),
        "popular_commanders": stats.commander_popularity(
            games, {d.id: d.commander for d in decks.values()}, TOP_LIMIT
        ),
        "recent_activity": recent_activity,
    })


@router.get("/eliminations")
async def elimination_stats(current: Player = Depends(require_player)):
    """Who eliminates whom across the playgroup."""
    async with async_session_factory() as session:
        games = await _games(session)
        players = await _players(session)

    result = stats.elimination_overview(games, limit=None)
    by_player = {"player_id": ("player", players, player_summary)}
    return envelope({
        "overview": result["overview"],
        "most_eliminations": _resolve(result["most_eliminations"], by_player, TOP_LIMIT),
        "most_eliminated": _resolve(result["most_eliminated"], by_player, TOP_LIMIT),
        "top_matchups": _resolve(
            result["top_matchups"],
            {
                "eliminator_id": ("eliminator", players, player_summary),
                "victim_id": ("victim", players, player_summary),
            },
            TOP_LIMIT,
        ),
    })


@router.get("/advanced")
async def advanced_stats(
    min_games: int = Query(1, ge=1),
    current: Player = Depends(require_player),
):
    """Advanced deck metrics leaderboard (Bayesian win rate, weighted score, dominance)."""
    async with async_session_factory() as session:
        games = await _games(session)
        decks = await _decks(session)
        players = await _players(session)

    owner_of = {d.id: players.get(d.owner_id) for d in decks.values()}
    rows = _resolve(stats.deck_metrics_table(games, min_games=min_games), {"deck_id": ("deck", decks, deck_summary)})
    for row in rows:
        row["owner"] = player_summary(owner_of.get(row["deck_id"]))
    return envelope({
        "playgroup_win_share": round(stats.playgroup_win_share(games) * 100, 2),
        "min_games": min_games,
        "decks": rows,
    })
