"""Statistics over recorded games.

Everything here is a pure function of the games handed in: each game exposes
id, date, duration_minutes and participants, and each participant exposes
player_id, deck_id, placement and eliminated_by_id. Results refer to players
and decks by id; the API layer resolves ids to names and drops ids that no
longer exist.
"""
from __future__ import annotations

import math
import statistics
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

import config
from tracker.models.base import utcnow


def round_half_up(value: float) -> int:
    """Whole-number rounding with halves going up (50.5 -> 51), unlike round()."""
    return math.floor(value + 0.5)


def win_rate(wins: int, games: int, digits: int = 2) -> float:
    """Percentage of games won, 0 when nothing was played."""
    if not games:
        return 0.0
    return round(wins / games * 100, digits)


def average(values: Iterable[float], digits: int = 2) -> float:
    values = list(values)
    if not values:
        return 0.0
    return round(sum(values) / len(values), digits)


def find_participant(game, *, player_id: Optional[int] = None, deck_id: Optional[int] = None):
    """Return the first participant of a game matching the player or deck."""
    for p in game.participants:
        if player_id is not None and p.player_id == player_id:
            return p
        if deck_id is not None and p.deck_id == deck_id:
            return p
    return None


def most_recent(games: Iterable, limit: Optional[int] = None) -> list:
    ordered = sorted(games, key=lambda g: g.date, reverse=True)
    return ordered[:limit] if limit else ordered


def summarize(placements: list[int]) -> dict:
    """Totals, win rate, average placement and histogram for one entity."""
    total = len(placements)
    wins = sum(1 for p in placements if p == 1)
    return {
        "total_games": total,
        "wins": wins,
        "win_rate": win_rate(wins, total),
        "average_placement": average(placements),
        "placement_distribution": dict(sorted(Counter(placements).items())),
    }


def _counted(counter: Counter, key: str) -> list[dict]:
    rows = [{key: entity_id, "count": count} for entity_id, count in counter.items()]
    rows.sort(key=lambda r: (-r["count"], r[key]))
    return rows


@dataclass
class _Matchup:
    games_played: int = 0
    wins: int = 0
    losses: int = 0
    differences: list[int] = field(default_factory=list)

    def record(self, mine: int, theirs: int) -> None:
        self.games_played += 1
        self.differences.append(theirs - mine)
        if mine < theirs:
            self.wins += 1
        elif mine > theirs:
            self.losses += 1

    def as_row(self, key: str, opponent_id: int) -> dict:
        return {
            key: opponent_id,
            "games_played": self.games_played,
            "wins": self.wins,
            "losses": self.losses,
            "head_to_head_wins": self.wins,
            "win_rate": win_rate(self.wins, self.games_played, 1),
            "average_position_difference": average(self.differences, 1),
        }


def _rank_matchups(matchups: dict[int, _Matchup], key: str, min_games: int) -> list[dict]:
    rows = [m.as_row(key, oid) for oid, m in matchups.items() if m.games_played >= min_games]
    rows.sort(key=lambda r: (-r["games_played"], -r["win_rate"]))
    return rows


def player_statistics(
    games: Iterable,
    player_id: int,
    *,
    min_matchup_games: int = config.MATCHUP_MIN_GAMES,
    recent_limit: int = config.RECENT_GAMES_LIMIT,
) -> dict:
    """Full statistics block for one player."""
    entries = []
    for game in games:
        me = find_participant(game, player_id=player_id)
        if me is not None:
            entries.append((game, me))

    matchups: dict[int, _Matchup] = defaultdict(_Matchup)
    deck_placements: dict[int, list[int]] = defaultdict(list)
    victims: Counter = Counter()
    eliminators: Counter = Counter()
    for game, me in entries:
        deck_placements[me.deck_id].append(me.placement)
        if me.eliminated_by_id is not None:
            eliminators[me.eliminated_by_id] += 1
        for other in game.participants:
            if other is me:
                continue
            matchups[other.player_id].record(me.placement, other.placement)
            if other.eliminated_by_id == player_id:
                victims[other.player_id] += 1

    deck_usage = []
    for deck_id, placements in deck_placements.items():
        wins = placements.count(1)
        deck_usage.append({
            "deck_id": deck_id,
            "games_played": len(placements),
            "wins": wins,
            "win_rate": win_rate(wins, len(placements)),
            "average_placement": average(placements),
        })
    deck_usage.sort(key=lambda r: -r["games_played"])

    by_game = {game.id: me for game, me in entries}
    recent_games = [
        {
            "game_id": game.id,
            "date": game.date,
            "placement": by_game[game.id].placement,
            "deck_id": by_game[game.id].deck_id,
            "player_count": len(game.participants),
        }
        for game in most_recent((g for g, _ in entries), recent_limit)
    ]

    return {
        "statistics": summarize([me.placement for _, me in entries]),
        "matchups": _rank_matchups(matchups, "opponent_id", min_matchup_games),
        "deck_usage": deck_usage,
        "recent_games": recent_games,
        "elimination_stats": {
            "players_eliminated": _counted(victims, "player_id"),
            "eliminated_by": _counted(eliminators, "player_id"),
        },
    }


def deck_statistics(
    games: Iterable,
    deck_id: int,
    *,
    prior: Optional[float] = None,
    min_matchup_games: int = config.MATCHUP_MIN_GAMES,
    recent_limit: int = config.RECENT_GAMES_LIMIT,
) -> dict:
    """Full statistics block for one deck, including its advanced metrics.

    prior is the playgroup-wide win share used by the Bayesian win rate; it
    should come from all games, not only the ones this deck played.
    """
    entries = []
    for game in games:
        mine = find_participant(game, deck_id=deck_id)
        if mine is not None:
            entries.append((game, mine))

    matchups: dict[int, _Matchup] = defaultdict(_Matchup)
    for game, mine in entries:
        for other in game.participants:
            if other.deck_id == deck_id:
                continue
            matchups[other.deck_id].record(mine.placement, other.placement)

    by_game = {game.id: mine for game, mine in entries}
    recent_games = [
        {
            "game_id": game.id,
            "date": game.date,
            "placement": by_game[game.id].placement,
            "player_id": by_game[game.id].player_id,
            "player_count": len(game.participants),
        }
        for game in most_recent((g for g, _ in entries), recent_limit)
    ]

    placements = [mine.placement for _, mine in entries]
    scores = [pod_score(mine.placement, len(game.participants)) for game, mine in entries]
    return {
        "statistics": summarize(placements),
        "matchups": _rank_matchups(matchups, "opponent_deck_id", min_matchup_games),
        "recent_games": recent_games,
        "advanced_metrics": advanced_metrics(
            len(placements),
            placements.count(1),
            scores,
            config.DEFAULT_WIN_SHARE if prior is None else prior,
        ),
    }


# --- Advanced deck metrics ---


def pod_score(placement: int, pod_size: int) -> float:
    """1.0 for a win, 0.0 for last place, linear in between."""
    if pod_size <= 1:
        return 1.0
    return (pod_size - placement) / (pod_size - 1)


def playgroup_win_share(games: Iterable) -> float:
    """Wins per seat across all games: the chance an average deck wins."""
    seats = 0
    wins = 0
    for game in games:
        for p in game.participants:
            seats += 1
            if p.placement == 1:
                wins += 1
    if not seats:
        return config.DEFAULT_WIN_SHARE
    return wins / seats


def weighted_win_score(wins: int, games: int, k: int = config.WEIGHTED_SCORE_K) -> float:
    """Win rate scaled by games / (games + k); small samples score lower."""
    if not games:
        return 0.0
    return round(wins * 100 / (games + k), 2)


def bayesian_win_rate(
    wins: int, games: int, prior: float, prior_games: int = config.BAYESIAN_PRIOR_GAMES
) -> float:
    """Win rate pulled toward the playgroup average by prior_games virtual games."""
    return round((wins + prior_games * prior) / (games + prior_games) * 100, 2)


def dominance_index(scores: list[float]) -> float:
    """Mean pod score discounted by its spread, 0..100."""
    if not scores:
        return 0.0
    return round(100 * statistics.fmean(scores) * (1 - statistics.pstdev(scores)), 2)


def advanced_metrics(games: int, wins: int, scores: list[float], prior: float) -> dict:
    return {
        "games_played": games,
        "wins": wins,
        "win_rate": win_rate(wins, games),
        "weighted_win_score": weighted_win_score(wins, games),
        "bayesian_win_rate": bayesian_win_rate(wins, games, prior),
        "dominance_index": dominance_index(scores),
    }


def deck_metrics_table(games: Iterable, *, min_games: int = 1) -> list[dict]:
    """Advanced metrics for every deck that has played, best first."""
    games = list(games)
    prior = playgroup_win_share(games)
    seats: dict[int, list[tuple[int, int]]] = defaultdict(list)
    for game in games:
        pod = len(game.participants)
        for p in game.participants:
            seats[p.deck_id].append((p.placement, pod))

    rows = []
    for deck_id, results in seats.items():
        if len(results) < min_games:
            continue
        wins = sum(1 for placement, _ in results if placement == 1)
        scores = [pod_score(placement, pod) for placement, pod in results]
        rows.append({"deck_id": deck_id, **advanced_metrics(len(results), wins, scores, prior)})
    rows.sort(key=lambda r: (-r["bayesian_win_rate"], -r["games_played"]))
    return rows


# --- Playgroup-wide views ---


def leaderboard(
    games: Iterable,
    key: str,
    *,
    limit: Optional[int] = 10,
    only: Optional[set[int]] = None,
) -> list[dict]:
    """Rank players (key="player_id") or decks (key="deck_id") by win rate, then games."""
    placements: dict[int, list[int]] = defaultdict(list)
    for game in games:
        for p in game.participants:
            entity_id = getattr(p, key)
            if only is not None and entity_id not in only:
                continue
            placements[entity_id].append(p.placement)

    rows = []
    for entity_id, values in placements.items():
        wins = values.count(1)
        rows.append({
            key: entity_id,
            "games_played": len(values),
            "wins": wins,
            "win_rate": win_rate(wins, len(values)),
            "average_placement": average(values),
        })
    rows.sort(key=lambda r: (-r["win_rate"], -r["games_played"]))
    return rows[:limit] if limit else rows


def commander_popularity(games: Iterable, commander_of: dict[int, str], limit: Optional[int] = 10) -> list[dict]:
    """Most played commanders with their win rate. Decks missing from commander_of are skipped."""
    counts: Counter = Counter()
    wins: Counter = Counter()
    for game in games:
        for p in game.participants:
            commander = commander_of.get(p.deck_id)
            if commander is None:
                continue
            counts[commander] += 1
            if p.placement == 1:
                wins[commander] += 1
    rows = [
        {"commander": name, "count": count, "win_rate": win_rate(wins[name], count)}
        for name, count in counts.items()
    ]
    rows.sort(key=lambda r: (-r["count"], r["commander"].lower()))
    return rows[:limit]


def average_game_length(games: Iterable) -> int:
    """Mean duration in whole minutes over games that recorded one."""
    durations = [g.duration_minutes for g in games if g.duration_minutes]
    if not durations:
        return 0
    return round_half_up(sum(durations) / len(durations))


def elimination_overview(
    games: Iterable,
    *,
    now: Optional[datetime] = None,
    recent_days: int = config.RECENT_DAYS,
    limit: Optional[int] = 10,
) -> dict:
    """Who eliminates whom across the playgroup."""
    games = list(games)
    cutoff = (now or utcnow()) - timedelta(days=recent_days)
    total = 0
    games_with = 0
    recent = 0
    hunters: Counter = Counter()
    victims: Counter = Counter()
    pairs: Counter = Counter()
    for game in games:
        count = 0
        for p in game.participants:
            if p.eliminated_by_id is None:
                continue
            count += 1
            hunters[p.eliminated_by_id] += 1
            victims[p.player_id] += 1
            pairs[(p.eliminated_by_id, p.player_id)] += 1
        total += count
        if count:
            games_with += 1
            if game.date >= cutoff:
                recent += count

    top_pairs = [
        {"eliminator_id": eliminator, "victim_id": victim, "count": count}
        for (eliminator, victim), count in pairs.items()
    ]
    top_pairs.sort(key=lambda r: (-r["count"], r["eliminator_id"], r["victim_id"]))
    return {
        "overview": {
            "total_eliminations": total,
            "games_with_eliminations": games_with,
            "average_eliminations_per_game": round(total / len(games), 2) if games else 0.0,
            "recent_eliminations": recent,
        },
        "most_eliminations": _counted(hunters, "player_id")[:limit],
        "most_eliminated": _counted(victims, "player_id")[:limit],
        "top_matchups": top_pairs[:limit],
    }


def personal_summary(games: Iterable, player_id: int, deck_ids: set[int], top_decks: int = 5) -> dict:
    """Dashboard numbers for the logged-in player."""
    games = list(games)
    placements = []
    for game in games:
        me = find_participant(game, player_id=player_id)
        if me is not None:
            placements.append(me.placement)
    wins = placements.count(1)
    return {
        "total_games": len(placements),
        "wins": wins,
        "win_rate": round_half_up(wins / len(placements) * 100) if placements else 0,
        "top_decks": leaderboard(games, "deck_id", limit=top_decks, only=deck_ids),
    }
