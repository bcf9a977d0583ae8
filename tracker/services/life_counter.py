"""In-person game tracker: life, poison and commander damage with undo.

A CurrentGame lives entirely on the client side of a match. Nothing is
stored until the game ends; to_game_payload() then produces the body for
POST /api/games.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from tracker.models import MAX_PLAYERS, MIN_PLAYERS
from tracker.models.base import utcnow

STARTING_LIFE = 40
POISON_LIMIT = 10
COMMANDER_DAMAGE_LIMIT = 21


class LifeCounterError(ValueError):
    """Raised for actions that make no sense in the current game state."""


@dataclass
class Seat:
    player_id: int
    deck_id: int
    life: int = STARTING_LIFE
    poison: int = 0
    commander_damage: dict[int, int] = field(default_factory=dict)  # opponent player_id -> damage
    eliminated: bool = False
    eliminated_by: Optional[int] = None
    placement: Optional[int] = None

    def lethal_reason(self) -> Optional[str]:
        """Which threshold this seat has reached, if any."""
        if self.life <= 0:
            return "life"
        if self.poison >= POISON_LIMIT:
            return "poison"
        if any(d >= COMMANDER_DAMAGE_LIMIT for d in self.commander_damage.values()):
            return "commander_damage"
        return None


@dataclass
class Action:
    kind: str  # life, poison, commander_damage
    player_id: int
    previous: int
    new: int
    opponent_id: Optional[int] = None


class CurrentGame:
    """Table state for a game being played right now."""

    def __init__(self, seats: list[tuple[int, int]], starting_life: int = STARTING_LIFE, started_at: Optional[datetime] = None):
        if not MIN_PLAYERS <= len(seats) <= MAX_PLAYERS:
            raise LifeCounterError(f"A game needs between {MIN_PLAYERS} and {MAX_PLAYERS} players")
        player_ids = [player_id for player_id, _ in seats]
        if len(set(player_ids)) != len(player_ids):
            raise LifeCounterError("Each player can only sit once")
        self.seats = [
            Seat(
                player_id=player_id,
                deck_id=deck_id,
                life=starting_life,
                commander_damage={other: 0 for other in player_ids if other != player_id},
            )
            for player_id, deck_id in seats
        ]
        self.history: list[Action] = []
        self.comments: list[tuple[datetime, str]] = []
        self.first_player: Optional[int] = None
        self.started_at = started_at or utcnow()
        self.ended_at: Optional[datetime] = None

    @property
    def ended(self) -> bool:
        return self.ended_at is not None

    @property
    def alive(self) -> list[Seat]:
        return [s for s in self.seats if not s.eliminated]

    def seat(self, player_id: int) -> Seat:
        for s in self.seats:
            if s.player_id == player_id:
                return s
        raise LifeCounterError(f"Player {player_id} is not in this game")

    def _playable(self, player_id: int) -> Optional[Seat]:
        s = self.seat(player_id)
        if s.eliminated or self.ended:
            return None
        return s

    # --- Counters ---

    def adjust_life(self, player_id: int, delta: int) -> Optional[str]:
        """Change life; returns the lethal reason when the seat should be eliminated."""
        s = self._playable(player_id)
        if s is None:
            return None
        self.history.append(Action("life", player_id, s.life, s.life + delta))
        s.life += delta
        return s.lethal_reason()

    def adjust_poison(self, player_id: int, delta: int) -> Optional[str]:
        s = self._playable(player_id)
        if s is None:
            return None
        new = max(0, min(POISON_LIMIT, s.poison + delta))
        self.history.append(Action("poison", player_id, s.poison, new))
        s.poison = new
        return s.lethal_reason()

    def adjust_commander_damage(self, player_id: int, from_player_id: int, delta: int) -> Optional[str]:
        s = self._playable(player_id)
        if s is None:
            return None
        if from_player_id not in s.commander_damage:
            raise LifeCounterError(f"Player {from_player_id} is not an opponent of {player_id}")
        previous = s.commander_damage[from_player_id]
        new = max(0, previous + delta)
        self.history.append(Action("commander_damage", player_id, previous, new, from_player_id))
        s.commander_damage[from_player_id] = new
        return s.lethal_reason()

    def undo(self) -> Optional[Action]:
        """Revert the most recent counter change."""
        if not self.history:
            return None
        action = self.history.pop()
        s = self.seat(action.player_id)
        if action.kind == "life":
            s.life = action.previous
        elif action.kind == "poison":
            s.poison = action.previous
        else:
            s.commander_damage[action.opponent_id] = action.previous
        return action

    # --- Eliminations and the end of the game ---

    def eliminate(self, player_id: int, by_player_id: Optional[int] = None) -> None:
        """Knock a seat out; it takes the worst placement still free."""
        if self.ended:
            raise LifeCounterError("The game is already over")
        s = self.seat(player_id)
        if s.eliminated:
            raise LifeCounterError(f"Player {player_id} is already eliminated")
        if by_player_id is not None:
            self.seat(by_player_id)
            if by_player_id == player_id:
                raise LifeCounterError("A player cannot eliminate themselves")
        s.placement = len(self.alive)
        s.eliminated = True
        s.eliminated_by = by_player_id
        remaining = self.alive
        if len(remaining) == 1:
            remaining[0].placement = 1
            self.ended_at = utcnow()

    def end_game(self, standings: Optional[list[int]] = None) -> None:
        """Finish early. Players still alive are placed in the given order (default: seat order)."""
        if self.ended:
            return
        remaining = self.alive
        if standings is None:
            standings = [s.player_id for s in remaining]
        if sorted(standings) != sorted(s.player_id for s in remaining):
            raise LifeCounterError("Standings must list every player still in the game exactly once")
        for placement, player_id in enumerate(standings, start=1):
            self.seat(player_id).placement = placement
        self.ended_at = utcnow()

    def roll_first_player(self, rng: Optional[random.Random] = None) -> int:
        self.first_player = (rng or random).choice(self.seats).player_id
        return self.first_player

    def add_comment(self, text: str) -> None:
        text = text.strip()
        if text:
            self.comments.append((utcnow(), text))

    def duration_minutes(self, now: Optional[datetime] = None) -> int:
        end = self.ended_at or now or utcnow()
        seconds = (end - self.started_at).total_seconds()
        return max(1, math.ceil(seconds / 60))

    def to_game_payload(self, notes: Optional[str] = None) -> dict:
        """Body for POST /api/games once the game is over."""
        if not self.ended:
            raise LifeCounterError("The game has not ended yet")
        lines = [notes.strip()] if notes and notes.strip() else []
        lines.extend(f"[{at:%H:%M}] {text}" for at, text in self.comments)
        payload = {
            "date": self.started_at.isoformat(),
            "duration_minutes": min(self.duration_minutes(), 600),
            "participants": [
                {
                    "player_id": s.player_id,
                    "deck_id": s.deck_id,
                    "placement": s.placement,
                    "eliminated_by_id": s.eliminated_by if s.placement != 1 else None,
                }
                for s in sorted(self.seats, key=lambda s: s.placement)
            ],
        }
        if lines:
            payload["notes"] = "\n".join(lines)[:500]
        return payload
