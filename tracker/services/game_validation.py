"""Business rules for a game's participant list.

Runs before anything is written: the API rejects the whole request when the
result is not ok, so a game is never stored with a broken placement order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from tracker.models import MAX_PLAYERS, MIN_PLAYERS


@dataclass
class ValidationResult:
    ok: bool = True
    errors: list[dict[str, str]] = field(default_factory=list)

    def add(self, field_name: str, message: str) -> None:
        self.ok = False
        self.errors.append({"field": field_name, "message": message})

    @property
    def messages(self) -> list[str]:
        return [e["message"] for e in self.errors]


def _get(entry: Any, name: str) -> Optional[Any]:
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def validate_participants(entries: Iterable[Any]) -> ValidationResult:
    """Check participant count, placement order, duplicates and eliminations.

    Entries may be dicts or objects exposing player_id, placement and
    eliminated_by_id. Every violation is reported, not just the first.
    """
    entries = list(entries)
    result = ValidationResult()

    if not MIN_PLAYERS <= len(entries) <= MAX_PLAYERS:
        result.add(
            "participants",
            f"Game must have between {MIN_PLAYERS} and {MAX_PLAYERS} players",
        )

    placements = [_get(e, "placement") for e in entries]
    unique_placements = {p for p in placements if isinstance(p, int)}
    if any(not isinstance(p, int) for p in placements):
        result.add("participants.placement", "Every player needs a placement")
    elif len(unique_placements) != len(placements):
        result.add("participants.placement", "Each player must have a unique placement")
    elif sorted(unique_placements) != list(range(1, len(placements) + 1)):
        result.add("participants.placement", "Placements must be consecutive starting from 1")

    player_ids = [_get(e, "player_id") for e in entries]
    if len(set(player_ids)) != len(player_ids):
        result.add("participants.player_id", "Each player can only participate once in a game")

    winner = next((e for e in entries if _get(e, "placement") == 1), None)
    if winner is not None and _get(winner, "eliminated_by_id") is not None:
        result.add(
            "participants.eliminated_by_id",
            "Winner (1st place) cannot have an eliminated_by value",
        )

    in_game = set(player_ids)
    for entry in entries:
        eliminator = _get(entry, "eliminated_by_id")
        if eliminator is None:
            continue
        if eliminator not in in_game:
            result.add(
                "participants.eliminated_by_id",
                "eliminated_by must reference a player in the game",
            )
        elif eliminator == _get(entry, "player_id"):
            result.add(
                "participants.eliminated_by_id",
                "A player cannot be eliminated by themselves",
            )

    return result
