"""Tests for the in-person life counter."""
import random
from datetime import datetime, timedelta

import pytest

from tracker.services.game_validation import validate_participants
from tracker.services.life_counter import (
    COMMANDER_DAMAGE_LIMIT,
    POISON_LIMIT,
    STARTING_LIFE,
    CurrentGame,
    LifeCounterError,
)


@pytest.fixture
def table():
    """Four seats: player n plays deck 10 + n."""
    return CurrentGame([(1, 11), (2, 12), (3, 13), (4, 14)])


def test_new_game(table):
    assert [s.life for s in table.seats] == [STARTING_LIFE] * 4
    assert table.seat(1).commander_damage == {2: 0, 3: 0, 4: 0}
    assert not table.ended
    assert len(table.alive) == 4


def test_seat_count_and_duplicates():
    with pytest.raises(LifeCounterError):
        CurrentGame([(1, 11)])
    with pytest.raises(LifeCounterError):
        CurrentGame([(i, 10 + i) for i in range(1, 8)])
    with pytest.raises(LifeCounterError):
        CurrentGame([(1, 11), (1, 12)])


def test_life_and_undo(table):
    assert table.adjust_life(1, -5) is None
    assert table.seat(1).life == 35
    assert table.adjust_life(1, -35) == "life"
    undone = table.undo()
    assert undone.kind == "life"
    assert table.seat(1).life == 35
    table.undo()
    assert table.seat(1).life == STARTING_LIFE
    assert table.undo() is None


def test_poison_is_clamped(table):
    assert table.adjust_poison(2, 15) == "poison"
    assert table.seat(2).poison == POISON_LIMIT
    table.adjust_poison(2, -20)
    assert table.seat(2).poison == 0
    table.undo()
    assert table.seat(2).poison == POISON_LIMIT


def test_commander_damage(table):
    assert table.adjust_commander_damage(3, 1, 20) is None
    assert table.adjust_commander_damage(3, 1, 1) == "commander_damage"
    assert table.seat(3).commander_damage[1] == COMMANDER_DAMAGE_LIMIT
    table.adjust_commander_damage(3, 2, -5)
    assert table.seat(3).commander_damage[2] == 0
    table.undo()
    table.undo()
    assert table.seat(3).commander_damage[1] == 20
    with pytest.raises(LifeCounterError):
        table.adjust_commander_damage(3, 3, 1)
    with pytest.raises(LifeCounterError):
        table.adjust_commander_damage(3, 9, 1)


def test_eliminations_assign_placements(table):
    """Each elimination takes the worst free placement; the last seat wins."""
    table.eliminate(4, by_player_id=1)
    assert table.seat(4).placement == 4
    table.eliminate(3, by_player_id=2)
    assert table.seat(3).placement == 3
    assert not table.ended
    table.eliminate(2, by_player_id=1)
    assert table.seat(2).placement == 2
    assert table.seat(1).placement == 1
    assert table.ended

    payload = table.to_game_payload()
    assert [p["player_id"] for p in payload["participants"]] == [1, 2, 3, 4]
    assert payload["participants"][0]["eliminated_by_id"] is None
    assert payload["participants"][1]["eliminated_by_id"] == 1
    assert validate_participants(payload["participants"]).ok


def test_eliminated_seat_ignores_adjustments(table):
    table.eliminate(2)
    assert table.adjust_life(2, -10) is None
    assert table.seat(2).life == STARTING_LIFE
    assert table.history == []
    with pytest.raises(LifeCounterError):
        table.eliminate(2)


def test_invalid_eliminations(table):
    with pytest.raises(LifeCounterError):
        table.eliminate(1, by_player_id=1)
    with pytest.raises(LifeCounterError):
        table.eliminate(9)
    with pytest.raises(LifeCounterError):
        table.eliminate(1, by_player_id=9)


def test_end_game_early(table):
    """Remaining seats take placements in the given finishing order."""
    table.eliminate(4, by_player_id=3)
    table.end_game([3, 1, 2])
    assert table.ended
    placements = {s.player_id: s.placement for s in table.seats}
    assert placements == {3: 1, 1: 2, 2: 3, 4: 4}
    assert validate_participants(table.to_game_payload()["participants"]).ok
    with pytest.raises(LifeCounterError):
        table.eliminate(1)


def test_end_game_defaults_to_seat_order(table):
    table.end_game()
    assert [s.placement for s in table.seats] == [1, 2, 3, 4]


def test_end_game_rejects_bad_standings(table):
    table.eliminate(4)
    with pytest.raises(LifeCounterError):
        table.end_game([1, 2])
    with pytest.raises(LifeCounterError):
        table.end_game([1, 2, 3, 4])
    assert not table.ended


def test_payload_requires_finished_game(table):
    with pytest.raises(LifeCounterError):
        table.to_game_payload()


def test_payload_duration_and_notes():
    start = datetime(2026, 3, 1, 19, 0)
    table = CurrentGame([(1, 11), (2, 12)], started_at=start)
    assert table.duration_minutes(now=start) == 1
    assert table.duration_minutes(now=start + timedelta(seconds=61)) == 2
    table.add_comment("  Krenko untapped  ")
    table.add_comment("   ")
    table.eliminate(2, by_player_id=1)
    payload = table.to_game_payload(notes="Friday night")
    assert payload["date"] == "2026-03-01T19:00:00"
    assert payload["duration_minutes"] >= 1
    lines = payload["notes"].split("\n")
    assert lines[0] == "Friday night"
    assert lines[1].endswith("Krenko untapped")
    assert len(lines) == 2


def test_roll_first_player(table):
    first = table.roll_first_player(random.Random(7))
    assert first in {1, 2, 3, 4}
    assert table.first_player == first
