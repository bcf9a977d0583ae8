"""Database models."""
from tracker.models.base import Base, init_db
from tracker.models.player import Player
from tracker.models.deck import COLORS, Deck, DeckTag, normalize_colors
from tracker.models.game import MAX_PLAYERS, MIN_PLAYERS, Game, GameParticipant

__all__ = [
    "Base",
    "Player",
    "Deck",
    "DeckTag",
    "Game",
    "GameParticipant",
    "COLORS",
    "MIN_PLAYERS",
    "MAX_PLAYERS",
    "normalize_colors",
    "init_db",
]
