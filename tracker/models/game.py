"""Game and participant models."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker.models.base import Base, utcnow

MIN_PLAYERS = 2
MAX_PLAYERS = 6


class Game(Base):
    """Recorded Commander game. Participants are owned by the game and replaced as a unit."""

    __tablename__ = "games"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    created_by = relationship("Player", foreign_keys=[created_by_id])
    participants = relationship(
        "GameParticipant",
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="GameParticipant.placement",
    )

    @property
    def winner(self) -> Optional["GameParticipant"]:
        return next((p for p in self.participants if p.placement == 1), None)


class GameParticipant(Base):
    """One seat in a game: who played, with which deck, and how it ended."""

    __tablename__ = "game_participants"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False, index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False, index=True)
    deck_id: Mapped[int] = mapped_column(ForeignKey("decks.id"), nullable=False, index=True)
    placement: Mapped[int] = mapped_column(Integer, nullable=False)  # 1 = winner
    eliminated_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("players.id"), nullable=True)
    borrowed_from_id: Mapped[Optional[int]] = mapped_column(ForeignKey("players.id"), nullable=True)

    game = relationship("Game", back_populates="participants")
    player = relationship("Player", foreign_keys=[player_id])
    deck = relationship("Deck")
    eliminated_by = relationship("Player", foreign_keys=[eliminated_by_id])
    borrowed_from = relationship("Player", foreign_keys=[borrowed_from_id])
