"""Deck model."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker.models.base import Base, utcnow

# Canonical WUBRG order, colorless last
COLORS = ("W", "U", "B", "R", "G", "C")


def normalize_colors(colors) -> str:
    """Return the color identity as a canonical string, e.g. ["g", "W"] -> "WG"."""
    wanted = {c.strip().upper() for c in colors or [] if c and c.strip()}
    return "".join(c for c in COLORS if c in wanted)


class Deck(Base):
    """Commander deck owned by a player."""

    __tablename__ = "decks"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    commander: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    decklist_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    colors: Mapped[str] = mapped_column(String(6), default="")  # e.g. "WUB"
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    owner = relationship("Player", back_populates="decks")
    tag_rows = relationship(
        "DeckTag", back_populates="deck", cascade="all, delete-orphan", order_by="DeckTag.id"
    )

    @property
    def color_identity(self) -> list[str]:
        return list(self.colors or "")

    @property
    def tags(self) -> list[str]:
        return [t.tag for t in self.tag_rows]


class DeckTag(Base):
    """Free-form label on a deck (e.g. "aristocrats", "cEDH")."""

    __tablename__ = "deck_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    deck_id: Mapped[int] = mapped_column(ForeignKey("decks.id"), nullable=False, index=True)
    tag: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    deck: Mapped["Deck"] = relationship("Deck", back_populates="tag_rows")
