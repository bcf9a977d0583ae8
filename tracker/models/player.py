"""Player model."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker.models.base import Base, utcnow


class Player(Base):
    """Registered member of the playgroup, or a guest without login credentials."""

    __tablename__ = "players"
    __table_args__ = {"sqlite_autoincrement": True}  # games keep deleted ids

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    nickname: Mapped[Optional[str]] = mapped_column(String(30), nullable=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)  # None for guests
    password_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)  # None for guests
    profile_image: Mapped[str] = mapped_column(String(500), default="")
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_guest: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    decks = relationship(
        "Deck", back_populates="owner", cascade="all, delete-orphan", order_by="Deck.id"
    )

    @property
    def display_name(self) -> str:
        return (self.nickname or "").strip() or self.name
