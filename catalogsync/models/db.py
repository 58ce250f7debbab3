"""
SQLAlchemy ORM models for persistent storage.

Models mirror the dataclass models but add database persistence.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CardSetDB(Base):
    """
    A collectible set stored in the database.

    Created by administrators; reconciliation only reads it and refreshes
    total_cards.
    """

    __tablename__ = "card_sets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, index=True)
    year: Mapped[int] = mapped_column(Integer)
    total_cards: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    cards: Mapped[list["CardDB"]] = relationship(back_populates="card_set")

    def __repr__(self) -> str:
        return f"<CardSetDB(id={self.id}, name={self.name})>"


class CardDB(Base):
    """
    A card belonging to one set.

    (set_id, card_number) is the intended natural key, but historical rows
    are inconsistent, so no unique constraint is declared.
    """

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    set_id: Mapped[int] = mapped_column(Integer, ForeignKey("card_sets.id"), index=True)
    card_number: Mapped[str] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(Text)
    variation: Mapped[str | None] = mapped_column(Text, nullable=True)
    rarity: Mapped[str] = mapped_column(String(64))
    front_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    estimated_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    card_set: Mapped["CardSetDB"] = relationship(back_populates="cards")

    def __repr__(self) -> str:
        return f"<CardDB(set_id={self.set_id}, number={self.card_number}, name={self.name})>"
