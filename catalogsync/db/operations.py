"""
Database CRUD operations.

Provides async functions for reading sets and cards, inserting imported
cards and refreshing set card counts.
"""

from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.models.catalog import Card, CardSet
from catalogsync.models.db import CardDB, CardSetDB

# --- Set Operations ---


async def get_card_sets(session: AsyncSession) -> list[CardSetDB]:
    """Get all sets, ordered by ascending id."""
    result = await session.execute(select(CardSetDB).order_by(CardSetDB.id))
    return list(result.scalars().all())


async def get_card_set(session: AsyncSession, set_id: int) -> CardSetDB | None:
    """Get a set by id. Returns None if it does not exist."""
    return await session.get(CardSetDB, set_id)


async def create_card_set(
    session: AsyncSession, name: str, year: int, total_cards: int = 0
) -> CardSetDB:
    """Create a new set."""
    card_set = CardSetDB(name=name, year=year, total_cards=total_cards)
    session.add(card_set)
    await session.flush()
    return card_set


async def update_set_total_cards(session: AsyncSession, set_id: int, total_cards: int) -> None:
    """Overwrite the reported card count of a set."""
    await session.execute(
        update(CardSetDB).where(CardSetDB.id == set_id).values(total_cards=total_cards)
    )


def card_set_to_model(db_set: CardSetDB) -> CardSet:
    """Convert a database set to a domain model."""
    return CardSet(
        id=db_set.id,
        name=db_set.name,
        year=db_set.year,
        total_cards=db_set.total_cards,
    )


# --- Card Operations ---


async def get_cards_by_set(session: AsyncSession, set_id: int) -> list[CardDB]:
    """Get every card stored for a set."""
    result = await session.execute(
        select(CardDB).where(CardDB.set_id == set_id).order_by(CardDB.id)
    )
    return list(result.scalars().all())


async def count_cards_in_set(session: AsyncSession, set_id: int) -> int:
    """Number of cards stored for a set."""
    result = await session.execute(
        select(func.count()).select_from(CardDB).where(CardDB.set_id == set_id)
    )
    return int(result.scalar_one())


async def insert_card(session: AsyncSession, card: Card) -> CardDB:
    """
    Insert a new card.

    Raises IntegrityError if the set does not exist or a constraint fails.
    """
    db_card = CardDB(
        set_id=card.set_id,
        card_number=card.card_number,
        name=card.name,
        variation=card.variation,
        rarity=card.rarity,
        front_image_url=card.front_image_url,
        estimated_value=Decimal(str(card.estimated_value)),
        description=card.description,
    )
    session.add(db_card)
    await session.flush()
    return db_card


def card_to_model(db_card: CardDB) -> Card:
    """Convert a database card to a domain model."""
    return Card(
        id=db_card.id,
        set_id=db_card.set_id,
        card_number=db_card.card_number,
        name=db_card.name,
        variation=db_card.variation or "",
        rarity=db_card.rarity,
        front_image_url=db_card.front_image_url or "",
        estimated_value=float(db_card.estimated_value or 0),
        description=db_card.description or "",
    )
