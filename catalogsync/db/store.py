"""
Catalog persistence boundary used by the reconciliation driver.

The driver only needs four operations; keeping them behind a protocol lets
tests run the full pipeline against an in-memory fake.
"""

import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalogsync.db.operations import (
    card_set_to_model,
    card_to_model,
    get_card_sets,
    get_cards_by_set,
    insert_card,
    update_set_total_cards,
)
from catalogsync.models.catalog import Card, CardSet
from catalogsync.models.failure import InsertFailedError

logger = logging.getLogger(__name__)


class CatalogStore(Protocol):
    """Read/write access to sets and cards."""

    async def list_sets(self) -> list[CardSet]: ...

    async def list_cards(self, set_id: int) -> list[Card]: ...

    async def insert_card(self, card: Card) -> Card: ...

    async def update_set_total(self, set_id: int, total_cards: int) -> None: ...


class SqlCatalogStore:
    """
    CatalogStore over SQLAlchemy async sessions.

    Every write runs in its own committed transaction, so cards inserted
    before a crash survive and are picked up by the dedup index on resume.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def list_sets(self) -> list[CardSet]:
        async with self.session_factory() as session:
            return [card_set_to_model(s) for s in await get_card_sets(session)]

    async def list_cards(self, set_id: int) -> list[Card]:
        async with self.session_factory() as session:
            return [card_to_model(c) for c in await get_cards_by_set(session, set_id)]

    async def insert_card(self, card: Card) -> Card:
        """
        Persist a new card.

        Raises:
            InsertFailedError: If the database rejects the row
        """
        async with self.session_factory() as session:
            try:
                db_card = await insert_card(session, card)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise InsertFailedError(card.name, card.card_number, detail=str(e)) from e
            return card_to_model(db_card)

    async def update_set_total(self, set_id: int, total_cards: int) -> None:
        async with self.session_factory() as session:
            await update_set_total_cards(session, set_id, total_cards)
            await session.commit()
        logger.debug("Set %d total_cards -> %d", set_id, total_cards)
