"""
Engine and sessions for the card catalog database.

One engine serves both surfaces. API handlers receive a request-scoped
session through get_session; the reconciliation job opens its own short
sessions from async_session_factory, one per write.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from catalogsync.config import settings
from catalogsync.models.db import Base

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

# Cards outlive the session that inserted them, so attributes stay loaded
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session for FastAPI handlers.

    Committed when the handler returns, rolled back if the database raised.
    The readiness check takes one this way:

        async def ready(session: Annotated[AsyncSession, Depends(get_session)]): ...
    """
    async with async_session_factory() as session:
        try:
            yield session
        except SQLAlchemyError:
            await session.rollback()
            raise
        await session.commit()


async def create_tables(bind: AsyncEngine) -> None:
    """Create the card_sets and cards tables on bind if they are missing."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Create tables on the configured engine. Called from the app lifespan."""
    await create_tables(engine)
