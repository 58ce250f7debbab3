import pytest
from fakes import FakeClock
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from catalogsync.models.catalog import CardSet
from catalogsync.models.db import Base


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def masterpieces_sets() -> list[CardSet]:
    return [
        CardSet(id=1, name="1992 SkyBox Marvel Masterpieces", year=1992, total_cards=100),
        CardSet(id=2, name="2020 Marvel Masterpieces What If", year=2020, total_cards=0),
        CardSet(id=3, name="1993 Upper Deck Marvel Platinum", year=1993, total_cards=0),
    ]


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine shared by every session."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session
