from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI

from catalogsync.api import health_router, imports_router
from catalogsync.config import settings
from catalogsync.db.database import async_session_factory, init_db
from catalogsync.services.import_manager import ImportManager


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    app.state.import_manager = ImportManager(settings, async_session_factory)
    yield
    await app.state.import_manager.shutdown()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("catalogsync"),
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(imports_router)
