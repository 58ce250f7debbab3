"""
Health check endpoints.

Liveness, plus a readiness check that verifies what a reconciliation run
needs: a reachable database and complete catalog configuration.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.config import Settings, require_runtime_config, settings
from catalogsync.db.database import get_session
from catalogsync.models.failure import FatalConfigError

router = APIRouter(tags=["health"])


def get_settings() -> Settings:
    """Dependency returning application settings."""
    return settings


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str | None = None
    catalog: str | None = None
    detail: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness check. Does not check dependencies."""
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
    config: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """
    Readiness check.

    Returns 503 if the database is unreachable or the catalog token and
    endpoint are not configured.
    """
    database = "connected"
    try:
        await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        database = "disconnected"

    catalog = "configured"
    detail = None
    try:
        require_runtime_config(config)
    except FatalConfigError as e:
        catalog = "misconfigured"
        detail = e.message

    if database != "connected" or catalog != "configured":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not ready", database=database, catalog=catalog, detail=detail)

    return HealthResponse(status="ready", database=database, catalog=catalog)
