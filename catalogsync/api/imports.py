"""
Import control endpoints.

Start, stop and inspect background reconciliation runs.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from catalogsync.models.failure import FatalConfigError, ImportErrorRecord
from catalogsync.services.import_manager import ImportAlreadyRunningError, ImportManager

router = APIRouter(prefix="/imports", tags=["imports"])


def get_import_manager(request: Request) -> ImportManager:
    """Dependency returning the app's ImportManager."""
    manager: ImportManager = request.app.state.import_manager
    return manager


class ProgressResponse(BaseModel):
    """Latest progress event of the active run."""

    set_index: int
    total_sets: int
    current_set_name: str
    cards_added_so_far: int


class ImportStatusResponse(BaseModel):
    """Checkpoint snapshot plus live run information."""

    running: bool
    state: str
    set_index: int
    total_sets: int
    cards_added: int
    sets_processed: int
    error_count: int
    warning_count: int
    current_set_name: str
    last_updated: datetime
    recent_errors: list[ImportErrorRecord] = Field(default_factory=list)
    progress: ProgressResponse | None = None


class ImportActionResponse(BaseModel):
    """Acknowledgement of a start or stop request."""

    message: str
    running: bool


@router.post("/start", response_model=ImportActionResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_import(
    manager: Annotated[ImportManager, Depends(get_import_manager)],
    limit: Annotated[int | None, Query(ge=1)] = None,
    rate_ms: Annotated[int | None, Query(ge=0)] = None,
) -> ImportActionResponse:
    """
    Launch or resume a reconciliation run in the background.

    Returns 409 while a run is active and 503 when required configuration
    is missing.
    """
    try:
        manager.start(set_limit=limit, request_delay_ms=rate_ms)
    except ImportAlreadyRunningError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except FatalConfigError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message
        ) from e

    return ImportActionResponse(message="Import started", running=True)


@router.post("/stop", response_model=ImportActionResponse)
async def stop_import(
    manager: Annotated[ImportManager, Depends(get_import_manager)],
) -> ImportActionResponse:
    """Ask the active run to stop after its current set."""
    if manager.stop():
        return ImportActionResponse(message="Stop requested", running=True)
    return ImportActionResponse(message="No import is running", running=False)


@router.get("/status", response_model=ImportStatusResponse)
async def import_status(
    manager: Annotated[ImportManager, Depends(get_import_manager)],
) -> ImportStatusResponse:
    """Current checkpoint, recent errors and the latest progress event."""
    checkpoint = await manager.status()
    event = manager.latest_event

    return ImportStatusResponse(
        running=manager.running,
        state=checkpoint.state.value,
        set_index=checkpoint.set_index,
        total_sets=checkpoint.total_sets,
        cards_added=checkpoint.cards_added,
        sets_processed=checkpoint.sets_processed,
        error_count=checkpoint.error_count,
        warning_count=checkpoint.warning_count,
        current_set_name=checkpoint.current_set_name,
        last_updated=checkpoint.last_updated,
        recent_errors=checkpoint.recent_errors(),
        progress=(
            ProgressResponse(
                set_index=event.set_index,
                total_sets=event.total_sets,
                current_set_name=event.current_set_name,
                cards_added_so_far=event.cards_added_so_far,
            )
            if event
            else None
        ),
    )
