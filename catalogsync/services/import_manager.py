"""
Background reconciliation runs for the HTTP surface.

One ImportManager lives on the FastAPI app. It starts at most one run as an
asyncio task, shares the CLI's stop flag and advisory lock so a CLI run and
an API run can never overlap, and keeps the latest progress event for
dashboards.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalogsync.clients.catalog_search import build_http_client
from catalogsync.config import Settings, require_runtime_config
from catalogsync.db.store import SqlCatalogStore
from catalogsync.models.checkpoint import ImportCheckpoint, ProgressEvent
from catalogsync.services.checkpoint_store import CheckpointStore, JsonFileCheckpointStore
from catalogsync.services.reconciler import build_reconciler
from catalogsync.services.run_control import RunLock, RunLockedError, StopFlag

logger = logging.getLogger(__name__)


class ImportAlreadyRunningError(Exception):
    """A reconciliation run is already active."""

    pass


class ImportManager:
    """Starts, stops and reports on background reconciliation runs."""

    def __init__(
        self,
        config: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        checkpoints: CheckpointStore | None = None,
    ) -> None:
        self.config = config
        self.session_factory = session_factory
        self.checkpoints = checkpoints or JsonFileCheckpointStore(config.checkpoint_path)
        self.stop_flag = StopFlag.for_checkpoint(config.checkpoint_path)
        self.lock = RunLock.for_checkpoint(config.checkpoint_path)
        self.latest_event: ProgressEvent | None = None
        self._task: asyncio.Task[None] | None = None
        self._stop_requested = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, set_limit: int | None = None, request_delay_ms: int | None = None) -> None:
        """
        Launch or resume a run in the background.

        Raises:
            ImportAlreadyRunningError: If a run is active here or in another process
            FatalConfigError: If required configuration is missing
        """
        if self.running:
            raise ImportAlreadyRunningError("Import is already running")

        require_runtime_config(self.config)

        try:
            self.lock.acquire()
        except RunLockedError as e:
            raise ImportAlreadyRunningError(str(e)) from e

        self._stop_requested = False
        self.stop_flag.clear()
        self.latest_event = None
        self._task = asyncio.create_task(self._run(set_limit, request_delay_ms))

    def stop(self) -> bool:
        """
        Ask the active run to stop at the next set boundary.

        Returns:
            True if a run was active
        """
        if not self.running:
            return False
        self._stop_requested = True
        logger.info("Import stop requested")
        return True

    async def status(self) -> ImportCheckpoint:
        """Current checkpoint as persisted."""
        return await asyncio.to_thread(self.checkpoints.load)

    async def shutdown(self) -> None:
        """Stop any active run and wait for it to reach a set boundary."""
        if self._task is None:
            return
        self.stop()
        await self._task

    def _should_stop(self) -> bool:
        return self._stop_requested or self.stop_flag.is_requested()

    def _record_progress(self, event: ProgressEvent) -> None:
        self.latest_event = event

    async def _run(self, set_limit: int | None, request_delay_ms: int | None) -> None:
        try:
            async with build_http_client(self.config) as http:
                reconciler = build_reconciler(
                    self.config,
                    http,
                    SqlCatalogStore(self.session_factory),
                    self.checkpoints,
                    on_progress=self._record_progress,
                    should_stop=self._should_stop,
                    set_limit=set_limit,
                    request_delay_ms=request_delay_ms,
                )
                await reconciler.run()
        except Exception:
            # Already saved as crashed by the reconciler; a background task has
            # no caller to re-raise to.
            logger.exception("Background import failed")
        finally:
            self.stop_flag.clear()
            self.lock.release()
