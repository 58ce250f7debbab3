"""Tests for the reconciliation job and its CLI."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx
from fakes import FakeClock
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalogsync.config import Settings
from catalogsync.db.operations import create_card_set, get_cards_by_set
from catalogsync.jobs.reconcile import (
    EXIT_CRASHED,
    EXIT_FATAL_CONFIG,
    EXIT_OK,
    run_cli,
    run_reconcile,
)
from catalogsync.models.checkpoint import ImportCheckpoint, RunState
from catalogsync.models.failure import FatalConfigError, ImportErrorKind, ImportErrorRecord
from catalogsync.services.checkpoint_store import InMemoryCheckpointStore, JsonFileCheckpointStore
from catalogsync.services.run_control import RunLock, StopFlag

SEARCH_URL = "https://catalog.test/api/products"


@pytest.fixture
def config(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        catalog_api_token="token",
        catalog_search_url=SEARCH_URL,
        database_url="sqlite+aiosqlite:///:memory:",
        checkpoint_path=str(tmp_path / "checkpoint.json"),
        request_delay_ms=0,
    )


def catalog_response(request: httpx.Request) -> httpx.Response:
    """Serve two products for whichever set was searched."""
    query = request.url.params["q"]
    return httpx.Response(
        200,
        json={
            "status": "success",
            "products": [
                {"id": f"{query}-1", "product-name": "Colossus #64", "console-name": query},
                {"id": f"{query}-2", "product-name": "Storm #12", "console-name": query},
                {"id": f"{query}-3", "product-name": "Mario Kart", "console-name": "Nintendo 64"},
            ],
        },
    )


class TestRunReconcile:
    @respx.mock
    async def test_imports_into_database(
        self, config: Settings, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """End to end: search, match, parse and insert against a real schema."""
        respx.get(SEARCH_URL).mock(side_effect=catalog_response)
        async with session_factory() as session:
            first = await create_card_set(session, "1992 SkyBox Marvel Masterpieces", 1992)
            second = await create_card_set(session, "1993 Upper Deck Marvel Platinum", 1993)
            await session.commit()
        checkpoints = InMemoryCheckpointStore()

        checkpoint = await run_reconcile(
            config,
            session_factory=session_factory,
            checkpoints=checkpoints,
            clock=FakeClock(),
        )

        assert checkpoint.state == RunState.COMPLETED
        assert checkpoint.cards_added == 4
        assert checkpoint.completed_set_ids == [first.id, second.id]
        async with session_factory() as session:
            cards = await get_cards_by_set(session, first.id)
        assert sorted(c.card_number for c in cards) == ["12", "64"]
        assert checkpoints.load().state == RunState.COMPLETED

    @respx.mock
    async def test_rerun_is_idempotent(
        self, config: Settings, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """A second full pass over the same results adds nothing."""
        respx.get(SEARCH_URL).mock(side_effect=catalog_response)
        async with session_factory() as session:
            await create_card_set(session, "1992 SkyBox Marvel Masterpieces", 1992)
            await session.commit()

        await run_reconcile(
            config,
            session_factory=session_factory,
            checkpoints=InMemoryCheckpointStore(),
            clock=FakeClock(),
        )
        again = await run_reconcile(
            config,
            session_factory=session_factory,
            checkpoints=InMemoryCheckpointStore(),
            clock=FakeClock(),
        )

        assert again.cards_added == 0
        assert again.error_count == 0

    @respx.mock
    async def test_stop_flag_halts_before_search(
        self,
        config: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        tmp_path: Path,
    ) -> None:
        """A stop requested beforehand means no search is made."""
        route = respx.get(SEARCH_URL).mock(side_effect=catalog_response)
        async with session_factory() as session:
            await create_card_set(session, "1992 SkyBox Marvel Masterpieces", 1992)
            await session.commit()
        stop_flag = StopFlag(tmp_path / "stop")
        stop_flag.request()

        checkpoint = await run_reconcile(
            config,
            session_factory=session_factory,
            checkpoints=InMemoryCheckpointStore(),
            stop_flag=stop_flag,
            clock=FakeClock(),
        )

        assert checkpoint.state == RunState.STOPPED
        assert route.call_count == 0

    async def test_missing_token_is_fatal(self, config: Settings) -> None:
        """Configuration is checked before anything is touched."""
        config.catalog_api_token = ""

        with pytest.raises(FatalConfigError):
            await run_reconcile(config, checkpoints=InMemoryCheckpointStore())


class TestCli:
    def test_status_prints_checkpoint(
        self, config: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        checkpoint = ImportCheckpoint(set_index=3, total_sets=10, cards_added=25)
        checkpoint.record(
            ImportErrorRecord(
                kind=ImportErrorKind.FETCH_FAILED, message="HTTP 503", set_name="Masterpieces"
            ),
            max_records=100,
        )
        JsonFileCheckpointStore(config.checkpoint_path).save(checkpoint)

        exit_code = run_cli(["status"], config)

        output = capsys.readouterr().out
        assert exit_code == EXIT_OK
        assert '"cards_added": 25' in output
        assert "fetch_failed [Masterpieces]: HTTP 503" in output

    def test_status_without_checkpoint(
        self, config: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert run_cli(["status"], config) == EXIT_OK
        assert '"set_index": 0' in capsys.readouterr().out

    def test_status_with_corrupt_checkpoint(
        self, config: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """An unreadable checkpoint is reported, not raised."""
        Path(config.checkpoint_path).write_text('{"set_index": ', encoding="utf-8")

        exit_code = run_cli(["status"], config)

        captured = capsys.readouterr()
        assert exit_code == EXIT_FATAL_CONFIG
        assert captured.out == ""
        assert "Cannot read checkpoint" in captured.err
        assert "Corrupt checkpoint" in captured.err

    def test_stop_requests_flag(self, config: Settings) -> None:
        assert run_cli(["stop"], config) == EXIT_OK
        assert StopFlag.for_checkpoint(config.checkpoint_path).is_requested()

    def test_start_with_missing_token(self, config: Settings) -> None:
        config.catalog_api_token = ""

        assert run_cli(["start"], config) == EXIT_FATAL_CONFIG

    def test_start_while_locked(self, config: Settings) -> None:
        """A second start against the same checkpoint is refused."""
        with RunLock.for_checkpoint(config.checkpoint_path):
            assert run_cli(["start"], config) == EXIT_FATAL_CONFIG

    def test_start_success(self, config: Settings) -> None:
        """Arguments are passed through; stop flag and lock are cleaned up."""
        stop_flag = StopFlag.for_checkpoint(config.checkpoint_path)
        stop_flag.request()
        finished = ImportCheckpoint(state=RunState.COMPLETED)

        with patch(
            "catalogsync.jobs.reconcile.run_reconcile",
            new_callable=AsyncMock,
            return_value=finished,
        ) as mock_run:
            exit_code = run_cli(
                ["start", "--limit", "5", "--rate-ms", "100", "--query-format", "dashed"],
                config,
            )

        assert exit_code == EXIT_OK
        kwargs = mock_run.call_args.kwargs
        assert kwargs["set_limit"] == 5
        assert kwargs["request_delay_ms"] == 100
        assert kwargs["query_format"] == "dashed"
        assert not stop_flag.is_requested()
        with RunLock.for_checkpoint(config.checkpoint_path) as lock:
            assert lock.held

    def test_start_crash(self, config: Settings) -> None:
        """Unexpected failures exit with the crash code and release the lock."""
        with patch(
            "catalogsync.jobs.reconcile.run_reconcile",
            new_callable=AsyncMock,
            side_effect=RuntimeError("database down"),
        ):
            exit_code = run_cli(["start"], config)

        assert exit_code == EXIT_CRASHED
        with RunLock.for_checkpoint(config.checkpoint_path) as lock:
            assert lock.held

    def test_start_fatal_during_run(self, config: Settings) -> None:
        with patch(
            "catalogsync.jobs.reconcile.run_reconcile",
            new_callable=AsyncMock,
            side_effect=FatalConfigError("token rejected"),
        ):
            assert run_cli(["start"], config) == EXIT_FATAL_CONFIG

    def test_requires_command(self) -> None:
        with pytest.raises(SystemExit):
            run_cli([])
