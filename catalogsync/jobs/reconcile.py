"""
Catalog reconciliation job.

Imports missing cards from the product catalog into every set, resuming from
the saved checkpoint.

Usage:
    python -m catalogsync.jobs.reconcile start [--limit N] [--rate-ms N]
    python -m catalogsync.jobs.reconcile stop
    python -m catalogsync.jobs.reconcile status

Exit codes:
    0  success or clean stop
    1  fatal configuration problem; also a held run lock or an unreadable
       checkpoint
    2  unexpected crash; the checkpoint is preserved for resume
"""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalogsync.clients.catalog_search import Clock, QueryFormat, build_http_client
from catalogsync.config import Settings, require_runtime_config, settings
from catalogsync.db.store import SqlCatalogStore
from catalogsync.models.checkpoint import ImportCheckpoint, ProgressEvent
from catalogsync.models.failure import FatalConfigError
from catalogsync.services.checkpoint_store import CheckpointStore, JsonFileCheckpointStore
from catalogsync.services.reconciler import build_reconciler
from catalogsync.services.run_control import RunLock, RunLockedError, StopFlag

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL_CONFIG = 1
EXIT_CRASHED = 2


def log_progress(event: ProgressEvent) -> None:
    """Progress sink for the CLI."""
    logger.info(
        "Progress: set %d/%d %r, %d cards added so far",
        event.set_index,
        event.total_sets,
        event.current_set_name,
        event.cards_added_so_far,
    )


async def run_reconcile(
    config: Settings,
    *,
    set_limit: int | None = None,
    request_delay_ms: int | None = None,
    query_format: QueryFormat | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    checkpoints: CheckpointStore | None = None,
    stop_flag: StopFlag | None = None,
    clock: Clock | None = None,
    handle_signals: bool = False,
) -> ImportCheckpoint:
    """
    Run reconciliation to completion, a stop request, or the set limit.

    Args:
        config: Application settings
        set_limit: Process at most this many sets
        request_delay_ms: Override of the inter-request delay
        query_format: Override of the search query format
        session_factory: Database sessions (defaults to the configured engine)
        checkpoints: Checkpoint store (defaults to the configured JSON file)
        stop_flag: Cross-process stop marker (defaults to one beside the checkpoint)
        clock: Time source for the catalog client
        handle_signals: Treat SIGINT/SIGTERM as a stop request

    Returns:
        The final checkpoint

    Raises:
        FatalConfigError: If required configuration is missing
    """
    require_runtime_config(config)

    if session_factory is None:
        from catalogsync.db.database import async_session_factory

        session_factory = async_session_factory
    if checkpoints is None:
        checkpoints = JsonFileCheckpointStore(config.checkpoint_path)
    if stop_flag is None:
        stop_flag = StopFlag.for_checkpoint(config.checkpoint_path)

    interrupted = asyncio.Event()
    loop = asyncio.get_running_loop()
    if handle_signals:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, interrupted.set)

    def should_stop() -> bool:
        return interrupted.is_set() or stop_flag.is_requested()

    try:
        async with build_http_client(config) as http:
            reconciler = build_reconciler(
                config,
                http,
                SqlCatalogStore(session_factory),
                checkpoints,
                on_progress=log_progress,
                should_stop=should_stop,
                set_limit=set_limit,
                request_delay_ms=request_delay_ms,
                query_format=query_format,
                clock=clock,
            )
            return await reconciler.run()
    finally:
        if handle_signals:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)


def start_command(args: argparse.Namespace, config: Settings) -> int:
    """Launch or resume a run while holding the run lock."""
    try:
        require_runtime_config(config)
    except FatalConfigError as e:
        logger.error("Fatal configuration error: %s", e.message)
        return EXIT_FATAL_CONFIG

    lock = RunLock.for_checkpoint(config.checkpoint_path)
    stop_flag = StopFlag.for_checkpoint(config.checkpoint_path)
    try:
        lock.acquire()
    except RunLockedError as e:
        logger.error("%s", e)
        return EXIT_FATAL_CONFIG

    stop_flag.clear()
    try:
        checkpoint = asyncio.run(
            run_reconcile(
                config,
                set_limit=args.limit,
                request_delay_ms=args.rate_ms,
                query_format=args.query_format,
                stop_flag=stop_flag,
                handle_signals=True,
            )
        )
    except FatalConfigError as e:
        logger.error("Fatal configuration error: %s", e.message)
        return EXIT_FATAL_CONFIG
    except Exception as e:
        logger.error("Reconciliation crashed: %s", e)
        return EXIT_CRASHED
    finally:
        stop_flag.clear()
        lock.release()

    logger.info(
        "Run finished (%s): %d cards added, %d/%d sets processed, %d errors",
        checkpoint.state.value,
        checkpoint.cards_added,
        checkpoint.set_index,
        checkpoint.total_sets,
        checkpoint.error_count,
    )
    return EXIT_OK


def stop_command(args: argparse.Namespace, config: Settings) -> int:
    """Ask a running `start` to stop at its next set boundary."""
    StopFlag.for_checkpoint(config.checkpoint_path).request()
    print("Stop requested; the running import will halt after its current set.")
    return EXIT_OK


def status_command(args: argparse.Namespace, config: Settings) -> int:
    """Print the current checkpoint."""
    try:
        checkpoint = JsonFileCheckpointStore(config.checkpoint_path).load()
    except ValueError as e:
        print(f"Cannot read checkpoint: {e}", file=sys.stderr)
        print("Delete or restore the file before starting a new run.", file=sys.stderr)
        return EXIT_FATAL_CONFIG

    print(checkpoint.model_dump_json(indent=2, exclude={"errors"}))

    recent = checkpoint.recent_errors()
    if recent:
        print(f"\nRecent errors ({checkpoint.error_count} total):")
        for error in recent:
            print(f"  {error.summary()}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconcile the product catalog into card sets")
    subparsers = parser.add_subparsers(dest="command", required=True)

    start = subparsers.add_parser("start", help="Launch or resume a reconciliation run")
    start.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Process at most N sets in this run",
    )
    start.add_argument(
        "--rate-ms",
        type=int,
        default=None,
        help="Minimum delay after each search request in milliseconds (default: 2000)",
    )
    start.add_argument(
        "--query-format",
        choices=["phrase", "dashed"],
        default=None,
        help="Search query format (default: from settings)",
    )
    start.set_defaults(handler=start_command)

    stop = subparsers.add_parser("stop", help="Stop the running reconciliation")
    stop.set_defaults(handler=stop_command)

    status = subparsers.add_parser("status", help="Print the current checkpoint")
    status.set_defaults(handler=status_command)

    return parser


def run_cli(argv: Sequence[str] | None = None, config: Settings | None = None) -> int:
    """Parse arguments and dispatch to a command. Returns the exit code."""
    args = build_parser().parse_args(argv)
    exit_code: int = args.handler(args, config or settings)
    return exit_code


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
