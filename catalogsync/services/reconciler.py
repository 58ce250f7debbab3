"""
Reconciliation driver.

Walks every internal set in ascending id order and, for each one, searches
the external catalog, keeps the products that belong to the set, parses a
name and number out of each label and inserts the cards the set is missing.

Each set moves through:

    Pending -> Fetching -> Matching -> Inserting -> Done
    Pending -> Fetching -> Failed

The checkpoint is saved after every set. That save is the resumability
boundary: a crash loses at most the set in progress, and sets already in
completed_set_ids are skipped on the next run.

INVARIANT: processing is strictly sequential. The dedup index of a set must
reflect every insert made so far before the next product is evaluated.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import httpx

from catalogsync.clients.catalog_search import (
    CatalogSearchClient,
    Clock,
    FetchFailed,
    FetchResult,
    QueryFormat,
)
from catalogsync.config import Settings
from catalogsync.db.store import CatalogStore
from catalogsync.matching.dedup_index import DedupIndex
from catalogsync.matching.set_matcher import SetMatcher
from catalogsync.models.catalog import Card, CardSet, ExternalProduct
from catalogsync.models.checkpoint import ImportCheckpoint, ProgressEvent, RunState
from catalogsync.models.failure import (
    ImportErrorKind,
    ImportErrorRecord,
    InsertFailedError,
)
from catalogsync.parsers.product_label import Fallback, parse_product_label
from catalogsync.services.checkpoint_store import CheckpointStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ERROR_RECORDS = 100


class SearchClient(Protocol):
    """Anything that can search the external catalog for a set."""

    async def search(self, set_name: str) -> FetchResult: ...


class SetState(str, Enum):
    """Per-set processing state."""

    PENDING = "pending"
    FETCHING = "fetching"
    MATCHING = "matching"
    INSERTING = "inserting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SetReport:
    """What happened to one set during a run."""

    set_id: int
    set_name: str
    state: SetState = SetState.PENDING
    products_found: int = 0
    products_matched: int = 0
    cards_added: int = 0
    duplicates_skipped: int = 0
    ambiguous_labels: int = 0
    insert_failures: int = 0

    def transition(self, state: SetState) -> None:
        logger.debug(
            "Set %d (%s): %s -> %s", self.set_id, self.set_name, self.state.value, state.value
        )
        self.state = state


class Reconciler:
    """
    Orchestrates a full, resumable reconciliation run.

    Args:
        store: Set and card persistence
        checkpoints: Where progress is loaded from and saved to
        client: Catalog search client
        matcher: Decides which products belong to a set
        on_progress: Receives a ProgressEvent before and after each set
        should_stop: Polled at set boundaries and after each fetch
        set_limit: Process at most this many sets in this run
        max_error_records: How many error records the checkpoint keeps
    """

    def __init__(
        self,
        store: CatalogStore,
        checkpoints: CheckpointStore,
        client: SearchClient,
        matcher: SetMatcher,
        *,
        on_progress: Callable[[ProgressEvent], None] | None = None,
        should_stop: Callable[[], bool] | None = None,
        set_limit: int | None = None,
        max_error_records: int = DEFAULT_MAX_ERROR_RECORDS,
    ) -> None:
        self.store = store
        self.checkpoints = checkpoints
        self.client = client
        self.matcher = matcher
        self.on_progress = on_progress
        self.should_stop = should_stop or (lambda: False)
        self.set_limit = set_limit
        self.max_error_records = max_error_records
        self.reports: list[SetReport] = []

    async def run(self) -> ImportCheckpoint:
        """
        Run reconciliation over every set not yet completed.

        Returns:
            The final checkpoint, already saved

        Raises:
            Exception: Only failures outside per-set processing (listing sets,
                saving the checkpoint). The checkpoint is saved as CRASHED
                first so the next run resumes.
        """
        checkpoint = await asyncio.to_thread(self.checkpoints.load)
        self.reports = []

        try:
            return await self._run(checkpoint)
        except Exception:
            logger.exception("Reconciliation crashed; checkpoint preserved for resume")
            checkpoint.state = RunState.CRASHED
            checkpoint.touch()
            await self._save(checkpoint)
            raise

    async def _run(self, checkpoint: ImportCheckpoint) -> ImportCheckpoint:
        backlog = sorted(await self.store.list_sets(), key=lambda s: s.id)
        checkpoint.total_sets = len(backlog)
        checkpoint.state = RunState.RUNNING
        checkpoint.touch()
        checkpoint.started_at = checkpoint.last_updated
        await self._save(checkpoint)

        remaining = sum(1 for s in backlog if not checkpoint.is_completed(s.id))
        logger.info(
            "Reconciling %d sets (%d already complete)", remaining, len(backlog) - remaining
        )

        processed = 0
        final_state = RunState.COMPLETED
        for position, card_set in enumerate(backlog):
            if checkpoint.is_completed(card_set.id):
                continue
            if self.should_stop():
                logger.info("Stop requested; halting before %r", card_set.name)
                final_state = RunState.STOPPED
                break
            if self.set_limit is not None and processed >= self.set_limit:
                logger.info("Set limit %d reached", self.set_limit)
                final_state = RunState.IDLE
                break

            checkpoint.current_set_name = card_set.name
            self._emit(checkpoint, position + 1)
            logger.info("[%d/%d] Processing: %r", position + 1, len(backlog), card_set.name)

            report = await self._process_set(card_set, checkpoint)
            if report is None:
                final_state = RunState.STOPPED
                break

            self.reports.append(report)
            processed += 1
            checkpoint.set_index = position + 1
            checkpoint.touch()
            await self._save(checkpoint)
            self._emit(checkpoint, position + 1)

        checkpoint.state = final_state
        checkpoint.current_set_name = ""
        checkpoint.touch()
        await self._save(checkpoint)

        logger.info(
            "Reconciliation %s: %d sets this run, %d cards added in total, %d errors",
            final_state.value,
            processed,
            checkpoint.cards_added,
            checkpoint.error_count,
        )
        return checkpoint

    async def _process_set(
        self, card_set: CardSet, checkpoint: ImportCheckpoint
    ) -> SetReport | None:
        """
        Take one set from Pending to Done or Failed.

        Returns None when a stop request arrived during the fetch; the result
        is discarded and the set is left for the next run.
        """
        report = SetReport(set_id=card_set.id, set_name=card_set.name)

        try:
            report.transition(SetState.FETCHING)
            result = await self.client.search(card_set.name)

            if self.should_stop():
                logger.info("Stop requested; discarding fetched results for %r", card_set.name)
                return None

            if isinstance(result, FetchFailed):
                report.transition(SetState.FAILED)
                self._record(
                    checkpoint,
                    ImportErrorRecord(
                        kind=ImportErrorKind.FETCH_FAILED,
                        message=(
                            f"Search {result.query!r} failed after {result.attempts} "
                            f"attempts: {result.reason}"
                        ),
                        set_id=card_set.id,
                        set_name=card_set.name,
                    ),
                )
                return report

            report.products_found = len(result.products)
            report.transition(SetState.MATCHING)
            accepted = self.matcher.filter(card_set.name, result.products)
            report.products_matched = len(accepted)

            if accepted:
                report.transition(SetState.INSERTING)
                await self._insert_products(card_set, accepted, report, checkpoint)
            else:
                logger.info(
                    "No matching products for %r (%d searched)",
                    card_set.name,
                    report.products_found,
                )

            report.transition(SetState.DONE)
            checkpoint.mark_completed(card_set.id)
            logger.info(
                "Set %r done: %d added, %d already present",
                card_set.name,
                report.cards_added,
                report.duplicates_skipped,
            )

        except Exception as e:
            logger.exception("Unexpected error processing set %r", card_set.name)
            report.transition(SetState.FAILED)
            self._record(
                checkpoint,
                ImportErrorRecord(
                    kind=ImportErrorKind.UNEXPECTED,
                    message=f"{type(e).__name__}: {e}",
                    set_id=card_set.id,
                    set_name=card_set.name,
                ),
            )

        return report

    async def _insert_products(
        self,
        card_set: CardSet,
        products: list[ExternalProduct],
        report: SetReport,
        checkpoint: ImportCheckpoint,
    ) -> None:
        existing = await self.store.list_cards(card_set.id)
        index = DedupIndex.from_cards(existing)
        stored = len(existing)

        for product in products:
            parsed = parse_product_label(product.product_name)
            if not parsed.name:
                logger.debug("Skipping product %s with empty label", product.id)
                continue
            if index.contains(parsed.name, parsed.number):
                report.duplicates_skipped += 1
                continue

            if isinstance(parsed, Fallback):
                report.ambiguous_labels += 1
                self._record(
                    checkpoint,
                    ImportErrorRecord(
                        kind=ImportErrorKind.PARSE_AMBIGUOUS,
                        message=f"No catalog number in label {product.product_name!r}",
                        set_id=card_set.id,
                        set_name=card_set.name,
                        product_id=product.id,
                    ),
                )

            card = Card(
                set_id=card_set.id,
                card_number=parsed.number,
                name=parsed.name,
                front_image_url=product.image_url,
                estimated_value=product.estimated_value,
            )
            try:
                await self.store.insert_card(card)
            except Exception as e:
                report.insert_failures += 1
                failure = (
                    e
                    if isinstance(e, InsertFailedError)
                    else InsertFailedError(card.name, card.card_number, detail=str(e))
                )
                self._record(
                    checkpoint,
                    failure.to_record(
                        set_id=card_set.id, set_name=card_set.name, product_id=product.id
                    ),
                )
                continue

            index.add(parsed.name, parsed.number)
            report.cards_added += 1
            checkpoint.cards_added += 1
            stored += 1

        if report.cards_added:
            await self.store.update_set_total(card_set.id, stored)

    def _record(self, checkpoint: ImportCheckpoint, error: ImportErrorRecord) -> None:
        if error.is_warning:
            logger.warning(error.summary())
        else:
            logger.error(error.summary())
        checkpoint.record(error, self.max_error_records)

    async def _save(self, checkpoint: ImportCheckpoint) -> None:
        # File stores fsync; run off the event loop
        await asyncio.to_thread(self.checkpoints.save, checkpoint)

    def _emit(self, checkpoint: ImportCheckpoint, set_index: int) -> None:
        if self.on_progress is None:
            return
        self.on_progress(
            ProgressEvent(
                set_index=set_index,
                total_sets=checkpoint.total_sets,
                current_set_name=checkpoint.current_set_name,
                cards_added_so_far=checkpoint.cards_added,
            )
        )


def build_reconciler(
    config: Settings,
    http: httpx.AsyncClient,
    store: CatalogStore,
    checkpoints: CheckpointStore,
    *,
    on_progress: Callable[[ProgressEvent], None] | None = None,
    should_stop: Callable[[], bool] | None = None,
    set_limit: int | None = None,
    request_delay_ms: int | None = None,
    query_format: QueryFormat | None = None,
    clock: Clock | None = None,
) -> Reconciler:
    """Wire a Reconciler from settings. Shared by the CLI and the HTTP surface."""
    client = CatalogSearchClient.from_settings(
        config,
        http,
        clock=clock,
        request_delay_ms=request_delay_ms,
        query_format=query_format,
    )
    matcher = SetMatcher(
        similarity_threshold=config.similarity_threshold,
        word_overlap_threshold=config.word_overlap_threshold,
    )
    return Reconciler(
        store,
        checkpoints,
        client,
        matcher,
        on_progress=on_progress,
        should_stop=should_stop,
        set_limit=set_limit,
        max_error_records=config.max_error_records,
    )
