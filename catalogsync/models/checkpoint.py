"""
Durable reconciliation progress.

ImportCheckpoint is the only state this engine owns beyond the card and set
tables. It is read once when a run starts and written after every set, so a
crash loses at most the set that was in progress.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from catalogsync.models.failure import ImportErrorRecord


class RunState(str, Enum):
    """Lifecycle of the most recent run."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"
    CRASHED = "crashed"


def _now() -> datetime:
    return datetime.now(UTC)


class ImportCheckpoint(BaseModel):
    """Process-wide, resumable progress record."""

    set_index: int = Field(default=0, description="Backlog position of the next set")
    total_sets: int = Field(default=0, description="Size of the backlog")
    cards_added: int = Field(default=0, description="Cards inserted across all runs")
    sets_processed: int = Field(default=0, description="Sets that reached Done")
    errors: list[ImportErrorRecord] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_now)

    completed_set_ids: list[int] = Field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0
    state: RunState = RunState.IDLE
    current_set_name: str = ""
    started_at: datetime | None = None

    def is_completed(self, set_id: int) -> bool:
        """True if the set reached Done in an earlier or the current run."""
        return set_id in self.completed_set_ids

    def mark_completed(self, set_id: int) -> None:
        """Record a set reaching Done. Card totals are counted per insert."""
        if set_id not in self.completed_set_ids:
            self.completed_set_ids.append(set_id)
        self.sets_processed += 1
        self.touch()

    def record(self, error: ImportErrorRecord, max_records: int) -> None:
        """
        Append an error, keeping only the most recent max_records entries.

        Counters keep the full totals even when old entries are dropped.
        """
        self.errors.append(error)
        if len(self.errors) > max_records:
            self.errors = self.errors[-max_records:]
        if error.is_warning:
            self.warning_count += 1
        else:
            self.error_count += 1
        self.touch()

    def recent_errors(self, limit: int = 10) -> list[ImportErrorRecord]:
        """Most recent failures, excluding warnings."""
        failures = [e for e in self.errors if not e.is_warning]
        return failures[-limit:]

    def touch(self) -> None:
        """Refresh last_updated."""
        self.last_updated = _now()


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """One-way progress notification for dashboards and the CLI."""

    set_index: int
    total_sets: int
    current_set_name: str
    cards_added_so_far: int
