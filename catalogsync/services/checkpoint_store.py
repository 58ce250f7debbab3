"""
Checkpoint persistence.

The driver receives a CheckpointStore instead of reaching for a global, so
tests can use InMemoryCheckpointStore while the CLI uses a JSON file.
"""

import logging
import os
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from catalogsync.models.checkpoint import ImportCheckpoint

logger = logging.getLogger(__name__)


class CheckpointStore(Protocol):
    """Durable storage for the single ImportCheckpoint document."""

    def load(self) -> ImportCheckpoint: ...

    def save(self, checkpoint: ImportCheckpoint) -> None: ...


class InMemoryCheckpointStore:
    """Checkpoint kept in memory. Saves are deep copies, like a real store."""

    def __init__(self, initial: ImportCheckpoint | None = None) -> None:
        self._saved = initial.model_copy(deep=True) if initial else None
        self.save_count = 0

    def load(self) -> ImportCheckpoint:
        if self._saved is None:
            return ImportCheckpoint()
        return self._saved.model_copy(deep=True)

    def save(self, checkpoint: ImportCheckpoint) -> None:
        self._saved = checkpoint.model_copy(deep=True)
        self.save_count += 1


class JsonFileCheckpointStore:
    """
    Checkpoint stored as one JSON object on disk.

    Writes go to a sibling temp file first and are moved into place with
    os.replace, so a crash mid-write never leaves a truncated checkpoint.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> ImportCheckpoint:
        """
        Load the checkpoint, or a fresh one if the file does not exist.

        Raises:
            ValueError: If the file exists but is not a valid checkpoint
        """
        if not self.path.exists():
            logger.info("No checkpoint at %s, starting fresh", self.path)
            return ImportCheckpoint()

        try:
            checkpoint = ImportCheckpoint.model_validate_json(
                self.path.read_text(encoding="utf-8")
            )
        except ValidationError as e:
            raise ValueError(f"Corrupt checkpoint at {self.path}: {e}") from e

        logger.info(
            "Loaded checkpoint: %d cards added, %d/%d sets processed",
            checkpoint.cards_added,
            checkpoint.set_index,
            checkpoint.total_sets,
        )
        return checkpoint

    def save(self, checkpoint: ImportCheckpoint) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(checkpoint.model_dump_json(indent=2))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
