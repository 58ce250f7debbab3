"""
Import error taxonomy.

Every problem a reconciliation run can meet is classified into one
ImportErrorKind. Per-set and per-card problems are caught where they
happen and accumulated into the checkpoint as ImportErrorRecord entries;
only FatalConfigError is allowed to propagate to the caller.

Kinds:
- fetch_failed: search retries exhausted for a set (run continues)
- no_match: matcher accepted zero products (informational, never recorded)
- parse_ambiguous: label parser fell back, no catalog number (warning)
- insert_failed: persistence rejected one card (run continues)
- fatal_config: missing credentials or invalid configuration (aborts start-up)
- unexpected: anything else raised while processing one set (run continues)
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class ImportErrorKind(str, Enum):
    """Classification of reconciliation problems."""

    FETCH_FAILED = "fetch_failed"
    NO_MATCH = "no_match"
    PARSE_AMBIGUOUS = "parse_ambiguous"
    INSERT_FAILED = "insert_failed"
    FATAL_CONFIG = "fatal_config"
    UNEXPECTED = "unexpected"


# Kinds that describe a degraded-but-usable outcome rather than a failure
WARNING_KINDS = frozenset({ImportErrorKind.PARSE_AMBIGUOUS})


class ImportErrorRecord(BaseModel):
    """One entry in the checkpoint's error log."""

    kind: ImportErrorKind = Field(..., description="Classification of the problem")
    message: str = Field(..., description="Human-readable description")
    set_id: int | None = Field(default=None, description="Set being processed")
    set_name: str | None = Field(default=None, description="Name of the set being processed")
    product_id: str | None = Field(default=None, description="External product involved")
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_warning(self) -> bool:
        """True if this record does not represent a failure."""
        return self.kind in WARNING_KINDS

    def summary(self) -> str:
        """Single-line rendering for CLI and logs."""
        where = f" [{self.set_name}]" if self.set_name else ""
        return f"{self.kind.value}{where}: {self.message}"


class CatalogSyncError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: ImportErrorKind,
        message: str,
        detail: str | None = None,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_record(
        self,
        set_id: int | None = None,
        set_name: str | None = None,
        product_id: str | None = None,
    ) -> ImportErrorRecord:
        """Convert to a checkpoint error record."""
        message = self.message if not self.detail else f"{self.message} ({self.detail})"
        return ImportErrorRecord(
            kind=self.kind,
            message=message,
            set_id=set_id,
            set_name=set_name,
            product_id=product_id,
        )


class FatalConfigError(CatalogSyncError):
    """
    Required credentials or configuration are missing at start-up.

    The only error class that aborts a run before any set is processed.
    """

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(kind=ImportErrorKind.FATAL_CONFIG, message=message, detail=detail)


class InsertFailedError(CatalogSyncError):
    """Persistence rejected a card insert (e.g. a constraint violation)."""

    def __init__(self, card_name: str, card_number: str, detail: str | None = None):
        self.card_name = card_name
        self.card_number = card_number
        label = f"{card_name} #{card_number}" if card_number else card_name
        super().__init__(
            kind=ImportErrorKind.INSERT_FAILED,
            message=f"Could not insert card '{label}'",
            detail=detail,
        )
