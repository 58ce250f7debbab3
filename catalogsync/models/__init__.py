from catalogsync.models.catalog import Card, CardSet, ExternalProduct
from catalogsync.models.checkpoint import ImportCheckpoint, ProgressEvent, RunState
from catalogsync.models.failure import (
    WARNING_KINDS,
    CatalogSyncError,
    FatalConfigError,
    ImportErrorKind,
    ImportErrorRecord,
    InsertFailedError,
)

__all__ = [
    "Card",
    "CardSet",
    "CatalogSyncError",
    "ExternalProduct",
    "FatalConfigError",
    "ImportCheckpoint",
    "ImportErrorKind",
    "ImportErrorRecord",
    "InsertFailedError",
    "ProgressEvent",
    "RunState",
    "WARNING_KINDS",
]
