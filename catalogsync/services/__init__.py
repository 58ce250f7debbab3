from catalogsync.services.checkpoint_store import (
    CheckpointStore,
    InMemoryCheckpointStore,
    JsonFileCheckpointStore,
)
from catalogsync.services.reconciler import (
    Reconciler,
    SearchClient,
    SetReport,
    SetState,
    build_reconciler,
)
from catalogsync.services.run_control import RunLock, RunLockedError, StopFlag

__all__ = [
    "CheckpointStore",
    "InMemoryCheckpointStore",
    "JsonFileCheckpointStore",
    "Reconciler",
    "RunLock",
    "RunLockedError",
    "SearchClient",
    "SetReport",
    "SetState",
    "StopFlag",
    "build_reconciler",
]
