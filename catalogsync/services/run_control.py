"""
Cross-process run control for the reconciliation job.

StopFlag lets `catalogsync stop` ask a running `catalogsync start` to
finish its current set and exit. RunLock is an advisory lock that keeps two
runs from sharing one checkpoint (both would read the same dedup snapshot
and double-insert).
"""

import fcntl
import os
from pathlib import Path
from types import TracebackType


class StopFlag:
    """Stop request stored as a marker file next to the checkpoint."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @classmethod
    def for_checkpoint(cls, checkpoint_path: Path | str) -> "StopFlag":
        checkpoint_path = Path(checkpoint_path)
        return cls(checkpoint_path.with_name(f"{checkpoint_path.name}.stop"))

    def request(self) -> None:
        """Ask the running job to stop at the next set boundary."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch()

    def is_requested(self) -> bool:
        return self.path.exists()

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class RunLockedError(Exception):
    """Another run already holds the lock."""

    pass


class RunLock:
    """
    Exclusive, non-blocking advisory lock on a lock file.

    The kernel releases the lock when the holder exits, so a crashed run
    never leaves a stale lock behind.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._fd: int | None = None

    @classmethod
    def for_checkpoint(cls, checkpoint_path: Path | str) -> "RunLock":
        checkpoint_path = Path(checkpoint_path)
        return cls(checkpoint_path.with_name(f"{checkpoint_path.name}.lock"))

    def acquire(self) -> None:
        """
        Take the lock.

        Raises:
            RunLockedError: If another process holds it
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            os.close(fd)
            raise RunLockedError(f"Another reconciliation run holds {self.path}") from e
        self._fd = fd

    def release(self) -> None:
        if self._fd is None:
            return
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
