"""
FileLock - advisory lock giving one process exclusive use of a store.
"""

import fcntl
import os

from ldbtest.models.exceptions import StoreIOError


class FileLock:
    """
    Exclusive, non-blocking flock on a LOCK file in the store directory.

    The lock belongs to the open file description, so a second open of the
    same store fails even from within the same process.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._fd: int | None = None

    def acquire(self) -> None:
        """
        Take the lock.

        Raises:
            StoreIOError: If the lock is held elsewhere or the file cannot be opened.
        """
        try:
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise StoreIOError(f"lock {self.path}: {e.strerror or e}") from e

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            os.close(fd)
            raise StoreIOError(
                f"lock {self.path}: already held by another process"
            ) from e

        self._fd = fd

    def release(self) -> None:
        if self._fd is not None:
            try:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
            finally:
                os.close(self._fd)
                self._fd = None

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
