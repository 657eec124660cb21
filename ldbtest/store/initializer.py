"""
EngineInitializer - Handle startup and crash recovery.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from ldbtest.models.exceptions import NotSupportedError, StoreIOError
from ldbtest.models.memtable import MemTable
from ldbtest.models.sortedcontainers import SortedKeyList
from ldbtest.models.sstable import SSTable
from ldbtest.models.wal import WAL
from ldbtest.store.recoverer import MemTableRecoverer

logger = logging.getLogger(__name__)

CURRENT_FILE = "CURRENT"
LOCK_FILE = "LOCK"
FORMAT_VERSION = "ldbtest-store-1"

_WAL_PATTERN = re.compile(r"^wal_(\d+)\.wal$")
_SSTABLE_PATTERN = re.compile(r"^(\d+)\.sst$")


@dataclass
class RecoveredState:
    """
    Everything found on disk at startup.

    Attributes:
        memtable: Writes replayed from the WALs (may be empty).
        wals: The replayed WALs, oldest first; deleted once the memtable is flushed.
        sstables: Open SSTables, oldest first.
        next_file_id: First unused file number.
        last_seq: Last sequence number seen in the WALs.
    """

    memtable: MemTable
    wals: list[WAL]
    sstables: list[SSTable]
    next_file_id: int
    last_seq: int


def wal_path(storage_dir: str, file_id: int) -> str:
    return os.path.join(storage_dir, "wal", f"wal_{file_id}.wal")


def sstable_path(storage_dir: str, file_id: int) -> str:
    return os.path.join(storage_dir, "sstables", f"{file_id:06d}.sst")


class EngineInitializer:
    """
    Handles store initialization and crash recovery.

    Responsibilities:
    - Detect whether a store exists at the path
    - Discover existing WAL and SSTable files
    - Recover the MemTable from WALs
    - Track the last file number for id generation
    """

    def __init__(self, storage_dir: str) -> None:
        """
        Initialize the engine initializer.

        Args:
            storage_dir: Root directory for storage.
        """
        self.storage_dir = storage_dir
        self._memtable_recoverer = MemTableRecoverer()
        self._wal_dir = os.path.join(storage_dir, "wal")
        self._sstable_dir = os.path.join(storage_dir, "sstables")
        self._current_path = os.path.join(storage_dir, CURRENT_FILE)

    def exists(self) -> bool:
        """Check if a store has been created at this path."""
        return os.path.exists(self._current_path)

    def mark_created(self) -> None:
        """Write the CURRENT marker of a freshly created store."""
        try:
            with open(self._current_path, "w") as f:
                f.write(FORMAT_VERSION + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise StoreIOError(f"{self._current_path}: {e.strerror or e}") from e

    def check_format(self) -> None:
        """
        Verify that the CURRENT marker names a format this version can read.

        Raises:
            StoreIOError: If the marker cannot be read.
            NotSupportedError: If the marker names another format.
        """
        try:
            with open(self._current_path) as f:
                version = f.read().strip()
        except OSError as e:
            raise StoreIOError(f"{self._current_path}: {e.strerror or e}") from e
        except UnicodeDecodeError as e:
            raise NotSupportedError(f"{self._current_path}: unreadable store format marker") from e

        if version != FORMAT_VERSION:
            raise NotSupportedError(
                f"{self._current_path}: unknown store format {version!r}, expected {FORMAT_VERSION!r}"
            )

    def _list_ids(self, directory: str, pattern: re.Pattern) -> list[tuple[int, str]]:
        """List (file_id, path) pairs matching pattern, sorted by id."""
        if not os.path.exists(directory):
            return []

        try:
            filenames = os.listdir(directory)
        except OSError as e:
            raise StoreIOError(f"{directory}: {e.strerror or e}") from e

        found = []
        for filename in filenames:
            match = pattern.match(filename)
            if match:
                found.append((int(match.group(1)), os.path.join(directory, filename)))
        return sorted(found)

    def _get_wals(self) -> list[tuple[int, str]]:
        return self._list_ids(self._wal_dir, _WAL_PATTERN)

    def _get_ss_tables(self) -> list[tuple[int, str]]:
        return self._list_ids(self._sstable_dir, _SSTABLE_PATTERN)

    def _get_last_file_id(self) -> int:
        """Highest file number used by any WAL or SSTable, or 0 if none exist."""
        ids = [file_id for file_id, _ in self._get_wals() + self._get_ss_tables()]
        return max(ids, default=0)

    def _cleanup_temp_files(self) -> None:
        """
        Remove orphaned .tmp files from interrupted flushes and compactions.

        For flushes, the data is safe in the WAL and will be re-flushed.
        For compactions, the original SSTables are still intact.
        """
        if not os.path.exists(self._sstable_dir):
            return

        for filename in os.listdir(self._sstable_dir):
            if filename.endswith(".tmp"):
                tmp_path = os.path.join(self._sstable_dir, filename)
                try:
                    os.remove(tmp_path)
                except OSError as e:
                    logger.warning("Could not remove orphaned temp file %s: %s", tmp_path, e)

    def recover(self, paranoid: bool = True) -> RecoveredState:
        """
        Recover state from disk.

        Args:
            paranoid: Fail on a corrupted WAL record instead of dropping it.

        Returns:
            The recovered state.

        Raises:
            WALCorruptionError: If paranoid and a WAL record is corrupted.
            TableCorruptionError: If an SSTable cannot be decoded.
        """
        self._cleanup_temp_files()

        wals = [WAL(id=str(file_id), file_path=path) for file_id, path in self._get_wals()]
        memtable, last_seq = self._memtable_recoverer.recover(
            wals, SortedKeyList(), paranoid=paranoid
        )
        if wals:
            logger.debug(
                "Replayed %d WAL(s) into %d memtable entries", len(wals), memtable.size()
            )

        sstables: list[SSTable] = []
        try:
            for file_id, path in self._get_ss_tables():
                sstable = SSTable(id=str(file_id), file_path=path)
                sstable.open()
                sstables.append(sstable)
        except Exception:
            for sstable in sstables:
                sstable.close()
            raise

        return RecoveredState(
            memtable=memtable,
            wals=wals,
            sstables=sstables,
            next_file_id=self._get_last_file_id() + 1,
            last_seq=last_seq,
        )

    def __enter__(self) -> "EngineInitializer":
        """Create the storage layout."""
        try:
            Path(self.storage_dir).mkdir(parents=True, exist_ok=True)
            Path(self._wal_dir).mkdir(parents=True, exist_ok=True)
            Path(self._sstable_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(f"{self.storage_dir}: {e.strerror or e}") from e
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        pass
