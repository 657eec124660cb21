"""
SSTable - Sorted String Table for on-disk storage.
"""

import bisect
import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import BinaryIO

from ldbtest.interfaces.range_iterable import RangeIterable
from ldbtest.models.exceptions import CorruptionError, StoreIOError, TableCorruptionError
from ldbtest.models.value import Value

logger = logging.getLogger(__name__)

# Footer: [index_offset:8][magic:8]
TABLE_MAGIC = 0x6C6462746573745F
FOOTER_SIZE = 16


class SSTable(RangeIterable):
    """
    Sorted String Table - immutable on-disk sorted key-value storage.

    Structure:
    - Data section: [key_len:4][key][value_len:4][value] per entry
    - Index: [num_entries:4] then [key_len:4][key][offset:8] per entry
    - Footer: [index_offset:8][magic:8]

    The index is loaded into memory on open; values are read with pread so
    several iterators can share one file handle.
    """

    def __init__(self, id: str, file_path: str) -> None:
        """
        Initialize SSTable.

        Args:
            id: Unique identifier for this SSTable.
            file_path: Path to the SSTable file.
        """
        self.id = id
        self.file_path = file_path
        self._file: BinaryIO | None = None
        self._sorted_keys: list[bytes] = []
        self._offsets: list[int] = []
        self._index_bytes: int = 0
        self._file_size: int = 0

    @property
    def num_entries(self) -> int:
        return len(self._sorted_keys)

    @property
    def file_size(self) -> int:
        return self._file_size

    @property
    def smallest_key(self) -> bytes | None:
        return self._sorted_keys[0] if self._sorted_keys else None

    @property
    def largest_key(self) -> bytes | None:
        return self._sorted_keys[-1] if self._sorted_keys else None

    def open(self) -> None:
        """
        Open the SSTable file and load index.

        Raises:
            StoreIOError: If the file cannot be opened.
            TableCorruptionError: If the footer or index cannot be decoded.
        """
        try:
            self._file = open(self.file_path, "rb")
            self._file_size = os.fstat(self._file.fileno()).st_size
        except OSError as e:
            raise StoreIOError(f"{self.file_path}: {e.strerror or e}") from e

        try:
            self._load_index()
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def approximate_memory_usage(self) -> int:
        """Bytes held in memory for the loaded index."""
        return self._index_bytes

    def get(self, key: bytes) -> Value | None:
        """
        Retrieve value by key.

        Returns:
            The Value (possibly a tombstone) if present, None otherwise.
        """
        idx = bisect.bisect_left(self._sorted_keys, key)
        if idx >= len(self._sorted_keys) or self._sorted_keys[idx] != key:
            return None
        return self._read_value(idx)

    def __enter__(self) -> "SSTable":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[tuple[bytes, Value]]:
        """Iterate over all entries in sorted order."""
        return self.iterator()

    def iterator(
        self, start: bytes | None = None, end: bytes | None = None
    ) -> Iterator[tuple[bytes, Value]]:
        """Iterate over entries in range [start, end)."""
        return _SSTableIterator(self, start, end)

    def _load_index(self) -> None:
        """Load the index from the file."""
        if self._file_size < FOOTER_SIZE:
            raise TableCorruptionError(self.file_path, "file too short for footer")

        footer = self._pread(FOOTER_SIZE, self._file_size - FOOTER_SIZE)
        index_offset = int.from_bytes(footer[0:8], "big")
        magic = int.from_bytes(footer[8:16], "big")
        if magic != TABLE_MAGIC:
            raise TableCorruptionError(self.file_path, "bad table magic number")
        if index_offset > self._file_size - FOOTER_SIZE:
            raise TableCorruptionError(self.file_path, "index offset past end of file")

        index = self._pread(self._file_size - FOOTER_SIZE - index_offset, index_offset)
        if len(index) < 4:
            raise TableCorruptionError(self.file_path, "truncated index")

        num_entries = int.from_bytes(index[0:4], "big")
        pos = 4
        keys: list[bytes] = []
        offsets: list[int] = []
        for _ in range(num_entries):
            if pos + 4 > len(index):
                raise TableCorruptionError(self.file_path, "truncated index entry")
            key_len = int.from_bytes(index[pos : pos + 4], "big")
            pos += 4
            key = index[pos : pos + key_len]
            pos += key_len
            if pos + 8 > len(index):
                raise TableCorruptionError(self.file_path, "truncated index entry")
            offset = int.from_bytes(index[pos : pos + 8], "big")
            pos += 8

            if keys and key <= keys[-1]:
                raise TableCorruptionError(self.file_path, "index keys out of order")
            keys.append(key)
            offsets.append(offset)

        self._sorted_keys = keys
        self._offsets = offsets
        self._index_bytes = len(index)

    def _pread(self, size: int, offset: int) -> bytes:
        """
        Read bytes at a specific offset using pread (does not move the file position).

        Raises:
            StoreIOError: If the table is closed or the read fails.
        """
        if self._file is None:
            raise StoreIOError(f"{self.file_path}: table is not open")
        try:
            return os.pread(self._file.fileno(), size, offset)
        except OSError as e:
            raise StoreIOError(f"{self.file_path}: {e.strerror or e}") from e

    def _read_value(self, idx: int) -> Value:
        """Read the value of the idx-th entry, checking it matches the index."""
        offset = self._offsets[idx]
        expected_key = self._sorted_keys[idx]

        header = self._pread(4, offset)
        if len(header) < 4:
            raise TableCorruptionError(self.file_path, f"truncated entry at offset {offset}")
        key_len = int.from_bytes(header, "big")
        offset += 4

        key = self._pread(key_len, offset)
        if key != expected_key:
            raise TableCorruptionError(self.file_path, f"index mismatch at offset {offset}")
        offset += key_len

        value_len_bytes = self._pread(4, offset)
        if len(value_len_bytes) < 4:
            raise TableCorruptionError(self.file_path, f"truncated entry at offset {offset}")
        value_len = int.from_bytes(value_len_bytes, "big")
        offset += 4

        value_bytes = self._pread(value_len, offset)
        if len(value_bytes) < value_len:
            raise TableCorruptionError(self.file_path, f"truncated value at offset {offset}")

        try:
            return Value.from_bytes(value_bytes)
        except CorruptionError as e:
            raise TableCorruptionError(self.file_path, e.message) from e

    @staticmethod
    def create(id: str, file_path: str, entries: Iterable[tuple[bytes, Value]]) -> "SSTable":
        """
        Create a new SSTable from sorted entries.

        Entries are written to a temp file which is fsynced and renamed into
        place, so a crash never leaves a partial table under the final name.

        Args:
            id: Unique identifier.
            file_path: Path for the new file.
            entries: Iterable of (key, value) tuples in strictly increasing key order.

        Returns:
            The created SSTable, opened.
        """
        temp_path = f"{file_path}.tmp"

        index: list[tuple[bytes, int]] = []
        try:
            Path(file_path).parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "wb") as f:
                offset = 0
                for key, value in entries:
                    if index and key <= index[-1][0]:
                        raise ValueError("SSTable entries must be in strictly increasing key order")
                    index.append((key, offset))

                    value_bytes = bytes(value)
                    f.write(len(key).to_bytes(4, "big"))
                    f.write(key)
                    f.write(len(value_bytes).to_bytes(4, "big"))
                    f.write(value_bytes)
                    offset += 8 + len(key) + len(value_bytes)

                index_offset = offset
                f.write(len(index).to_bytes(4, "big"))
                for key, entry_offset in index:
                    f.write(len(key).to_bytes(4, "big"))
                    f.write(key)
                    f.write(entry_offset.to_bytes(8, "big"))

                f.write(index_offset.to_bytes(8, "big"))
                f.write(TABLE_MAGIC.to_bytes(8, "big"))

                # Ensure durability before rename
                f.flush()
                os.fsync(f.fileno())

            os.rename(temp_path, file_path)
        except OSError as e:
            raise StoreIOError(f"{file_path}: {e.strerror or e}") from e
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as e:
                    # Orphaned temp files are removed on the next open
                    logger.warning("Could not remove temp file %s: %s", temp_path, e)

        sstable = SSTable(id, file_path)
        sstable.open()
        return sstable


class _SSTableIterator(Iterator[tuple[bytes, Value]]):
    """Iterator for range queries on SSTable."""

    def __init__(self, sstable: SSTable, start: bytes | None, end: bytes | None) -> None:
        self._sstable = sstable

        # Binary search the pre-sorted keys: O(log K)
        keys = sstable._sorted_keys
        self._pos = 0 if start is None else bisect.bisect_left(keys, start)
        self._end_idx = len(keys) if end is None else bisect.bisect_left(keys, end)

    def __iter__(self) -> Iterator[tuple[bytes, Value]]:
        return self

    def __next__(self) -> tuple[bytes, Value]:
        if self._pos >= self._end_idx:
            raise StopIteration

        idx = self._pos
        self._pos += 1
        return (self._sstable._sorted_keys[idx], self._sstable._read_value(idx))
