"""
WAL - append-only log of write calls, replayed on open.

Every write call is one frame:

    [length:4][record][crc32:4]

A frame cut short at the end of the file is the trace of a crash in the
middle of an append and is ignored. A complete frame whose checksum does
not match is corruption.
"""

import logging
import os
import zlib
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from ldbtest.models.exceptions import StoreIOError, WALCorruptionError
from ldbtest.models.wal_entry import WALRecord

logger = logging.getLogger(__name__)

_LENGTH_SIZE = 4
_CRC_SIZE = 4


def _crc(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


def _sync(fd: int) -> None:
    # fdatasync is missing on macOS
    getattr(os, "fdatasync", os.fsync)(fd)


class WAL:
    """
    Log backing one MemTable.

    The store appends to the log of the active MemTable and deletes the log
    once that MemTable has been written to an SSTable.
    """

    def __init__(self, id: str, file_path: str) -> None:
        """
        Args:
            id: File number of the log, as text.
            file_path: Location of the log file.
        """
        self.id = id
        self.file_path = file_path
        self._out: BinaryIO | None = None
        self._size = 0

    @property
    def size(self) -> int:
        """Length of the log file in bytes."""
        return self._size

    def open(self) -> None:
        """
        Open the log for appending, creating it if needed.

        Raises:
            StoreIOError: If the file cannot be opened.
        """
        try:
            Path(self.file_path).parent.mkdir(parents=True, exist_ok=True)
            self._out = open(self.file_path, "ab")
            self._size = self._out.tell()
        except OSError as e:
            raise StoreIOError(f"{self.file_path}: {e.strerror or e}") from e

    def append(self, record: WALRecord, sync: bool = False) -> None:
        """
        Write one record as a single frame.

        Without sync the frame is handed to the OS only, which survives a
        crash of the process but not of the machine.

        Raises:
            RuntimeError: If the log is not open.
            StoreIOError: If the write fails.
        """
        if self._out is None:
            raise RuntimeError(f"WAL {self.id} is not open")

        payload = bytes(record)
        frame = b"".join(
            (
                len(payload).to_bytes(_LENGTH_SIZE, "big"),
                payload,
                _crc(payload).to_bytes(_CRC_SIZE, "big"),
            )
        )
        try:
            self._out.write(frame)
            self._out.flush()
            if sync:
                _sync(self._out.fileno())
        except OSError as e:
            raise StoreIOError(f"{self.file_path}: {e.strerror or e}") from e
        self._size += len(frame)

    def close(self) -> None:
        """
        Sync and close the log. Safe to call more than once.

        Raises:
            StoreIOError: If the sync fails; the file is closed regardless.
        """
        out, self._out = self._out, None
        if out is None:
            return
        try:
            out.flush()
            _sync(out.fileno())
        except OSError as e:
            raise StoreIOError(f"{self.file_path}: {e.strerror or e}") from e
        finally:
            out.close()

    def destroy(self) -> None:
        """
        Close the log and delete its file.

        Raises:
            StoreIOError: If the file cannot be synced or removed.
        """
        self.close()
        try:
            if os.path.exists(self.file_path):
                os.remove(self.file_path)
        except OSError as e:
            raise StoreIOError(f"{self.file_path}: {e.strerror or e}") from e

    def records(self, paranoid: bool = True) -> Iterator[WALRecord]:
        """
        Replay the log from the start.

        Args:
            paranoid: Raise WALCorruptionError on a checksum mismatch. When
                      False the log is cut at the bad frame with a warning.
        """
        if not os.path.exists(self.file_path):
            return
        try:
            with open(self.file_path, "rb") as f:
                yield from _read_frames(f, self.file_path, paranoid)
        except OSError as e:
            raise StoreIOError(f"{self.file_path}: {e.strerror or e}") from e

    def __iter__(self) -> Iterator[WALRecord]:
        return self.records(paranoid=True)

    def __enter__(self) -> "WAL":
        if self._out is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _read_frames(f: BinaryIO, file_path: str, paranoid: bool) -> Iterator[WALRecord]:
    while True:
        offset = f.tell()
        header = f.read(_LENGTH_SIZE)
        if not header:
            return
        if len(header) < _LENGTH_SIZE:
            _torn(file_path, offset, len(header))
            return

        length = int.from_bytes(header, "big")
        payload = f.read(length)
        trailer = f.read(_CRC_SIZE)
        if len(payload) < length or len(trailer) < _CRC_SIZE:
            _torn(file_path, offset, _LENGTH_SIZE + len(payload) + len(trailer))
            return

        expected = int.from_bytes(trailer, "big")
        actual = _crc(payload)
        if expected != actual:
            if paranoid:
                raise WALCorruptionError(expected=expected, actual=actual, record_offset=offset)
            logger.warning("Dropping WAL %s from offset %d: checksum mismatch", file_path, offset)
            return

        yield WALRecord.from_bytes(payload)


def _torn(file_path: str, offset: int, size: int) -> None:
    logger.warning(
        "Dropping incomplete WAL record in %s at offset %d (%d bytes)", file_path, offset, size
    )
