"""
Custom exceptions for the storage engine.

Every store failure is a StoreError carrying an ErrorKind, so callers can
branch on the kind of failure without matching message text.
"""

from enum import Enum


class ErrorKind(Enum):
    """Kind of failure reported by the store."""

    NOT_FOUND = "NotFound"
    CORRUPTION = "Corruption"
    NOT_SUPPORTED = "Not implemented"
    INVALID_ARGUMENT = "Invalid argument"
    IO_ERROR = "IO error"


class StoreError(Exception):
    """Base class for all store failures."""

    kind: ErrorKind = ErrorKind.IO_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class CorruptionError(StoreError):
    kind = ErrorKind.CORRUPTION


class NotSupportedError(StoreError):
    kind = ErrorKind.NOT_SUPPORTED


class InvalidArgumentError(StoreError):
    kind = ErrorKind.INVALID_ARGUMENT


class StoreIOError(StoreError):
    kind = ErrorKind.IO_ERROR


class WALCorruptionError(CorruptionError):
    """
    Raised when a WAL record fails its checksum.

    This is a fail-fast error indicating data integrity issues.
    """

    def __init__(self, expected: int, actual: int, record_offset: int):
        """
        Initialize corruption error.

        Args:
            expected: Expected CRC32 checksum.
            actual: Actual CRC32 checksum computed.
            record_offset: File offset where corruption detected.
        """
        self.expected = expected
        self.actual = actual
        self.record_offset = record_offset
        super().__init__(
            f"WAL corruption detected at offset {record_offset}: "
            f"expected CRC32 0x{expected:08x}, got 0x{actual:08x}"
        )


class TableCorruptionError(CorruptionError):
    """Raised when an SSTable file cannot be decoded."""

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        super().__init__(f"{file_path}: {reason}")
