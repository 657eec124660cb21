"""
Result types returned by harness operations.
"""

from dataclasses import dataclass, field
from enum import Enum

from ldbtest.models.exceptions import ErrorKind, StoreError


@dataclass(frozen=True)
class Status:
    """
    Outcome of a mutation: ok, or a tagged error kind plus a message.

    Attributes:
        kind: The kind of failure, None when the operation succeeded.
        message: Description of the failure.
    """

    kind: ErrorKind | None = None
    message: str = ""

    @classmethod
    def success(cls) -> "Status":
        return cls()

    @classmethod
    def from_error(cls, error: StoreError) -> "Status":
        return cls(kind=error.kind, message=error.message)

    @classmethod
    def invalid_argument(cls, message: str) -> "Status":
        return cls(kind=ErrorKind.INVALID_ARGUMENT, message=message)

    @property
    def ok(self) -> bool:
        return self.kind is None

    def is_not_found(self) -> bool:
        return self.kind == ErrorKind.NOT_FOUND

    def is_corruption(self) -> bool:
        return self.kind == ErrorKind.CORRUPTION

    def is_io_error(self) -> bool:
        return self.kind == ErrorKind.IO_ERROR

    def __str__(self) -> str:
        if self.kind is None:
            return "OK"
        return f"{self.kind.value}: {self.message}"


class GetOutcome(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class GetResult:
    """
    Outcome of a point read.

    Not-found is a normal outcome, never an error; a failed read carries
    the Status of the failure.
    """

    outcome: GetOutcome
    value: bytes | None = None
    status: Status = field(default_factory=Status)

    @classmethod
    def found(cls, value: bytes) -> "GetResult":
        return cls(outcome=GetOutcome.FOUND, value=value)

    @classmethod
    def not_found(cls) -> "GetResult":
        return cls(outcome=GetOutcome.NOT_FOUND)

    @classmethod
    def error(cls, status: Status) -> "GetResult":
        if status.ok:
            raise ValueError("an error result needs a non-ok status")
        return cls(outcome=GetOutcome.ERROR, status=status)

    @property
    def is_found(self) -> bool:
        return self.outcome is GetOutcome.FOUND

    @property
    def is_not_found(self) -> bool:
        return self.outcome is GetOutcome.NOT_FOUND

    @property
    def is_error(self) -> bool:
        return self.outcome is GetOutcome.ERROR


@dataclass(frozen=True)
class ScanResult:
    """
    Records emitted by a range scan, in key order, and the iterator's
    terminal status. An ok status means the scan ended normally.
    """

    records: list[tuple[bytes, bytes]]
    status: Status = field(default_factory=Status)

    @property
    def count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class StoreStats:
    """Introspection properties; None when the store does not provide one."""

    stats: str | None = None
    memory_usage: str | None = None
