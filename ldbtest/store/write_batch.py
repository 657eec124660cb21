"""
WriteBatch - ordered set of mutations applied as one atomic unit.
"""

from collections.abc import Iterator

from ldbtest.models.value import Value


def ensure_bytes(data: bytes | bytearray | memoryview, what: str = "key") -> bytes:
    """Return data as immutable bytes, rejecting text."""
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"{what} must be bytes-like, got {type(data).__name__}")


class WriteBatch:
    """
    Ordered list of put and delete operations.

    Operations are applied in insertion order, so a later operation on the
    same key wins. The store logs the whole batch as a single WAL record.
    """

    def __init__(self) -> None:
        self._ops: list[tuple[bytes, Value]] = []

    def put(self, key: bytes, value: bytes) -> "WriteBatch":
        self._ops.append((ensure_bytes(key), Value.regular(ensure_bytes(value, "value"))))
        return self

    def delete(self, key: bytes) -> "WriteBatch":
        self._ops.append((ensure_bytes(key), Value.tombstone()))
        return self

    def clear(self) -> None:
        self._ops.clear()

    def approximate_size(self) -> int:
        return sum(len(key) + value.size_bytes() for key, value in self._ops)

    @property
    def ops(self) -> list[tuple[bytes, Value]]:
        return list(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def __iter__(self) -> Iterator[tuple[bytes, Value]]:
        return iter(self._ops)
