"""
MemTable - In-memory sorted table using a sorted container.
"""

from collections.abc import Iterator

from ldbtest.interfaces.range_iterable import RangeIterable
from ldbtest.interfaces.sorted_container import SortedContainer
from ldbtest.models.value import Value


class MemTable(RangeIterable):
    """
    In-memory sorted table backed by a SortedContainer.

    Deletes are stored as tombstones so they shadow older values in
    SSTables until compaction drops them.
    """

    def __init__(self, sorted_container: SortedContainer) -> None:
        """
        Initialize MemTable.

        Args:
            sorted_container: The backing sorted data structure.
        """
        self._container = sorted_container
        self._immutable = False

    def mark_immutable(self) -> None:
        self._immutable = True

    def put(self, key: bytes, value: Value) -> None:
        """
        Insert or update a key-value pair.

        Raises:
            RuntimeError: If the MemTable is immutable.
        """
        if self._immutable:
            raise RuntimeError("Cannot write to an immutable MemTable")
        self._container.put(key, value)

    def delete(self, key: bytes) -> None:
        """Delete a key by inserting a tombstone."""
        self.put(key, Value.tombstone())

    def apply(self, ops: list[tuple[bytes, Value]]) -> None:
        """Apply an ordered list of operations; later ops win on duplicate keys."""
        for key, value in ops:
            self.put(key, value)

    def get(self, key: bytes) -> Value | None:
        """
        Retrieve value by key.

        Returns:
            The Value (possibly a tombstone) if present, None otherwise.
        """
        return self._container.get(key)

    def size(self) -> int:
        return self._container.size()

    def size_bytes(self) -> int:
        return self._container.size_bytes()

    def __iter__(self) -> Iterator[tuple[bytes, Value]]:
        return self._container.__iter__()

    def iterator(
        self, start: bytes | None = None, end: bytes | None = None
    ) -> Iterator[tuple[bytes, Value]]:
        return self._container.iterator(start, end)
