"""
Sorted key list implementation for sorted key-value storage.

Keys live in a bisect-maintained array for ordered iteration, values in a
dict for O(1) point lookups.
"""

import bisect
from collections.abc import Iterator
from typing import Any

from ldbtest.interfaces.sorted_container import SortedContainer

# Rough per-entry bookkeeping cost (list slot, dict slot, bytes header)
ENTRY_OVERHEAD = 64


class SortedKeyList(SortedContainer):
    """
    SortedContainer backed by a sorted list of keys and a dict of values.

    Insert of a new key is O(N) for the list shift, which is a memmove and
    fast for memtable-sized containers; updates and lookups are O(1).
    """

    def __init__(self) -> None:
        self._keys: list[bytes] = []
        self._values: dict[bytes, Any] = {}
        self._size_bytes: int = 0

    def put(self, key: bytes, value: Any) -> None:
        old_value = self._values.get(key)
        if old_value is None:
            bisect.insort(self._keys, key)
        else:
            self._update_size_bytes(key, old_value, is_add=False)

        self._values[key] = value
        self._update_size_bytes(key, value, is_add=True)

    def get(self, key: bytes) -> Any | None:
        return self._values.get(key)

    def delete(self, key: bytes) -> bool:
        value = self._values.pop(key, None)
        if value is None:
            return False

        idx = bisect.bisect_left(self._keys, key)
        del self._keys[idx]
        self._update_size_bytes(key, value, is_add=False)
        return True

    def has(self, key: bytes) -> bool:
        return key in self._values

    def size(self) -> int:
        return len(self._keys)

    def size_bytes(self) -> int:
        return self._size_bytes

    def __iter__(self) -> Iterator[tuple[bytes, Any]]:
        return self.iterator()

    def iterator(
        self, start: bytes | None = None, end: bytes | None = None
    ) -> Iterator[tuple[bytes, Any]]:
        return _RangeIterator(self, start, end)

    def _update_size_bytes(self, key: bytes, value: Any, is_add: bool) -> None:
        """Update size tracking."""
        estimated_size = len(key) + ENTRY_OVERHEAD
        if hasattr(value, "size_bytes"):
            estimated_size += value.size_bytes()
        elif isinstance(value, bytes):
            estimated_size += len(value)

        if is_add:
            self._size_bytes += estimated_size
        else:
            self._size_bytes -= estimated_size


class _RangeIterator(Iterator[tuple[bytes, Any]]):
    """
    Iterator for range queries on SortedKeyList.

    Re-positions by key on every step, so inserts and deletes made while
    iterating never cause keys to be skipped or repeated.
    """

    def __init__(self, container: SortedKeyList, start: bytes | None, end: bytes | None) -> None:
        self._container = container
        self._end = end
        self._last: bytes | None = None
        self._start = start

    def __iter__(self) -> Iterator[tuple[bytes, Any]]:
        return self

    def __next__(self) -> tuple[bytes, Any]:
        keys = self._container._keys
        if self._last is not None:
            idx = bisect.bisect_right(keys, self._last)
        elif self._start is not None:
            idx = bisect.bisect_left(keys, self._start)
        else:
            idx = 0

        if idx >= len(keys):
            raise StopIteration

        key = keys[idx]
        if self._end is not None and key >= self._end:
            raise StopIteration

        self._last = key
        return (key, self._container._values[key])
