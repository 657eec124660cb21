"""
SortedContainer - storage behind a MemTable.
"""

from abc import abstractmethod
from typing import Any

from ldbtest.interfaces.range_iterable import RangeIterable


class SortedContainer(RangeIterable):
    """
    Mutable map from bytes keys to values, iterable in byte order.

    Iterators must tolerate inserts made while they are open: a key added
    behind the iterator's position is not returned, one added ahead of it is.

    Implementations:
    - SortedKeyList
    """

    @abstractmethod
    def put(self, key: bytes, value: Any) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def get(self, key: bytes) -> Any | None:
        """Return the value stored under key, or None."""

    @abstractmethod
    def delete(self, key: bytes) -> bool:
        """
        Remove key outright.

        Returns:
            Whether the key was present.
        """

    @abstractmethod
    def has(self, key: bytes) -> bool:
        pass

    @abstractmethod
    def size(self) -> int:
        """Number of keys held."""

    @abstractmethod
    def size_bytes(self) -> int:
        """Estimated memory held by keys, values and bookkeeping."""
