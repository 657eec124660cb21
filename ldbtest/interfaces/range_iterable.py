"""
RangeIterable - ordered iteration over a half-open key range.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Any


class RangeIterable(ABC):
    """
    Anything the store reads in key order: MemTables, SSTables and the
    containers behind them. Keys are bytes compared byte by byte.
    """

    @abstractmethod
    def __iter__(self) -> Iterator[tuple[bytes, Any]]:
        """Yield every (key, value) pair, smallest key first."""

    @abstractmethod
    def iterator(
        self, start: bytes | None = None, end: bytes | None = None
    ) -> Iterator[tuple[bytes, Any]]:
        """
        Yield the (key, value) pairs with start <= key < end.

        Args:
            start: Lower bound, or None for the first key.
            end: Upper bound (excluded), or None for no bound.
        """
