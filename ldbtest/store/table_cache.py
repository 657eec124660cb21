"""
TableCache - bounded LRU of open SSTables.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass

from ldbtest.models.sstable import SSTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableMeta:
    """What the store remembers about an SSTable while its file is closed."""

    file_id: int
    file_path: str
    num_entries: int
    file_size: int
    smallest_key: bytes | None
    largest_key: bytes | None

    @classmethod
    def from_sstable(cls, file_id: int, sstable: SSTable) -> "TableMeta":
        return cls(
            file_id=file_id,
            file_path=sstable.file_path,
            num_entries=sstable.num_entries,
            file_size=sstable.file_size,
            smallest_key=sstable.smallest_key,
            largest_key=sstable.largest_key,
        )

    def may_contain(self, key: bytes) -> bool:
        if self.smallest_key is None or self.largest_key is None:
            return False
        return self.smallest_key <= key <= self.largest_key


class TableCache:
    """
    Keeps at most `capacity` SSTables open, closing the least recently used.

    Evicted tables are reopened from their file on the next lookup. Pinned
    tables are never evicted, so the cache may run over capacity while they
    are in use.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._tables: "OrderedDict[int, SSTable]" = OrderedDict()
        self._pins: dict[int, int] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def insert(self, file_id: int, sstable: SSTable) -> None:
        """Register an already open SSTable."""
        old = self._tables.pop(file_id, None)
        if old is not None and old is not sstable:
            old.close()
        self._tables[file_id] = sstable
        self._evict_if_needed()

    def get(self, meta: TableMeta) -> SSTable:
        """
        Return the open SSTable for meta, opening it if needed.

        Raises:
            StoreIOError: If the file cannot be opened.
            TableCorruptionError: If the file cannot be decoded.
        """
        sstable = self._tables.get(meta.file_id)
        if sstable is not None:
            self._tables.move_to_end(meta.file_id, last=True)
            self.hits += 1
            return sstable

        self.misses += 1
        sstable = SSTable(id=str(meta.file_id), file_path=meta.file_path)
        sstable.open()
        self._tables[meta.file_id] = sstable
        self._evict_if_needed()
        return sstable

    def pin(self, file_ids: list[int]) -> None:
        """Keep the given tables open until a matching unpin."""
        for file_id in file_ids:
            self._pins[file_id] = self._pins.get(file_id, 0) + 1

    def unpin(self, file_ids: list[int]) -> None:
        for file_id in file_ids:
            count = self._pins.get(file_id, 0) - 1
            if count > 0:
                self._pins[file_id] = count
            else:
                self._pins.pop(file_id, None)
        self._evict_if_needed()

    def evict(self, file_id: int) -> None:
        sstable = self._tables.pop(file_id, None)
        if sstable is not None:
            sstable.close()

    def close(self) -> None:
        for sstable in self._tables.values():
            sstable.close()
        self._tables.clear()
        self._pins.clear()

    def approximate_memory_usage(self) -> int:
        return sum(sstable.approximate_memory_usage() for sstable in self._tables.values())

    def __len__(self) -> int:
        return len(self._tables)

    def _evict_if_needed(self) -> None:
        excess = len(self._tables) - self.capacity
        if excess <= 0:
            return
        victims = [file_id for file_id in self._tables if file_id not in self._pins][:excess]
        for file_id in victims:
            self._tables.pop(file_id).close()
            self.evictions += 1
            logger.debug("Table cache evicted SSTable %s", file_id)
