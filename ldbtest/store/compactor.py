"""
SSTableCompactor - Compact multiple SSTables into one.

Merges every SSTable into a single one, removing tombstones and keeping
only the newest value for each key.
"""

from collections.abc import Iterator

from ldbtest.models.sstable import SSTable
from ldbtest.models.value import Value
from ldbtest.store.initializer import sstable_path
from ldbtest.store.merge_iterator import KWayMergeIterator


class SSTableCompactor:
    """
    Compacts multiple SSTables into a single SSTable.

    Memory Efficiency:
    - Uses iterators, not loading all data into memory
    - O(K) memory where K = number of input SSTables (heap size)
    """

    def __init__(self, sstables: list[SSTable], storage_dir: str) -> None:
        """
        Initialize compactor.

        Args:
            sstables: SSTables to compact, ordered newest to oldest.
                     The ordering is critical for correct deduplication.
                     They must be every SSTable of the store, otherwise
                     dropping tombstones would resurrect older values.
            storage_dir: Root directory for storage.
        """
        self._sstables = sstables
        self._storage_dir = storage_dir

    def compact(self, new_file_id: int) -> SSTable:
        """
        Merge the inputs into a new SSTable.

        The output is written to a temp file and renamed into place, so an
        interrupted compaction leaves the inputs untouched.

        Args:
            new_file_id: File number for the compacted SSTable.

        Returns:
            The newly created SSTable, opened.
        """
        return SSTable.create(
            id=str(new_file_id),
            file_path=sstable_path(self._storage_dir, new_file_id),
            entries=self._create_merged_iterator(),
        )

    def _create_merged_iterator(self) -> Iterator[tuple[bytes, Value]]:
        """
        Merge all SSTables, newest value wins, tombstones dropped.

        After a full compaction there are no older SSTables left for a
        tombstone to mask.
        """
        sources: list[Iterator[tuple[bytes, Value]]] = [
            sstable.iterator() for sstable in self._sstables
        ]

        for key, value in KWayMergeIterator(sources):
            if not value.is_tombstone():
                yield (key, value)
