"""
MemToSSTableConverter - Convert MemTable to SSTable on disk.
"""

from ldbtest.models.memtable import MemTable
from ldbtest.models.sstable import SSTable
from ldbtest.models.wal import WAL
from ldbtest.store.initializer import sstable_path


class MemToSSTableConverter:
    """
    Converts a MemTable to an SSTable on disk.

    Tombstones are written through so they keep shadowing values in older
    SSTables. The WALs backing the MemTable are deleted only after the
    SSTable is durable.
    """

    def __init__(self, memtable: MemTable, wals: list[WAL], storage_dir: str) -> None:
        """
        Initialize converter.

        Args:
            memtable: The MemTable to convert.
            wals: The WALs holding the MemTable's writes.
            storage_dir: Root directory for storage.
        """
        self._memtable = memtable
        self._wals = wals
        self._storage_dir = storage_dir

    def initiate(self, file_id: int) -> SSTable:
        """
        Convert MemTable to SSTable.

        Args:
            file_id: File number for the new SSTable.

        Returns:
            The created SSTable, opened.
        """
        sstable = SSTable.create(
            id=str(file_id),
            file_path=sstable_path(self._storage_dir, file_id),
            entries=iter(self._memtable),
        )

        for wal in self._wals:
            wal.destroy()

        return sstable
