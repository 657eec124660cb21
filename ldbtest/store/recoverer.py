"""
MemTableRecoverer - Rebuild MemTable from WAL for crash recovery.
"""

from ldbtest.interfaces.sorted_container import SortedContainer
from ldbtest.models.memtable import MemTable
from ldbtest.models.wal import WAL


class MemTableRecoverer:
    """
    Recovers a MemTable from Write-Ahead Logs.

    Used during startup to rebuild in-memory state from
    WAL records that weren't yet flushed to SSTable.
    """

    def recover(
        self, wals: list[WAL], container: SortedContainer, paranoid: bool = True
    ) -> tuple[MemTable, int]:
        """
        Recover a MemTable by replaying WAL records, oldest log first.

        Each record is one write call, so a batch is replayed whole or,
        when its frame was torn by a crash, not at all.

        Args:
            wals: The WALs to replay, in creation order.
            container: Empty sorted container to populate.
            paranoid: Fail on checksum mismatch instead of dropping the tail.

        Returns:
            The recovered MemTable and the last sequence number replayed.

        Raises:
            WALCorruptionError: If paranoid and a record fails its checksum.
        """
        memtable = MemTable(container)
        last_seq = 0

        for wal in wals:
            for record in wal.records(paranoid=paranoid):
                memtable.apply(record.ops)
                if record.ops:
                    last_seq = max(last_seq, record.seq + len(record.ops) - 1)

        return memtable, last_seq
