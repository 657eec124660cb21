"""
Data models for the storage engine.
"""

from ldbtest.models.memtable import MemTable
from ldbtest.models.sstable import SSTable
from ldbtest.models.value import Value, ValueType
from ldbtest.models.wal import WAL
from ldbtest.models.wal_entry import WALRecord

__all__ = [
    "Value",
    "ValueType",
    "WALRecord",
    "WAL",
    "MemTable",
    "SSTable",
]
