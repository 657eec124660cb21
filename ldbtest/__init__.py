"""
Command-line harness for an ordered, durable key-value store.

This package provides:
- Tester - put, get, delete, batch_write, scan, get_stats on one store handle
- PerformanceTest - two-phase write/read throughput benchmark
- DB - the LSM-Tree store the harness drives (WAL, MemTable, SSTables)
"""

from ldbtest.harness import PerformanceTest, Tester
from ldbtest.store import DB

__all__ = ["DB", "Tester", "PerformanceTest"]
__version__ = "0.1.0"
