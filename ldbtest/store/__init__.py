"""
Ordered, durable key-value store consumed by the harness.

Contract:
- DB.open(path, Options) - open or create
- put / get / delete - point operations
- write(WriteBatch) - atomic batch apply
- new_iterator() - forward cursor with seek
- get_property(name) - named introspection
"""

from ldbtest.store.db import DB, MEMORY_USAGE_PROPERTY, STATS_PROPERTY
from ldbtest.store.merge_iterator import DBIterator
from ldbtest.store.options import Options, WriteOptions
from ldbtest.store.write_batch import WriteBatch

__all__ = [
    "DB",
    "DBIterator",
    "Options",
    "WriteOptions",
    "WriteBatch",
    "STATS_PROPERTY",
    "MEMORY_USAGE_PROPERTY",
]
