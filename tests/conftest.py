"""
Shared pytest fixtures for store and harness tests.
"""

import os
import tempfile

import pytest

from ldbtest.harness import Tester
from ldbtest.models.memtable import MemTable
from ldbtest.models.sortedcontainers import SortedKeyList
from ldbtest.models.value import Value
from ldbtest.store import DB, Options


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db_path(temp_dir):
    """Provide a path for a store that does not exist yet."""
    return os.path.join(temp_dir, "testdb")


@pytest.fixture
def db(db_path):
    """Provide an open DB instance."""
    with DB.open(db_path, Options(create_if_missing=True)) as store:
        yield store


@pytest.fixture
def db_small_buffer(db_path):
    """Provide a DB with a tiny write buffer so writes flush to SSTables."""
    with DB.open(db_path, Options(create_if_missing=True, write_buffer_size=256)) as store:
        yield store


@pytest.fixture
def tester(db_path):
    """Provide an initialized Tester."""
    with Tester(db_path) as t:
        assert t.initialize().ok
        yield t


@pytest.fixture
def wal_path(temp_dir):
    """Provide a path for WAL file."""
    return os.path.join(temp_dir, "test.wal")


@pytest.fixture
def sstable_path(temp_dir):
    """Provide a path for SSTable file."""
    return os.path.join(temp_dir, "test.sst")


@pytest.fixture
def memtable():
    """Provide a fresh MemTable instance."""
    return MemTable(SortedKeyList())


@pytest.fixture
def sample_entries():
    """Provide sample key-value entries for testing."""
    return [
        (b"key1", Value.regular(b"value1")),
        (b"key2", Value.regular(b"value2")),
        (b"key3", Value.regular(b"value3")),
    ]


@pytest.fixture
def large_sample_entries():
    """Provide larger sample for stress testing."""
    return [(b"key%04d" % i, Value.regular(b"value%d" % i)) for i in range(1000)]
