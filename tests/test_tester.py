"""
Tests for the Tester harness operations and their result types.
"""

import os

import pytest

from ldbtest.harness import GetOutcome, GetResult, Status, Tester
from ldbtest.harness.tester import parse_batch_lines
from ldbtest.models.exceptions import ErrorKind, StoreIOError, TableCorruptionError
from ldbtest.models.sstable import SSTable


def _fill(tester, keys):
    for key in keys:
        assert tester.put(key, b"v_" + key).ok


class TestStatus:
    """Status and GetResult value types."""

    def test_ok_status(self):
        """The default status is ok and renders as OK."""
        status = Status.success()
        assert status.ok
        assert str(status) == "OK"

    def test_error_status_renders_kind_and_message(self):
        """Errors render as '<Kind>: <message>'."""
        status = Status.from_error(StoreIOError("lock held"))
        assert not status.ok
        assert status.is_io_error()
        assert str(status) == "IO error: lock held"

    def test_error_result_needs_error_status(self):
        """An error GetResult cannot carry an ok status."""
        with pytest.raises(ValueError):
            GetResult.error(Status.success())

    def test_get_outcomes_are_distinct(self):
        """Found, not-found and error are three separate outcomes."""
        found = GetResult.found(b"v")
        missing = GetResult.not_found()
        failed = GetResult.error(Status(kind=ErrorKind.CORRUPTION, message="bad"))

        assert found.outcome is GetOutcome.FOUND and found.value == b"v"
        assert missing.is_not_found and missing.value is None
        assert failed.is_error and failed.status.is_corruption()


class TestLifecycle:
    """initialize and close."""

    def test_not_collected_as_a_test_class(self):
        """The Tester name matches pytest's Test* pattern but is not a test class."""
        assert Tester.__test__ is False

    def test_initialize_creates_store(self, db_path):
        """initialize creates a missing store by default."""
        with Tester(db_path) as tester:
            assert tester.initialize().ok
        assert os.path.isdir(db_path)

    def test_initialize_without_create(self, db_path):
        """Opening a missing store without create fails with a status."""
        with Tester(db_path) as tester:
            status = tester.initialize(create_if_missing=False)
            assert status.kind == ErrorKind.INVALID_ARGUMENT
            with pytest.raises(RuntimeError):
                tester.put(b"k", b"v")

    def test_second_initialize_rejected(self, tester):
        """Only the first initialize binds a handle."""
        status = tester.initialize()
        assert status.kind == ErrorKind.INVALID_ARGUMENT

    def test_locked_store_fails_initialize(self, tester, db_path):
        """A second tester on the same store cannot open it."""
        with Tester(db_path) as other:
            status = other.initialize()
            assert status.is_io_error()
            assert str(status).startswith("IO error: ")

    def test_closed_tester_rejects_operations(self, db_path):
        """Operations after close are programming errors."""
        tester = Tester(db_path)
        assert tester.initialize().ok
        tester.close()
        tester.close()
        with pytest.raises(RuntimeError):
            tester.get(b"k")

    def test_handle_released_on_exception(self, db_path):
        """Leaving the with block by an exception still releases the store."""
        with pytest.raises(KeyError):
            with Tester(db_path) as tester:
                assert tester.initialize().ok
                raise KeyError("boom")

        with Tester(db_path) as tester:
            assert tester.initialize().ok


class TestPointOperations:
    """put, get and delete through the harness."""

    def test_hello_world(self, tester):
        """put then get round-trips; delete makes the key absent."""
        assert tester.put(b"hello", b"world").ok
        assert tester.get(b"hello") == GetResult.found(b"world")
        assert tester.delete(b"hello").ok
        assert tester.get(b"hello").is_not_found

    def test_never_written_key_is_not_found(self, tester):
        """A key never written reads as not-found, not as an error."""
        result = tester.get(b"missing")
        assert result.is_not_found
        assert result.status.ok

    def test_last_write_wins(self, tester):
        """A second put replaces the first."""
        tester.put(b"k", b"v1")
        tester.put(b"k", b"v2")
        assert tester.get(b"k").value == b"v2"

    def test_delete_absent_key_is_ok(self, tester):
        """Deleting a key that does not exist succeeds."""
        assert tester.delete(b"never").ok
        assert tester.get(b"never").is_not_found

    def test_read_error_is_not_not_found(self, db_path, monkeypatch):
        """A failed read is reported as an error, never as not-found."""
        with Tester(db_path) as tester:
            assert tester.initialize().ok
            tester.put(b"k", b"v")
        with Tester(db_path) as tester:
            assert tester.initialize().ok

            def corrupt(self, idx):
                raise TableCorruptionError(self.file_path, "bad block")

            monkeypatch.setattr(SSTable, "_read_value", corrupt)

            result = tester.get(b"k")
            assert result.is_error
            assert result.status.is_corruption()
            assert tester.get(b"zzz").is_not_found

    def test_put_failure_is_a_status(self, tester, monkeypatch):
        """A failed log append comes back as an IO error status."""

        def failing_append(self, record, sync=False):
            raise StoreIOError("disk full")

        monkeypatch.setattr("ldbtest.models.wal.WAL.append", failing_append)

        status = tester.put(b"k", b"v")
        assert status.is_io_error()
        assert status.message == "disk full"

    def test_filesystem_failure_is_a_status(self, db_path, monkeypatch):
        """An OS error during a flush surfaces as an IO error status, not an exception."""
        real_remove = os.remove

        def remove(path, *args, **kwargs):
            if str(path).endswith(".wal"):
                raise PermissionError(13, "Permission denied", path)
            return real_remove(path, *args, **kwargs)

        with Tester(db_path) as tester:
            assert tester.initialize().ok
            monkeypatch.setattr(os, "remove", remove)

            # Large enough to fill the write buffer and trigger a flush
            assert tester.put(b"big", b"v" * (4 * 1024 * 1024)).ok
            status = tester.put(b"k", b"v")

            assert status.is_io_error()
            assert "Permission denied" in status.message


class TestBatchWrite:
    """Atomic batch writes."""

    def test_batch_example(self, tester):
        """Every pair of a successful batch is readable."""
        assert tester.batch_write([(b"a", b"1"), (b"b", b"2")]).ok
        assert tester.get(b"a").value == b"1"
        assert tester.get(b"b").value == b"2"

    def test_failed_batch_leaves_no_keys(self, tester, monkeypatch):
        """An aborted batch makes none of its keys visible."""

        def failing_append(self, record, sync=False):
            raise StoreIOError("disk full")

        monkeypatch.setattr("ldbtest.models.wal.WAL.append", failing_append)

        pairs = [(b"k%d" % i, b"v") for i in range(10)]
        status = tester.batch_write(pairs)

        assert not status.ok
        for key, _ in pairs:
            assert tester.get(key).is_not_found

    def test_batch_survives_reopen(self, db_path):
        """A committed batch is durable."""
        with Tester(db_path) as tester:
            assert tester.initialize().ok
            assert tester.batch_write([(b"x", b"1"), (b"y", b"2")]).ok

        with Tester(db_path) as tester:
            assert tester.initialize().ok
            assert tester.get(b"x").value == b"1"
            assert tester.get(b"y").value == b"2"


class TestBatchLoad:
    """Bulk loading key/value files."""

    def test_parse_lines(self):
        """The key is the first token and the value is the rest of the line."""
        pairs = parse_batch_lines([b"a 1\n", b"\n", b"b two words\r\n", b"c\t3"])
        assert pairs == [(b"a", b"1"), (b"b", b"two words"), (b"c", b"3")]

    def test_parse_rejects_missing_value(self):
        """A line with only a key names the offending line."""
        with pytest.raises(ValueError, match="line 2"):
            parse_batch_lines([b"a 1\n", b"lonely\n"])

    def test_load_file(self, tester, temp_dir):
        """All pairs of a well-formed file are written."""
        path = os.path.join(temp_dir, "pairs.txt")
        with open(path, "wb") as f:
            f.write(b"user:1 alice\nuser:2 bob\n\nuser:3 carol\n")

        status, count = tester.batch_load(path)

        assert status.ok
        assert count == 3
        assert tester.get(b"user:2").value == b"bob"

    def test_malformed_file_writes_nothing(self, tester, temp_dir):
        """One bad line rejects the whole file."""
        path = os.path.join(temp_dir, "pairs.txt")
        with open(path, "wb") as f:
            f.write(b"a 1\nbroken\nc 3\n")

        status, count = tester.batch_load(path)

        assert status.kind == ErrorKind.INVALID_ARGUMENT
        assert count == 0
        assert tester.get(b"a").is_not_found

    def test_missing_file(self, tester, temp_dir):
        """An unreadable file is an invalid argument."""
        status, count = tester.batch_load(os.path.join(temp_dir, "nope.txt"))
        assert status.kind == ErrorKind.INVALID_ARGUMENT
        assert count == 0


class TestScan:
    """Bounded range scans."""

    def test_scan_window_example(self, tester):
        """Both bounds are inclusive."""
        _fill(tester, [b"a", b"b", b"c", b"d"])

        result = tester.scan(b"b", b"c", 100)

        assert [key for key, _ in result.records] == [b"b", b"c"]
        assert result.status.ok

    def test_scan_all(self, tester):
        """Empty bounds scan from the first key to the last."""
        _fill(tester, [b"c", b"a", b"b"])

        result = tester.scan()

        assert result.records == [(b"a", b"v_a"), (b"b", b"v_b"), (b"c", b"v_c")]
        assert result.count == 3

    def test_max_count_limits_records(self, tester):
        """At most max_count records are emitted, in order."""
        _fill(tester, [b"k%02d" % i for i in range(20)])

        result = tester.scan(max_count=5)

        assert [key for key, _ in result.records] == [b"k%02d" % i for i in range(5)]

    def test_scan_properties(self, tester):
        """Emitted keys lie in the window, increase strictly and respect the limit."""
        _fill(tester, [b"k%03d" % i for i in range(0, 200, 3)])

        start, end, limit = b"k050", b"k150", 20
        keys = [key for key, _ in tester.scan(start, end, limit).records]

        assert len(keys) <= limit
        assert all(start <= key <= end for key in keys)
        assert all(a < b for a, b in zip(keys, keys[1:]))

    def test_zero_max_count(self, tester):
        """max_count 0 emits nothing and is not an error."""
        _fill(tester, [b"a"])
        result = tester.scan(max_count=0)
        assert result.count == 0
        assert result.status.ok

    def test_negative_max_count(self, tester):
        """A negative max_count emits nothing."""
        _fill(tester, [b"a"])
        assert tester.scan(max_count=-1).count == 0

    def test_end_before_start(self, tester):
        """An inverted window emits nothing."""
        _fill(tester, [b"a", b"b", b"c", b"d"])
        result = tester.scan(b"c", b"b")
        assert result.count == 0
        assert result.status.ok

    def test_empty_store(self, tester):
        """Scanning an empty store emits nothing."""
        result = tester.scan()
        assert result.count == 0
        assert result.status.ok

    def test_start_beyond_all_keys(self, tester):
        """A start after the last key emits nothing."""
        _fill(tester, [b"a", b"b"])
        assert tester.scan(b"z").count == 0

    def test_deleted_keys_not_scanned(self, tester):
        """Deleted keys do not appear in scans."""
        _fill(tester, [b"a", b"b", b"c"])
        tester.delete(b"b")
        assert [key for key, _ in tester.scan().records] == [b"a", b"c"]

    def test_iterator_error_is_surfaced(self, db_path, monkeypatch):
        """A terminal iterator error is reported in the scan result."""
        with Tester(db_path) as tester:
            assert tester.initialize().ok
            _fill(tester, [b"a", b"b", b"c"])
        with Tester(db_path) as tester:
            assert tester.initialize().ok

            def corrupt(self, idx):
                raise TableCorruptionError(self.file_path, "bad block")

            monkeypatch.setattr(SSTable, "_read_value", corrupt)

            result = tester.scan()
            assert result.count == 0
            assert result.status.is_corruption()


class TestStats:
    """Statistics retrieval."""

    def test_stats_and_memory_usage(self, tester):
        """Both properties are reported."""
        tester.put(b"a", b"1")

        stats = tester.get_stats()

        assert "MemTable" in stats.stats
        assert int(stats.memory_usage) > 0
