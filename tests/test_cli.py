"""
Tests for the ldbtest command line.
"""

import os

import pytest

from ldbtest import cli
from ldbtest.store import DB, Options


@pytest.fixture
def run_cli(db_path, capsys):
    """Run one command against the test store and capture its output."""

    def run(*args):
        code = cli.main([db_path, *args])
        out, err = capsys.readouterr()
        return code, out, err

    return run


class TestPointCommands:
    """put, get and delete."""

    def test_put_then_get(self, run_cli, db_path):
        """A stored value is printed by a later get."""
        code, out, _ = run_cli("put", "hello", "world")
        assert code == 0
        assert f"Database opened successfully: {db_path}" in out
        assert "Put successful: hello -> world" in out

        code, out, _ = run_cli("get", "hello")
        assert code == 0
        assert "hello -> world" in out

    def test_get_missing_key(self, run_cli):
        """A missing key is reported but is not a failure."""
        code, out, _ = run_cli("get", "nope")
        assert code == 0
        assert "Key not found: nope" in out

    def test_delete(self, run_cli):
        """delete removes the key."""
        run_cli("put", "k", "v")
        code, out, _ = run_cli("delete", "k")
        assert code == 0
        assert "Delete successful: k" in out

        _, out, _ = run_cli("get", "k")
        assert "Key not found: k" in out

    def test_dash_prefixed_arguments(self, run_cli):
        """Keys and values starting with a dash are data, not options."""
        code, out, _ = run_cli("put", "-flag", "--v")
        assert code == 0
        assert "Put successful: -flag -> --v" in out

        code, out, _ = run_cli("get", "-flag")
        assert code == 0
        assert "-flag -> --v" in out

        code, out, _ = run_cli("scan", "-a", "-z")
        assert code == 0
        assert "  -flag -> --v" in out


class TestScanCommand:
    """scan output and bounds."""

    def test_scan_prints_records(self, run_cli):
        """Each record gets an indented line, followed by the total."""
        for key in ["a", "b", "c", "d"]:
            run_cli("put", key, key * 2)

        code, out, _ = run_cli("scan", "b", "c")

        assert code == 0
        lines = out.splitlines()
        start = lines.index("Scanning database:")
        assert lines[start + 1 :] == ["  b -> bb", "  c -> cc", "Total 2 records scanned."]

    def test_scan_count(self, run_cli):
        """The third argument limits the records scanned."""
        for key in ["a", "b", "c"]:
            run_cli("put", key, "v")

        _, out, _ = run_cli("scan", "", "", "1")

        assert "Total 1 records scanned." in out

    def test_non_utf8_bytes_are_escaped(self, run_cli, db_path):
        """Arbitrary bytes print with backslash escapes."""
        with DB.open(db_path, Options(create_if_missing=True)) as db:
            db.put(b"\xff", b"v\x00")

        _, out, _ = run_cli("scan")

        assert "  \\xff -> v\x00" in out


class TestBatchCommand:
    """Bulk loading from a file."""

    def test_batch_file(self, run_cli, temp_dir):
        """Every pair of the file is written."""
        path = os.path.join(temp_dir, "pairs.txt")
        with open(path, "w") as f:
            f.write("user:1 alice\nuser:2 bob\n")

        code, out, _ = run_cli("batch", path)
        assert code == 0
        assert "Batch write successful: 2 records" in out

        _, out, _ = run_cli("get", "user:2")
        assert "user:2 -> bob" in out

    def test_malformed_batch_file(self, run_cli, temp_dir):
        """A malformed file fails the command."""
        path = os.path.join(temp_dir, "pairs.txt")
        with open(path, "w") as f:
            f.write("only_a_key\n")

        code, _, err = run_cli("batch", path)

        assert code == 1
        assert "Batch write failed: Invalid argument:" in err


class TestStatsAndPerf:
    """stats and perf."""

    def test_stats(self, run_cli):
        """stats prints the report and the memory usage."""
        run_cli("put", "a", "1")

        code, out, _ = run_cli("stats")

        assert code == 0
        assert "Database statistics:" in out
        assert "Approximate memory usage:" in out

    def test_perf(self, run_cli):
        """perf prints both phases."""
        code, out, _ = run_cli("perf", "20")

        assert code == 0
        assert "Starting performance test with 20 operations..." in out
        assert "Performance test results:" in out
        assert "Write: 20 ops in" in out
        assert "Read:  20 ops in" in out

    def test_perf_zero(self, run_cli):
        """perf 0 reports that no throughput could be measured."""
        code, out, _ = run_cli("perf", "0")

        assert code == 0
        assert "elapsed time too small to measure" in out

    def test_format_phase(self):
        """Measurable phases print their throughput."""
        from ldbtest.harness.benchmark import PhaseResult

        line = cli._format_phase("Write:", PhaseResult("write", 1000, 500))
        assert line == "  Write: 1000 ops in 500ms (2000.0 ops/sec)"


class TestUsageAndErrors:
    """help, usage errors and open failures."""

    def test_help(self, run_cli, db_path):
        """help prints usage and does not open the store."""
        code, out, _ = run_cli("help")

        assert code == 0
        assert "Usage: ldbtest <db_path> <command> [args...]" in out
        assert "batch <file>" in out
        assert not os.path.exists(db_path)

    def test_unknown_command(self, run_cli):
        """An unknown command prints usage on stderr."""
        code, out, err = run_cli("frobnicate")

        assert code == 1
        assert out == ""
        assert "Usage:" in err

    def test_missing_arguments(self, capsys):
        """No arguments at all is a usage error."""
        code = cli.main([])
        _, err = capsys.readouterr()

        assert code == 1
        assert err.startswith("Error: ")

    def test_put_needs_value(self, run_cli):
        """put without a value is a usage error."""
        code, _, err = run_cli("put", "k")
        assert code == 1
        assert "Usage:" in err

    def test_bad_perf_count(self, run_cli):
        """A non-numeric count is rejected."""
        code, _, _ = run_cli("perf", "many")
        assert code == 1

    def test_close_failure(self, run_cli, monkeypatch):
        """A flush that fails while closing is reported with exit status 1."""
        real_remove = os.remove

        def remove(path, *args, **kwargs):
            if str(path).endswith(".wal"):
                raise PermissionError(13, "Permission denied", path)
            return real_remove(path, *args, **kwargs)

        monkeypatch.setattr(os, "remove", remove)

        code, out, err = run_cli("put", "k", "v")

        assert code == 1
        assert "Put successful: k -> v" in out
        assert "Failed to close database: IO error:" in err

    def test_open_failure(self, run_cli, db_path):
        """A store locked by another handle cannot be opened."""
        with DB.open(db_path, Options(create_if_missing=True)):
            code, out, err = run_cli("get", "k")

        assert code == 1
        assert "Failed to open database: IO error:" in err
        assert "Database opened successfully" not in out
