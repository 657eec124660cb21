"""
Command line entry point: ldbtest <db_path> <command> [args...]
"""

import argparse
import logging
import os
import sys
from collections.abc import Callable

from ldbtest.harness import BenchmarkAborted, PerformanceTest, Tester
from ldbtest.harness.benchmark import DEFAULT_OPERATIONS, PhaseResult
from ldbtest.harness.tester import DEFAULT_SCAN_COUNT
from ldbtest.models.exceptions import StoreError

logger = logging.getLogger(__name__)

USAGE = """\
LevelDB-style Store Test Utility
Usage: ldbtest <db_path> <command> [args...]
Commands:
  put <key> <value>     - Put a key-value pair
  get <key>             - Get value by key
  delete <key>          - Delete a key
  scan [start] [end] [count] - Scan database
  batch <file>          - Batch load from file (key value per line)
  stats                 - Show database statistics
  perf [count]          - Run performance test
  help                  - Show this help
Examples:
  ldbtest ./testdb put hello world
  ldbtest ./testdb get hello
  ldbtest ./testdb scan
  ldbtest ./testdb scan user: user:9999 10
  ldbtest ./testdb batch pairs.txt
  ldbtest ./testdb perf 1000
"""

# No options are defined, so keys and values starting with "-" stay positional.
# argv entries cannot contain NUL.
NO_OPTION_PREFIX = "\0"

Handler = Callable[[Tester, argparse.Namespace], int]

_COMMANDS: dict[str, Handler] = {}


def command(name: str) -> Callable[[Handler], Handler]:
    """Register a handler for a command name."""

    def register(handler: Handler) -> Handler:
        _COMMANDS[name] = handler
        return handler

    return register


def _show(data: bytes) -> str:
    return data.decode("utf-8", errors="backslashreplace")


def _non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


class _ArgumentParser(argparse.ArgumentParser):
    """Reports usage errors on stderr with exit status 1."""

    def error(self, message: str) -> None:
        print(f"Error: {message}", file=sys.stderr)
        print(USAGE, file=sys.stderr, end="")
        raise SystemExit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="ldbtest", usage=USAGE, add_help=False, prefix_chars=NO_OPTION_PREFIX
    )
    parser.add_argument("db_path", help="Directory of the store")

    subparsers = parser.add_subparsers(dest="command", required=True)

    put_parser = subparsers.add_parser("put", add_help=False, prefix_chars=NO_OPTION_PREFIX)
    put_parser.add_argument("key", type=os.fsencode)
    put_parser.add_argument("value", type=os.fsencode)

    get_parser = subparsers.add_parser("get", add_help=False, prefix_chars=NO_OPTION_PREFIX)
    get_parser.add_argument("key", type=os.fsencode)

    delete_parser = subparsers.add_parser("delete", add_help=False, prefix_chars=NO_OPTION_PREFIX)
    delete_parser.add_argument("key", type=os.fsencode)

    scan_parser = subparsers.add_parser("scan", add_help=False, prefix_chars=NO_OPTION_PREFIX)
    scan_parser.add_argument("start", nargs="?", type=os.fsencode, default=b"")
    scan_parser.add_argument("end", nargs="?", type=os.fsencode, default=b"")
    scan_parser.add_argument("count", nargs="?", type=int, default=DEFAULT_SCAN_COUNT)

    batch_parser = subparsers.add_parser("batch", add_help=False, prefix_chars=NO_OPTION_PREFIX)
    batch_parser.add_argument("file")

    subparsers.add_parser("stats", add_help=False, prefix_chars=NO_OPTION_PREFIX)

    perf_parser = subparsers.add_parser("perf", add_help=False, prefix_chars=NO_OPTION_PREFIX)
    perf_parser.add_argument("count", nargs="?", type=_non_negative_int, default=DEFAULT_OPERATIONS)

    subparsers.add_parser("help", add_help=False, prefix_chars=NO_OPTION_PREFIX)

    return parser


@command("put")
def put(tester: Tester, args: argparse.Namespace) -> int:
    status = tester.put(args.key, args.value)
    if not status.ok:
        print(f"Put failed: {status}", file=sys.stderr)
        return 1
    print(f"Put successful: {_show(args.key)} -> {_show(args.value)}")
    return 0


@command("get")
def get(tester: Tester, args: argparse.Namespace) -> int:
    result = tester.get(args.key)
    if result.is_error:
        print(f"Get failed: {result.status}", file=sys.stderr)
        return 1
    if result.is_not_found:
        print(f"Key not found: {_show(args.key)}")
        return 0
    print(f"{_show(args.key)} -> {_show(result.value)}")
    return 0


@command("delete")
def delete(tester: Tester, args: argparse.Namespace) -> int:
    status = tester.delete(args.key)
    if not status.ok:
        print(f"Delete failed: {status}", file=sys.stderr)
        return 1
    print(f"Delete successful: {_show(args.key)}")
    return 0


@command("scan")
def scan(tester: Tester, args: argparse.Namespace) -> int:
    result = tester.scan(args.start, args.end, args.count)

    print("Scanning database:")
    for key, value in result.records:
        print(f"  {_show(key)} -> {_show(value)}")

    exit_code = 0
    if not result.status.ok:
        print(f"Iterator error: {result.status}", file=sys.stderr)
        exit_code = 1

    print(f"Total {result.count} records scanned.")
    return exit_code


@command("batch")
def batch(tester: Tester, args: argparse.Namespace) -> int:
    status, count = tester.batch_load(args.file)
    if not status.ok:
        print(f"Batch write failed: {status}", file=sys.stderr)
        return 1
    print(f"Batch write successful: {count} records")
    return 0


@command("stats")
def stats(tester: Tester, args: argparse.Namespace) -> int:
    result = tester.get_stats()
    if result.stats is not None:
        print(f"Database statistics:\n{result.stats}")
    if result.memory_usage is not None:
        print(f"Approximate memory usage: {result.memory_usage} bytes")
    return 0


def _format_phase(label: str, phase: PhaseResult) -> str:
    ops_per_sec = phase.ops_per_sec
    if ops_per_sec is None:
        rate = "elapsed time too small to measure"
    else:
        rate = f"{ops_per_sec:.1f} ops/sec"
    return f"  {label} {phase.operations} ops in {phase.elapsed_ms}ms ({rate})"


@command("perf")
def perf(tester: Tester, args: argparse.Namespace) -> int:
    print(f"Starting performance test with {args.count} operations...")
    try:
        report = PerformanceTest(tester).run(args.count)
    except BenchmarkAborted as e:
        print(str(e), file=sys.stderr)
        return 1

    print("Performance test results:")
    print(_format_phase("Write:", report.write))
    print(_format_phase("Read: ", report.read))
    return 0


def run(args: argparse.Namespace) -> int:
    """Open the store, run one command and release the store."""
    try:
        with Tester(args.db_path) as tester:
            status = tester.initialize()
            if not status.ok:
                print(f"Failed to open database: {status}", file=sys.stderr)
                return 1
            print(f"Database opened successfully: {args.db_path}")
            return _COMMANDS[args.command](tester, args)
    except StoreError as e:
        print(f"Failed to close database: {e}", file=sys.stderr)
        return 1


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        args = build_parser().parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1

    if args.command == "help":
        print(USAGE, end="")
        return 0

    return run(args)


if __name__ == "__main__":
    raise SystemExit(main())
