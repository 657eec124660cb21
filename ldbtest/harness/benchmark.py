"""
Two-phase write/read throughput benchmark.

Tests:
1. Write phase: n puts of deterministic keys and values
2. Read phase: n gets of the same keys, each of which must be found

Metrics:
- Whole-phase wall-clock time in milliseconds
- Operations per second (n * 1000 / elapsed_ms)
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from ldbtest.harness.status import Status
from ldbtest.harness.tester import Tester
from ldbtest.models.exceptions import ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_OPERATIONS = 10000

VALUE_FILLER = b"x" * 100


def generate_key(i: int) -> bytes:
    return b"perf_key_%d" % i


def generate_value(i: int) -> bytes:
    return b"perf_value_%d_" % i + VALUE_FILLER


@dataclass(frozen=True)
class PhaseResult:
    """Timing of one benchmark phase."""

    name: str
    operations: int
    elapsed_ms: int

    @property
    def ops_per_sec(self) -> float | None:
        """Throughput, or None when the phase finished within one millisecond."""
        if self.elapsed_ms == 0:
            return None
        return self.operations * 1000 / self.elapsed_ms


@dataclass(frozen=True)
class PerformanceReport:
    operations: int
    write: PhaseResult
    read: PhaseResult


class BenchmarkAborted(Exception):
    """
    Raised when an operation fails mid-phase.

    The benchmark stops at the first failure; no throughput is computed for
    a run that did not complete.
    """

    def __init__(self, phase: str, index: int, status: Status) -> None:
        self.phase = phase
        self.index = index
        self.status = status
        super().__init__(f"Performance test {phase} failed at {index}: {status}")


class PerformanceTest:
    """
    Times n writes followed by n reads of the same deterministic keys.

    Keys and values are byte-identical across runs for the same n, so a
    run is reproducible and every read has a write to find.
    """

    def __init__(self, tester: Tester, clock: Callable[[], int] = time.perf_counter_ns) -> None:
        """
        Args:
            tester: Initialized tester to drive.
            clock: Monotonic clock returning nanoseconds.
        """
        self.tester = tester
        self._clock = clock

    def run(self, num_operations: int = DEFAULT_OPERATIONS) -> PerformanceReport:
        """
        Run the write phase, then the read phase.

        Raises:
            ValueError: If num_operations is negative.
            BenchmarkAborted: On the first failed write or read.
        """
        if num_operations < 0:
            raise ValueError(f"num_operations must be >= 0, got {num_operations}")

        write = self._timed("write", num_operations, self._write_one)
        read = self._timed("read", num_operations, self._read_one)
        return PerformanceReport(operations=num_operations, write=write, read=read)

    def _timed(self, phase: str, count: int, operation: Callable[[int], Status]) -> PhaseResult:
        start = self._clock()
        for i in range(count):
            status = operation(i)
            if not status.ok:
                logger.debug("Benchmark %s phase stopped at %d: %s", phase, i, status)
                raise BenchmarkAborted(phase, i, status)
        elapsed_ms = (self._clock() - start) // 1_000_000
        return PhaseResult(name=phase, operations=count, elapsed_ms=elapsed_ms)

    def _write_one(self, i: int) -> Status:
        return self.tester.put(generate_key(i), generate_value(i))

    def _read_one(self, i: int) -> Status:
        result = self.tester.get(generate_key(i))
        if result.is_found:
            return Status.success()
        if result.is_error:
            return result.status
        return Status(kind=ErrorKind.NOT_FOUND, message=generate_key(i).decode())
