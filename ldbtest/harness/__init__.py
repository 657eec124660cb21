"""
Command harness that exercises a store: point operations, atomic batches,
bounded range scans, statistics and a throughput benchmark.
"""

from ldbtest.harness.benchmark import BenchmarkAborted, PerformanceReport, PerformanceTest
from ldbtest.harness.status import GetOutcome, GetResult, ScanResult, Status, StoreStats
from ldbtest.harness.tester import Tester

__all__ = [
    "Tester",
    "Status",
    "GetOutcome",
    "GetResult",
    "ScanResult",
    "StoreStats",
    "PerformanceTest",
    "PerformanceReport",
    "BenchmarkAborted",
]
