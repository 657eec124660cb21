"""
Abstract base classes and protocols for the storage engine.
"""

from ldbtest.interfaces.range_iterable import RangeIterable
from ldbtest.interfaces.sorted_container import SortedContainer

__all__ = ["RangeIterable", "SortedContainer"]
