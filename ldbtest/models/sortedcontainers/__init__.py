"""
Sorted container implementations for the storage engine.
"""

from ldbtest.models.sortedcontainers.sorted_key_list import SortedKeyList

__all__ = ["SortedKeyList"]
