"""
K-Way Merge Iterator and the store's forward cursor built on it.
"""

import heapq
from collections.abc import Callable, Iterator

from ldbtest.models.exceptions import StoreError
from ldbtest.models.value import Value
from ldbtest.store.write_batch import ensure_bytes


class KWayMergeIterator:
    """
    Efficiently merges K sorted iterators using a min-heap.

    Time Complexity: O(M log K) where M = total results, K = number of sources
    Space Complexity: O(K) for the heap

    Newer values (from sources earlier in the list) override older values.
    """

    def __init__(self, sources: list[Iterator[tuple[bytes, Value]]]) -> None:
        """
        Initialize k-way merge iterator.

        Args:
            sources: List of sorted iterators, ordered by priority (newest first).
                    When duplicate keys exist, earlier sources take precedence.
        """
        self._source_iters: list[Iterator[tuple[bytes, Value]] | None] = list(sources)
        # Heap of (key, source_idx, value); source_idx breaks ties, lower = newer
        self._heap: list[tuple[bytes, int, Value]] = []

        for i in range(len(self._source_iters)):
            self._advance_source(i)

    def _advance_source(self, source_idx: int) -> None:
        """Advance a source iterator and add its next element to the heap."""
        source_iter = self._source_iters[source_idx]
        if source_iter is None:
            return

        try:
            key, value = next(source_iter)
        except StopIteration:
            self._source_iters[source_idx] = None
            return
        heapq.heappush(self._heap, (key, source_idx, value))

    def __iter__(self) -> "KWayMergeIterator":
        return self

    def __next__(self) -> tuple[bytes, Value]:
        """
        Get next key-value pair in sorted order.

        Returns:
            Tuple of (key, value) with duplicates resolved (newest wins).

        Raises:
            StopIteration: When all sources are exhausted.
        """
        if not self._heap:
            raise StopIteration

        current_key, source_idx, current_value = heapq.heappop(self._heap)
        self._advance_source(source_idx)

        # Discard older duplicates of the same key
        while self._heap and self._heap[0][0] == current_key:
            _, dup_source_idx, _ = heapq.heappop(self._heap)
            self._advance_source(dup_source_idx)

        return (current_key, current_value)


SourceFactory = Callable[[bytes | None], list[Iterator[tuple[bytes, Value]]]]


class DBIterator:
    """
    Forward cursor over the live (non-deleted) entries of a store.

    Follows the seek/valid/key/value/next protocol. A read failure while
    positioning or advancing invalidates the cursor and is kept as its
    terminal status, distinct from plain exhaustion where status() is None.

    Also usable as a Python iterator: ``for key, value in it`` starts from
    the first key unless the cursor was already positioned, and raises the
    terminal error, if any, once the entries run out.
    """

    def __init__(
        self, source_factory: SourceFactory, on_close: Callable[[], None] | None = None
    ) -> None:
        """
        Args:
            source_factory: Builds sorted sources (newest first) starting at a key.
            on_close: Called once when the cursor is closed.
        """
        self._source_factory = source_factory
        self._on_close = on_close
        self._merge: KWayMergeIterator | None = None
        self._current: tuple[bytes, Value] | None = None
        self._status: StoreError | None = None
        self._positioned = False
        self._closed = False

    def seek_to_first(self) -> None:
        self._position(None)

    def seek(self, target: bytes) -> None:
        """Position at the first key >= target."""
        self._position(ensure_bytes(target))

    def valid(self) -> bool:
        return self._current is not None

    def key(self) -> bytes:
        return self._entry()[0]

    def value(self) -> bytes:
        return self._entry()[1].data

    def next(self) -> None:
        self._entry()
        self._advance()

    def status(self) -> StoreError | None:
        """The error that invalidated the cursor, or None."""
        return self._status

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._merge = None
        self._current = None
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> "DBIterator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[tuple[bytes, bytes]]:
        if not self._positioned:
            self.seek_to_first()
        while self.valid():
            yield self.key(), self.value()
            self.next()
        if self._status is not None:
            raise self._status

    def _entry(self) -> tuple[bytes, Value]:
        if self._current is None:
            raise RuntimeError("iterator is not positioned on an entry")
        return self._current

    def _position(self, start: bytes | None) -> None:
        if self._closed:
            raise RuntimeError("iterator is closed")

        self._positioned = True
        self._status = None
        self._current = None
        try:
            self._merge = KWayMergeIterator(self._source_factory(start))
        except StoreError as e:
            self._fail(e)
            return
        self._advance()

    def _advance(self) -> None:
        """Move to the next live entry, skipping tombstones."""
        try:
            while True:
                key, value = next(self._merge)
                if not value.is_tombstone():
                    self._current = (key, value)
                    return
        except StopIteration:
            self._current = None
        except StoreError as e:
            self._fail(e)

    def _fail(self, error: StoreError) -> None:
        self._status = error
        self._current = None
        self._merge = None
