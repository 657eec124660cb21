"""
DB - ordered, durable key-value store.
"""

import logging
import os

from ldbtest.models.exceptions import InvalidArgumentError, StoreError
from ldbtest.models.memtable import MemTable
from ldbtest.models.sortedcontainers import SortedKeyList
from ldbtest.models.wal import WAL
from ldbtest.models.wal_entry import WALRecord
from ldbtest.store.compactor import SSTableCompactor
from ldbtest.store.initializer import LOCK_FILE, EngineInitializer, wal_path
from ldbtest.store.lock import FileLock
from ldbtest.store.mem_to_sstable import MemToSSTableConverter
from ldbtest.store.merge_iterator import DBIterator
from ldbtest.store.options import Options, WriteOptions
from ldbtest.store.table_cache import TableCache, TableMeta
from ldbtest.store.write_batch import WriteBatch, ensure_bytes

logger = logging.getLogger(__name__)

PROPERTY_PREFIX = "ldb."
STATS_PROPERTY = "ldb.stats"
MEMORY_USAGE_PROPERTY = "ldb.approximate-memory-usage"
NUM_TABLES_PROPERTY = "ldb.num-tables"
SSTABLES_PROPERTY = "ldb.sstables"


class DB:
    """
    LSM-Tree based key-value store.

    Provides:
    - put(key, value) / delete(key): single-key writes
    - write(batch): atomic multi-key writes
    - get(key): point lookups, None when absent
    - new_iterator(): forward cursor with seek
    - get_property(name): introspection

    Architecture:
    - Writes go to the WAL (one record per write call) then the MemTable
    - When the MemTable reaches write_buffer_size it is flushed to an SSTable
    - When compaction_trigger SSTables exist they are merged into one
    - Reads check the MemTable first, then SSTables (newest to oldest)

    Keys and values are bytes, ordered by raw byte comparison.
    """

    def __init__(self, path: str, options: Options | None = None) -> None:
        """
        Create an unopened store handle. Use DB.open() instead.

        Args:
            path: Directory of the store.
            options: Open-time configuration.
        """
        if not path or not path.strip():
            raise InvalidArgumentError("store path cannot be empty")

        self._path = os.path.abspath(path)
        self._options = options or Options()

        self._lock = FileLock(os.path.join(self._path, LOCK_FILE))
        self._table_cache = TableCache(self._options.table_cache_capacity)

        # Current active MemTable and WAL (valid once opened)
        self._memtable: MemTable = MemTable(SortedKeyList())
        self._wal: WAL | None = None

        # On-disk SSTables (ordered newest to oldest for reads)
        self._tables: list[TableMeta] = []

        self._next_file_id: int = 1
        self._last_sequence: int = 0

        # First unrecoverable background failure; later writes report it
        self._bg_error: StoreError | None = None

        self._live_iterators = 0
        self._opened = False
        self._closed = False

        # Counters reported by the stats property
        self._write_batches = 0
        self._write_ops = 0
        self._flushes = 0
        self._compactions = 0

    @property
    def path(self) -> str:
        return self._path

    @property
    def options(self) -> Options:
        return self._options

    @classmethod
    def open(cls, path: str, options: Options | None = None) -> "DB":
        """
        Open (or create) the store at path.

        Raises:
            InvalidArgumentError: Missing store without create_if_missing, or
                                  existing store with error_if_exists.
            StoreIOError: Lock held elsewhere, or filesystem failure.
            CorruptionError: Unreadable WAL or SSTable.
        """
        db = cls(path, options)
        db._open()
        return db

    def _open(self) -> None:
        initializer = EngineInitializer(self._path)
        exists = initializer.exists()
        if not exists and not self._options.create_if_missing:
            raise InvalidArgumentError(f"{self._path}: does not exist (create_if_missing is false)")
        if exists and self._options.error_if_exists:
            raise InvalidArgumentError(f"{self._path}: exists (error_if_exists is true)")

        with initializer:
            self._lock.acquire()
            try:
                if exists:
                    initializer.check_format()
                else:
                    initializer.mark_created()
                self._recover(initializer)
            except Exception:
                try:
                    if self._wal is not None:
                        self._wal.close()
                finally:
                    self._table_cache.close()
                    self._lock.release()
                raise

        self._opened = True
        logger.debug("Opened store %s with %d SSTable(s)", self._path, len(self._tables))

    def _recover(self, initializer: EngineInitializer) -> None:
        """Load SSTables and turn any replayed WAL writes into a new SSTable."""
        state = initializer.recover(paranoid=self._options.paranoid_checks)

        for sstable in state.sstables:
            file_id = int(sstable.id)
            self._tables.insert(0, TableMeta.from_sstable(file_id, sstable))
            self._table_cache.insert(file_id, sstable)

        self._next_file_id = state.next_file_id
        self._last_sequence = state.last_seq

        if state.memtable.size() > 0:
            self._flush(state.memtable, state.wals)
        else:
            for wal in state.wals:
                wal.destroy()

        self._new_wal()
        self._maybe_compact()

    def _allocate_file_id(self) -> int:
        file_id = self._next_file_id
        self._next_file_id += 1
        return file_id

    def _new_wal(self) -> None:
        file_id = self._allocate_file_id()
        self._wal = WAL(id=str(file_id), file_path=wal_path(self._path, file_id))
        self._wal.open()
        self._memtable = MemTable(SortedKeyList())

    def _check_open(self) -> None:
        if not self._opened:
            raise RuntimeError("store is not open")
        if self._closed:
            raise RuntimeError("store is closed")

    def put(self, key: bytes, value: bytes, options: WriteOptions | None = None) -> None:
        """Insert or update a key-value pair."""
        self.write(WriteBatch().put(key, value), options)

    def delete(self, key: bytes, options: WriteOptions | None = None) -> None:
        """Delete a key; deleting an absent key is not an error."""
        self.write(WriteBatch().delete(key), options)

    def write(self, batch: WriteBatch, options: WriteOptions | None = None) -> None:
        """
        Apply every operation of batch atomically.

        The batch is logged as a single WAL record before any of it reaches
        the MemTable, so after a crash it is recovered whole or not at all.

        Raises:
            StoreIOError: If the WAL append fails, or an earlier
                          background failure made the store read-only.
        """
        self._check_open()
        if self._bg_error is not None:
            raise self._bg_error

        ops = batch.ops
        if not ops:
            return

        options = options or WriteOptions()
        record = WALRecord(seq=self._last_sequence + 1, ops=ops)
        try:
            self._wal.append(record, sync=options.sync)
        except StoreError as e:
            # The log may now end in a partial record; refuse further writes
            self._bg_error = e
            raise

        self._memtable.apply(ops)
        self._last_sequence += len(ops)
        self._write_batches += 1
        self._write_ops += len(ops)

        self._maybe_rotate_memtable()

    def get(self, key: bytes) -> bytes | None:
        """
        Retrieve a value by key.

        Returns:
            The value, or None if the key is absent or deleted.

        Raises:
            StoreIOError, CorruptionError: If an SSTable read fails.
        """
        self._check_open()
        key = ensure_bytes(key)

        value = self._memtable.get(key)
        if value is None:
            for meta in self._tables:
                if not meta.may_contain(key):
                    continue
                value = self._table_cache.get(meta).get(key)
                if value is not None:
                    break

        if value is None or value.is_tombstone():
            return None
        return value.data

    def new_iterator(self) -> DBIterator:
        """
        Return an unpositioned forward cursor over the store.

        Compactions are deferred while any cursor is open, so the SSTables
        it reads stay in place. Its tables are pinned in the table cache
        until it closes, so lookups cannot close them underneath it.
        """
        self._check_open()
        memtable = self._memtable
        tables = list(self._tables)
        file_ids = [meta.file_id for meta in tables]

        def sources(start: bytes | None):
            result = [memtable.iterator(start)]
            for meta in tables:
                result.append(self._table_cache.get(meta).iterator(start))
            return result

        def release() -> None:
            self._table_cache.unpin(file_ids)
            self._live_iterators -= 1

        self._table_cache.pin(file_ids)
        self._live_iterators += 1
        return DBIterator(sources, on_close=release)

    def get_property(self, name: str) -> str | None:
        """
        Return the value of a named property, or None if it is unknown.

        Properties:
            ldb.stats: multi-line report of tables, memtable and counters
            ldb.approximate-memory-usage: bytes held in memory
            ldb.num-tables: number of SSTables
            ldb.sstables: one line per SSTable
        """
        self._check_open()
        if not name.startswith(PROPERTY_PREFIX):
            return None

        if name == STATS_PROPERTY:
            return self._stats_report()
        if name == MEMORY_USAGE_PROPERTY:
            return str(self.approximate_memory_usage())
        if name == NUM_TABLES_PROPERTY:
            return str(len(self._tables))
        if name == SSTABLES_PROPERTY:
            return "".join(
                f"{meta.file_id:06d}.sst: {meta.num_entries} entries, {meta.file_size} bytes\n"
                for meta in self._tables
            )
        return None

    def approximate_memory_usage(self) -> int:
        return self._memtable.size_bytes() + self._table_cache.approximate_memory_usage()

    def _stats_report(self) -> str:
        lines = [
            "                               SSTables",
            "Table      Entries    Size(KB)",
            "------------------------------",
        ]
        for meta in self._tables:
            lines.append(f"{meta.file_id:06d} {meta.num_entries:11d} {meta.file_size / 1024:11.1f}")
        lines.append("")
        lines.append(
            f"MemTable: {self._memtable.size()} entries, {self._memtable.size_bytes()} bytes"
        )
        lines.append(f"WAL: {os.path.basename(self._wal.file_path)}, {self._wal.size} bytes")
        lines.append(f"Writes: {self._write_batches} batches, {self._write_ops} ops")
        lines.append(f"Flushes: {self._flushes}  Compactions: {self._compactions}")
        lines.append(
            f"Table cache: {len(self._table_cache)}/{self._table_cache.capacity} open, "
            f"{self._table_cache.hits} hits, {self._table_cache.misses} misses"
        )
        return "\n".join(lines) + "\n"

    def _maybe_rotate_memtable(self) -> None:
        """Flush the MemTable if its size reached write_buffer_size."""
        if self._memtable.size_bytes() < self._options.write_buffer_size:
            return

        try:
            self._flush(self._memtable, [self._wal])
            self._new_wal()
            self._maybe_compact()
        except StoreError as e:
            # The triggering write is already durable in the WAL; later writes fail
            logger.error("Background work failed, store is now read-only: %s", e)
            self._bg_error = e

    def _flush(self, memtable: MemTable, wals: list[WAL]) -> None:
        """Write memtable to a new SSTable and delete its WALs."""
        file_id = self._allocate_file_id()
        converter = MemToSSTableConverter(memtable=memtable, wals=wals, storage_dir=self._path)
        sstable = converter.initiate(file_id)
        memtable.mark_immutable()

        self._tables.insert(0, TableMeta.from_sstable(file_id, sstable))
        self._table_cache.insert(file_id, sstable)
        self._flushes += 1
        logger.debug(
            "Flushed %d entries to SSTable %06d (%d bytes)",
            sstable.num_entries,
            file_id,
            sstable.file_size,
        )

    def _maybe_compact(self) -> None:
        """Merge all SSTables into one when their count reaches the trigger."""
        if len(self._tables) < self._options.compaction_trigger:
            return
        if self._live_iterators > 0:
            logger.debug("Compaction deferred: %d open iterator(s)", self._live_iterators)
            return

        inputs = list(self._tables)
        compactor = SSTableCompactor(
            [self._table_cache.get(meta) for meta in inputs], self._path
        )
        file_id = self._allocate_file_id()
        sstable = compactor.compact(file_id)

        self._tables = [TableMeta.from_sstable(file_id, sstable)]
        self._table_cache.insert(file_id, sstable)
        for meta in inputs:
            self._table_cache.evict(meta.file_id)
            try:
                os.remove(meta.file_path)
            except OSError as e:
                logger.warning("Could not remove compacted SSTable %s: %s", meta.file_path, e)

        self._compactions += 1
        logger.debug(
            "Compacted %d SSTables into %06d (%d entries)",
            len(inputs),
            file_id,
            sstable.num_entries,
        )

    def close(self) -> None:
        """
        Flush the MemTable and release every resource. Idempotent.

        If the final flush fails the WAL is kept, so nothing is lost, and
        the error is raised after the store is released.
        """
        if not self._opened or self._closed:
            return
        self._closed = True

        flush_error: StoreError | None = None
        try:
            if self._memtable.size() > 0 and self._bg_error is None:
                self._wal.close()
                self._flush(self._memtable, [self._wal])
        except StoreError as e:
            logger.critical("Failed to flush MemTable on close, WAL kept: %s", e)
            flush_error = e
        finally:
            try:
                self._wal.close()
                if self._memtable.size() == 0:
                    self._wal.destroy()
            except StoreError as e:
                logger.critical("Failed to release WAL %s: %s", self._wal.file_path, e)
                if flush_error is None:
                    flush_error = e
            finally:
                self._table_cache.close()
                self._lock.release()

        logger.debug("Closed store %s", self._path)
        if flush_error is not None:
            raise flush_error

    def __enter__(self) -> "DB":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DB(path={self._path!r})"
