"""
Tester - drives one store through the harness operations.
"""

import logging

from ldbtest.harness.status import GetResult, ScanResult, Status, StoreStats
from ldbtest.models.exceptions import StoreError
from ldbtest.store import DB, MEMORY_USAGE_PROPERTY, STATS_PROPERTY, Options, WriteBatch

logger = logging.getLogger(__name__)

# Fixed configuration every harness run opens the store with
WRITE_BUFFER_SIZE = 4 * 1024 * 1024
MAX_OPEN_FILES = 1000

DEFAULT_SCAN_COUNT = 100


def parse_batch_lines(lines: list[bytes]) -> list[tuple[bytes, bytes]]:
    """
    Parse "key value" lines for a bulk load.

    The key is the first whitespace-delimited token and the value is the rest
    of the line. Blank lines are skipped.

    Raises:
        ValueError: On a line with a key but no value, naming the line number.
    """
    pairs = []
    for lineno, line in enumerate(lines, start=1):
        line = line.rstrip(b"\r\n")
        if not line.strip():
            continue
        parts = line.split(None, 1)
        if len(parts) < 2:
            raise ValueError(f"line {lineno}: expected '<key> <value>'")
        pairs.append((parts[0], parts[1]))
    return pairs


class Tester:
    """
    Owns one store handle and exposes the harness operations on it.

    Mutations return a Status, reads a GetResult; store failures are turned
    into those results at this boundary and never raised. Use as a context
    manager so the handle is released on every exit path.
    """

    # Keeps pytest from collecting this class from test modules that import it
    __test__ = False

    def __init__(self, db_path: str) -> None:
        """
        Args:
            db_path: Directory of the store to exercise.
        """
        self.db_path = db_path
        self._db: DB | None = None
        self._initialized = False
        self._closed = False

    @property
    def db(self) -> DB:
        if self._closed:
            raise RuntimeError("tester is closed")
        if self._db is None:
            raise RuntimeError("tester is not initialized")
        return self._db

    def initialize(self, create_if_missing: bool = True) -> Status:
        """
        Open the store with the harness configuration.

        Returns:
            Ok on success, the open failure otherwise.
        """
        if self._closed:
            raise RuntimeError("tester is closed")
        if self._initialized:
            return Status.invalid_argument("store is already initialized")
        self._initialized = True

        options = Options(
            create_if_missing=create_if_missing,
            write_buffer_size=WRITE_BUFFER_SIZE,
            max_open_files=MAX_OPEN_FILES,
        )
        try:
            self._db = DB.open(self.db_path, options)
        except StoreError as e:
            logger.debug("Open of %s failed: %s", self.db_path, e)
            return Status.from_error(e)
        return Status.success()

    def close(self) -> None:
        """
        Release the store handle. Only the first call has an effect.

        Raises:
            StoreError: If the store failed to flush while closing; the
                        handle is released regardless.
        """
        if self._closed:
            return
        self._closed = True
        db, self._db = self._db, None
        if db is not None:
            db.close()

    def __enter__(self) -> "Tester":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def put(self, key: bytes, value: bytes) -> Status:
        try:
            self.db.put(key, value)
        except StoreError as e:
            return Status.from_error(e)
        return Status.success()

    def get(self, key: bytes) -> GetResult:
        try:
            value = self.db.get(key)
        except StoreError as e:
            return GetResult.error(Status.from_error(e))
        if value is None:
            return GetResult.not_found()
        return GetResult.found(value)

    def delete(self, key: bytes) -> Status:
        try:
            self.db.delete(key)
        except StoreError as e:
            return Status.from_error(e)
        return Status.success()

    def batch_write(self, pairs: list[tuple[bytes, bytes]]) -> Status:
        """
        Apply every (key, value) pair as one atomic write.

        Either all pairs become visible or none do; only the failure of the
        write as a whole is reported.
        """
        batch = WriteBatch()
        for key, value in pairs:
            batch.put(key, value)

        try:
            self.db.write(batch)
        except StoreError as e:
            return Status.from_error(e)
        return Status.success()

    def batch_load(self, file_path: str) -> tuple[Status, int]:
        """
        Bulk load a "key value per line" file with a single batch write.

        A malformed or unreadable file is rejected before anything is written.

        Returns:
            The status of the load and the number of pairs written.
        """
        try:
            with open(file_path, "rb") as f:
                lines = f.readlines()
        except OSError as e:
            return Status.invalid_argument(f"{file_path}: {e.strerror or e}"), 0

        try:
            pairs = parse_batch_lines(lines)
        except ValueError as e:
            return Status.invalid_argument(f"{file_path}: {e}"), 0

        status = self.batch_write(pairs)
        return status, len(pairs) if status.ok else 0

    def scan(
        self,
        start_key: bytes = b"",
        end_key: bytes = b"",
        max_count: int = DEFAULT_SCAN_COUNT,
    ) -> ScanResult:
        """
        Emit up to max_count records from start_key through end_key, both inclusive.

        An empty start_key starts at the first key, an empty end_key leaves
        the range open. The end bound stops the scan, it is never counted.

        Returns:
            The emitted records and the iterator's terminal status.
        """
        records: list[tuple[bytes, bytes]] = []
        try:
            iterator = self.db.new_iterator()
        except StoreError as e:
            return ScanResult(records=records, status=Status.from_error(e))

        with iterator:
            if start_key:
                iterator.seek(start_key)
            else:
                iterator.seek_to_first()

            while iterator.valid() and len(records) < max_count:
                key = iterator.key()
                if end_key and key > end_key:
                    break
                records.append((key, iterator.value()))
                iterator.next()

            error = iterator.status()

        if error is not None:
            return ScanResult(records=records, status=Status.from_error(error))
        return ScanResult(records=records)

    def get_stats(self) -> StoreStats:
        """Read the statistics report and memory usage properties."""
        return StoreStats(
            stats=self.db.get_property(STATS_PROPERTY),
            memory_usage=self.db.get_property(MEMORY_USAGE_PROPERTY),
        )
