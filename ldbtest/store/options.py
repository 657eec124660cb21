"""
Options controlling how a store is opened and written.
"""

import logging
from dataclasses import dataclass

from ldbtest.models.exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

# Default MemTable flush threshold (4MB)
DEFAULT_WRITE_BUFFER_SIZE = 4 * 1024 * 1024

DEFAULT_MAX_OPEN_FILES = 1000

# Table count that triggers a full compaction
DEFAULT_COMPACTION_TRIGGER = 4

# Handles kept back from the table cache for the WAL, lock and CURRENT files
RESERVED_FILE_HANDLES = 10

MIN_MAX_OPEN_FILES = 64 + RESERVED_FILE_HANDLES
MAX_MAX_OPEN_FILES = 50000


@dataclass
class Options:
    """
    Open-time configuration of a store.

    Attributes:
        create_if_missing: Create the store if it does not exist.
        error_if_exists: Fail if the store already exists.
        paranoid_checks: Fail on a corrupted WAL record instead of dropping
                         the log from that record on.
        write_buffer_size: MemTable size in bytes that triggers a flush.
        max_open_files: File handles the store may keep open; clipped to
                        [74, 50000].
        compaction_trigger: Number of SSTables that triggers a compaction.
    """

    create_if_missing: bool = False
    error_if_exists: bool = False
    paranoid_checks: bool = True
    write_buffer_size: int = DEFAULT_WRITE_BUFFER_SIZE
    max_open_files: int = DEFAULT_MAX_OPEN_FILES
    compaction_trigger: int = DEFAULT_COMPACTION_TRIGGER

    def __post_init__(self) -> None:
        if self.write_buffer_size <= 0:
            raise InvalidArgumentError(
                f"write_buffer_size must be positive, got {self.write_buffer_size}"
            )
        if self.write_buffer_size > 1024 * 1024 * 1024:  # 1GB maximum
            raise InvalidArgumentError(
                f"write_buffer_size too large: {self.write_buffer_size} bytes. "
                f"Maximum 1GB to avoid OOM."
            )
        if self.compaction_trigger < 2:
            raise InvalidArgumentError(
                f"compaction_trigger must be at least 2, got {self.compaction_trigger}"
            )

        clipped = min(max(self.max_open_files, MIN_MAX_OPEN_FILES), MAX_MAX_OPEN_FILES)
        if clipped != self.max_open_files:
            logger.debug("max_open_files %d clipped to %d", self.max_open_files, clipped)
            self.max_open_files = clipped

    @property
    def table_cache_capacity(self) -> int:
        return self.max_open_files - RESERVED_FILE_HANDLES


@dataclass(frozen=True)
class WriteOptions:
    """
    Per-write options.

    Attributes:
        sync: fsync the WAL before the write returns. When False the record
              is only handed to the OS, which survives a process crash but
              not a machine crash.
    """

    sync: bool = False
