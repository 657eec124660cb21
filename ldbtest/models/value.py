"""
Value and ValueType for representing stored data.
"""

from dataclasses import dataclass, field
from enum import IntEnum

from ldbtest.models.exceptions import CorruptionError


class ValueType(IntEnum):
    """Type of value stored in the database."""

    REGULAR = 0  # Normal value
    TOMBSTONE = 1  # Deletion marker


@dataclass
class Value:
    """
    A value as stored by the engine.

    Attributes:
        data: The raw bytes stored (None for tombstones).
        type: Whether this is a regular value or a tombstone.
    """

    data: bytes | None
    type: ValueType = ValueType.REGULAR
    _cached_bytes: bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Cache the serialized bytes on initialization."""
        data_bytes = self.data if self.data is not None else b""

        # Format: [type:1][data_len:4][data]
        self._cached_bytes = (
            self.type.to_bytes(1, "big")
            + len(data_bytes).to_bytes(4, "big")
            + data_bytes
        )

    @classmethod
    def regular(cls, data: bytes) -> "Value":
        return cls(data=bytes(data), type=ValueType.REGULAR)

    @classmethod
    def tombstone(cls) -> "Value":
        return cls(data=None, type=ValueType.TOMBSTONE)

    def is_tombstone(self) -> bool:
        return self.type == ValueType.TOMBSTONE

    def __bytes__(self) -> bytes:
        """Serialize to bytes for storage."""
        return self._cached_bytes

    def size_bytes(self) -> int:
        """Get size in bytes without creating a new bytes object."""
        return len(self._cached_bytes)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Value":
        """Deserialize from bytes."""
        if len(data) < 5:
            raise CorruptionError(f"value record too short ({len(data)} bytes)")

        try:
            value_type = ValueType(data[0])
        except ValueError:
            raise CorruptionError(f"unknown value type {data[0]}") from None

        data_len = int.from_bytes(data[1:5], "big")
        if len(data) < 5 + data_len:
            raise CorruptionError("value record truncated")

        if value_type == ValueType.TOMBSTONE:
            return cls.tombstone()
        return cls(data=bytes(data[5 : 5 + data_len]), type=value_type)
