"""
WALRecord dataclass for Write-Ahead Log records.
"""

from dataclasses import dataclass, field

from ldbtest.models.exceptions import CorruptionError
from ldbtest.models.value import Value


@dataclass
class WALRecord:
    """
    One record in the Write-Ahead Log.

    A record holds every operation of a single write call, so a batch is
    either replayed whole or not at all.

    Attributes:
        seq: Sequence number of the first operation in the record.
        ops: Ordered (key, value) operations; deletes carry a tombstone.
    """

    seq: int
    ops: list[tuple[bytes, Value]] = field(default_factory=list)

    def __bytes__(self) -> bytes:
        """
        Serialize the record to bytes for storage.

        Format: [seq:8][count:4] then per op [key_len:4][key][value_len:4][value]
        """
        parts = [self.seq.to_bytes(8, "big"), len(self.ops).to_bytes(4, "big")]
        for key, value in self.ops:
            value_bytes = bytes(value)
            parts.append(len(key).to_bytes(4, "big"))
            parts.append(key)
            parts.append(len(value_bytes).to_bytes(4, "big"))
            parts.append(value_bytes)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "WALRecord":
        """Deserialize from bytes."""
        if len(data) < 12:
            raise CorruptionError(f"WAL record too short ({len(data)} bytes)")

        seq = int.from_bytes(data[0:8], "big")
        count = int.from_bytes(data[8:12], "big")
        offset = 12

        ops: list[tuple[bytes, Value]] = []
        for _ in range(count):
            key_len = int.from_bytes(data[offset : offset + 4], "big")
            offset += 4
            key = bytes(data[offset : offset + key_len])
            offset += key_len

            value_len = int.from_bytes(data[offset : offset + 4], "big")
            offset += 4
            value = Value.from_bytes(data[offset : offset + value_len])
            offset += value_len

            ops.append((key, value))

        if offset != len(data):
            raise CorruptionError("WAL record length does not match its operations")

        return cls(seq=seq, ops=ops)

    def size_bytes(self) -> int:
        """Return the size of this record in bytes."""
        return len(bytes(self))
