"""Fixed-size header written at the start of every segment file."""

from __future__ import annotations

import struct
import time
import zlib
from dataclasses import dataclass, field

HEADER_SIZE = 16  # segment id (4) + created at (8) + checksum (4)

_BODY = struct.Struct("<Iq")
_HEADER = struct.Struct("<IqI")


class InvalidHeaderSizeError(ValueError):
    """The buffer is too short to hold a segment header."""

    def __init__(self, message: str = "invalid header size") -> None:
        super().__init__(message)


class InvalidChecksumError(ValueError):
    """The stored header checksum does not match its fields."""

    def __init__(self, message: str = "invalid header checksum") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class SegmentHeader:
    """Identity and creation time of a segment, protected by a CRC-32."""

    segment_id: int
    created_at: int
    header_checksum: int = field(default=-1)

    def __post_init__(self) -> None:
        if not 0 <= self.segment_id <= 0xFFFFFFFF:
            raise ValueError(f"segment id out of range: {self.segment_id}")
        if not -(1 << 63) <= self.created_at < (1 << 63):
            raise ValueError(f"creation time out of range: {self.created_at}")
        if self.header_checksum == -1:
            object.__setattr__(self, "header_checksum", self.checksum())

    def checksum(self) -> int:
        """CRC-32 (IEEE) of the segment id and creation time."""
        return zlib.crc32(_BODY.pack(self.segment_id, self.created_at))

    def to_bytes(self) -> bytes:
        """Serialise the header into its 16-byte little-endian form."""
        return _HEADER.pack(self.segment_id, self.created_at, self.header_checksum)


def new_segment_header(segment_id: int) -> SegmentHeader:
    """Create a header for ``segment_id`` stamped with the current time in nanoseconds."""
    return SegmentHeader(segment_id, time.time_ns())


def parse_segment_header(buf: bytes) -> SegmentHeader:
    """Decode and verify a header from the first 16 bytes of ``buf``."""
    if len(buf) < HEADER_SIZE:
        raise InvalidHeaderSizeError()
    segment_id, created_at, stored = _HEADER.unpack_from(buf)
    header = SegmentHeader(segment_id, created_at, stored)
    if header.checksum() != stored:
        raise InvalidChecksumError()
    return header