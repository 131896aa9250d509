"""Log records, their wire encoding and integrity checks."""

from __future__ import annotations

import enum
import zlib
from dataclasses import dataclass

_UINT64_MASK = (1 << 64) - 1
_UINT32_MASK = (1 << 32) - 1

_FIELD_LSN = 1
_FIELD_TYPE = 2
_FIELD_DATA = 3
_FIELD_CRC = 4

_WT_VARINT = 0
_WT_FIXED64 = 1
_WT_BYTES = 2
_WT_FIXED32 = 5


class LogType(enum.IntEnum):
    """Kind of a log record."""

    DATA = 0
    CHECKPOINT = 1

    def __str__(self) -> str:
        return self.name


class DecodeError(ValueError):
    """The bytes are not a well-formed log record."""


class IntegrityError(ValueError):
    """The record's CRC does not match its contents."""


@dataclass(frozen=True)
class DataLog:
    """A single write-ahead log record."""

    lsn: int
    type: LogType = LogType.DATA
    data: bytes = b""
    crc: int = 0


def compute_crc(data: bytes, lsn: int) -> int:
    """CRC-32 (IEEE) of ``data`` followed by the low byte of ``lsn``."""
    return zlib.crc32(bytes(data) + bytes([lsn & 0xFF]))


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        low = value & 0x7F
        value >>= 7
        if value:
            out.append(low | 0x80)
        else:
            out.append(low)
            return bytes(out)


def _decode_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    for shift in range(0, 70, 7):
        if pos >= len(data):
            raise DecodeError("truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result & _UINT64_MASK, pos
    raise DecodeError("varint too long")


def _key(field_no: int, wire_type: int) -> bytes:
    return _encode_varint((field_no << 3) | wire_type)


def marshal(log: DataLog) -> bytes:
    """Encode a record; fields holding their zero value are omitted."""
    if not 0 <= log.lsn <= _UINT64_MASK:
        raise ValueError(f"log sequence number out of range: {log.lsn}")
    if not 0 <= log.crc <= _UINT32_MASK:
        raise ValueError(f"crc out of range: {log.crc}")
    out = bytearray()
    if log.lsn:
        out += _key(_FIELD_LSN, _WT_VARINT) + _encode_varint(log.lsn)
    if int(log.type):
        out += _key(_FIELD_TYPE, _WT_VARINT) + _encode_varint(int(log.type))
    if log.data:
        out += _key(_FIELD_DATA, _WT_BYTES) + _encode_varint(len(log.data)) + bytes(log.data)
    if log.crc:
        out += _key(_FIELD_CRC, _WT_VARINT) + _encode_varint(log.crc)
    return bytes(out)


def _skip(data: bytes, pos: int, wire_type: int) -> int:
    if wire_type == _WT_VARINT:
        return _decode_varint(data, pos)[1]
    if wire_type == _WT_FIXED64:
        end = pos + 8
    elif wire_type == _WT_FIXED32:
        end = pos + 4
    elif wire_type == _WT_BYTES:
        length, pos = _decode_varint(data, pos)
        end = pos + length
    else:
        raise DecodeError(f"unsupported wire type {wire_type}")
    if end > len(data):
        raise DecodeError("truncated field")
    return end


def unmarshal(data: bytes) -> DataLog:
    """Decode a record, skipping fields it does not know."""
    data = bytes(data)
    lsn, log_type, payload, crc = 0, LogType.DATA, b"", 0
    pos = 0
    while pos < len(data):
        key, pos = _decode_varint(data, pos)
        field_no, wire_type = key >> 3, key & 7
        if field_no == 0:
            raise DecodeError("invalid field number 0")
        expected = {
            _FIELD_LSN: _WT_VARINT,
            _FIELD_TYPE: _WT_VARINT,
            _FIELD_DATA: _WT_BYTES,
            _FIELD_CRC: _WT_VARINT,
        }.get(field_no)
        if expected is None:
            pos = _skip(data, pos, wire_type)
            continue
        if wire_type != expected:
            raise DecodeError(f"field {field_no} has wire type {wire_type}")
        if field_no == _FIELD_DATA:
            length, pos = _decode_varint(data, pos)
            end = pos + length
            if end > len(data):
                raise DecodeError("truncated bytes field")
            payload = data[pos:end]
            pos = end
            continue
        value, pos = _decode_varint(data, pos)
        if field_no == _FIELD_LSN:
            lsn = value
        elif field_no == _FIELD_CRC:
            crc = value & _UINT32_MASK
        else:
            try:
                log_type = LogType(value & _UINT32_MASK)
            except ValueError:
                raise DecodeError(f"unknown log type {value}") from None
    return DataLog(lsn=lsn, type=log_type, data=payload, crc=crc)


def valid_data_integrity(log: DataLog) -> bool:
    """Whether the record's CRC matches its data and sequence number."""
    return log.crc == compute_crc(log.data, log.lsn)


def unmarshal_and_verify(data: bytes) -> DataLog:
    """Decode a record and check its CRC."""
    log = unmarshal(data)
    if not valid_data_integrity(log):
        raise IntegrityError("data integrity check failed")
    return log