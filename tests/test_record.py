import pytest

from walog.record import (
    DataLog,
    DecodeError,
    IntegrityError,
    LogType,
    compute_crc,
    marshal,
    unmarshal,
    unmarshal_and_verify,
    valid_data_integrity,
)


def _record(lsn, data, log_type=LogType.DATA):
    return DataLog(lsn=lsn, type=log_type, data=data, crc=compute_crc(data, lsn))


def test_compute_crc_matches_standard_check_value():
    # CRC-32 of "123456789" is the standard check value.
    assert compute_crc(b"12345678", ord("9")) == 0xCBF43926


def test_compute_crc_uses_only_low_byte_of_lsn():
    assert compute_crc(b"abc", 1) == compute_crc(b"abc", 257)


def test_marshal_wire_bytes():
    assert marshal(DataLog(lsn=1)) == b"\x08\x01"


def test_marshal_empty_record_is_empty():
    assert marshal(DataLog(lsn=0)) == b""
    assert unmarshal(b"") == DataLog(lsn=0)


@pytest.mark.parametrize(
    "log",
    [
        _record(1, b"hello"),
        _record(300, b""),
        _record((1 << 64) - 1, b"x" * 1000),
        _record(7, b"", LogType.CHECKPOINT),
    ],
)
def test_round_trip(log):
    assert unmarshal(marshal(log)) == log
    assert unmarshal_and_verify(marshal(log)) == log


def test_unknown_fields_are_skipped():
    log = _record(5, b"payload")
    extra = b"\x28\x07" + b"\x32\x02zz" + b"\x39" + b"\x00" * 8 + b"\x45" + b"\x00" * 4
    assert unmarshal(marshal(log) + extra) == log


def test_valid_data_integrity():
    log = _record(12, b"data")
    assert valid_data_integrity(log) is True
    bad = DataLog(lsn=log.lsn, type=log.type, data=log.data, crc=log.crc ^ 1)
    assert valid_data_integrity(bad) is False


def test_unmarshal_and_verify_rejects_bad_crc():
    log = DataLog(lsn=3, data=b"abc", crc=compute_crc(b"abd", 3))
    with pytest.raises(IntegrityError, match="data integrity check failed"):
        unmarshal_and_verify(marshal(log))


def test_checkpoint_crc_is_crc_of_lsn_byte():
    log = DataLog(lsn=9, type=LogType.CHECKPOINT, data=b"", crc=compute_crc(b"", 9))
    assert unmarshal_and_verify(marshal(log)).type is LogType.CHECKPOINT


@pytest.mark.parametrize(
    "raw",
    [
        b"\x08",  # truncated varint
        b"\x1a\x05ab",  # truncated bytes
        b"\x10\x09",  # unknown log type
        b"\x00\x01",  # field number zero
        b"\x0a\x00",  # wrong wire type for lsn
        b"\x0b",  # group wire type
        b"\x08" + b"\xff" * 11,  # varint too long
    ],
)
def test_malformed_input_raises(raw):
    with pytest.raises(DecodeError):
        unmarshal(raw)


@pytest.mark.parametrize(
    "log_type, expected",
    [(LogType.DATA, "DATA"), (LogType.CHECKPOINT, "CHECKPOINT")],
)
def test_log_type_str_after_round_trip(log_type, expected):
    decoded = unmarshal(marshal(_record(4, b"", log_type)))
    assert str(decoded.type) == expected


def test_marshal_rejects_out_of_range():
    with pytest.raises(ValueError):
        marshal(DataLog(lsn=-1))
    with pytest.raises(ValueError):
        marshal(DataLog(lsn=1, crc=1 << 32))