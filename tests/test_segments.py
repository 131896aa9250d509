import struct

import pytest

from walog.record import DataLog, DecodeError, IntegrityError, LogType, compute_crc, marshal
from walog.segment_header import HEADER_SIZE, parse_segment_header
from walog.segments import (
    create_directory,
    create_segment_file,
    create_segment_file_if_missing,
    last_segment_no,
    list_segment_files,
    open_segment_file,
    read_all_data_logs,
    segment_path,
)


def _frame(log):
    payload = marshal(log)
    return struct.pack("<i", len(payload)) + payload


def _record(lsn, data, log_type=LogType.DATA):
    return DataLog(lsn=lsn, type=log_type, data=data, crc=compute_crc(data, lsn))


def _segment_with(tmp_path, body, segment_no=0):
    with create_segment_file(tmp_path, segment_no) as f:
        f.write(body)
    return segment_path(tmp_path, segment_no)


def test_create_directory_nested(tmp_path):
    target = tmp_path / "a" / "b" / "c"
    create_directory(target)
    create_directory(target)
    assert target.is_dir()


def test_segment_path_name(tmp_path):
    assert segment_path(tmp_path, 3) == tmp_path / "wal-segment-3.wal"


def test_create_segment_file_writes_header(tmp_path):
    create_segment_file(tmp_path, 4).close()
    raw = segment_path(tmp_path, 4).read_bytes()
    assert len(raw) == HEADER_SIZE
    assert parse_segment_header(raw).segment_id == 4


def test_create_segment_file_if_missing_creates_zero(tmp_path):
    create_segment_file_if_missing(tmp_path, [])
    assert list_segment_files(tmp_path) == [str(segment_path(tmp_path, 0))]


def test_create_segment_file_if_missing_leaves_existing(tmp_path):
    create_segment_file_if_missing(tmp_path, ["existing"])
    assert list_segment_files(tmp_path) == []


def test_open_segment_file_appends(tmp_path):
    create_segment_file(tmp_path, 1).close()
    with open_segment_file(tmp_path, 1) as f:
        f.write(b"tail")
    raw = segment_path(tmp_path, 1).read_bytes()
    assert raw[HEADER_SIZE:] == b"tail"
    assert parse_segment_header(raw).segment_id == 1


def test_list_segment_files_ignores_other_files(tmp_path):
    for n in (2, 0, 1):
        create_segment_file(tmp_path, n).close()
    (tmp_path / "notes.txt").write_text("x")
    names = [p.rsplit("/", 1)[-1].rsplit("\\", 1)[-1] for p in list_segment_files(tmp_path)]
    assert names == ["wal-segment-0.wal", "wal-segment-1.wal", "wal-segment-2.wal"]


def test_last_segment_no():
    files = ["d/wal-segment-2.wal", "d/wal-segment-10.wal", "d/wal-segment-0.wal"]
    assert last_segment_no(files) == 10
    assert last_segment_no([]) == 0


def test_last_segment_no_bad_name():
    with pytest.raises(ValueError):
        last_segment_no(["d/wal-segment-abc.wal"])


def test_read_all_data_logs_round_trip(tmp_path):
    logs = [_record(1, b"one"), _record(2, b"two"), _record(3, b"", LogType.CHECKPOINT)]
    path = _segment_with(tmp_path, b"".join(_frame(log) for log in logs))
    with open(path, "rb") as f:
        assert read_all_data_logs(f) == logs


def test_read_all_data_logs_empty_segment(tmp_path):
    path = _segment_with(tmp_path, b"")
    with open(path, "rb") as f:
        assert read_all_data_logs(f) == []


def test_read_stops_at_non_positive_size(tmp_path):
    first = _record(1, b"kept")
    body = _frame(first) + struct.pack("<i", 0) + _frame(_record(2, b"ignored"))
    path = _segment_with(tmp_path, body)
    with open(path, "rb") as f:
        assert read_all_data_logs(f) == [first]


def test_read_stops_when_payload_missing(tmp_path):
    first = _record(1, b"kept")
    path = _segment_with(tmp_path, _frame(first) + struct.pack("<i", 10))
    with open(path, "rb") as f:
        assert read_all_data_logs(f) == [first]


def test_read_truncated_payload_raises(tmp_path):
    frame = _frame(_record(1, b"payload"))
    path = _segment_with(tmp_path, frame[:-2])
    with open(path, "rb") as f:
        with pytest.raises(EOFError):
            read_all_data_logs(f)


def test_read_truncated_size_raises(tmp_path):
    path = _segment_with(tmp_path, _frame(_record(1, b"a")) + b"\x05\x00")
    with open(path, "rb") as f:
        with pytest.raises(EOFError):
            read_all_data_logs(f)


def test_read_corrupt_crc_raises(tmp_path):
    bad = DataLog(lsn=1, data=b"abc", crc=compute_crc(b"xyz", 1))
    path = _segment_with(tmp_path, _frame(bad))
    with open(path, "rb") as f:
        with pytest.raises(IntegrityError):
            read_all_data_logs(f)


def test_read_garbage_payload_raises(tmp_path):
    path = _segment_with(tmp_path, struct.pack("<i", 1) + b"\x08")
    with open(path, "rb") as f:
        with pytest.raises(DecodeError):
            read_all_data_logs(f)