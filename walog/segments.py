"""Segment files on disk: naming, creation and reading records back."""

from __future__ import annotations

import os
import re
import struct
from pathlib import Path
from typing import BinaryIO, Iterable

from .record import DataLog, unmarshal_and_verify
from .segment_header import HEADER_SIZE, new_segment_header

SEGMENT_PREFIX = "wal-segment-"
SEGMENT_SUFFIX = ".wal"

_SIZE = struct.Struct("<i")
_NUMBER = re.compile(r"[+-]?\d+")


def create_directory(path: str | os.PathLike) -> None:
    """Create ``path`` and any missing parents."""
    os.makedirs(path, mode=0o755, exist_ok=True)


def segment_path(directory: str | os.PathLike, segment_no: int) -> Path:
    """Path of segment number ``segment_no`` inside ``directory``."""
    return Path(directory) / f"{SEGMENT_PREFIX}{segment_no}{SEGMENT_SUFFIX}"


def create_segment_file(directory: str | os.PathLike, segment_no: int) -> BinaryIO:
    """Create (or truncate) a segment file, write its header and return it open."""
    file = open(segment_path(directory, segment_no), "w+b")
    try:
        file.write(new_segment_header(segment_no).to_bytes())
    except BaseException:
        file.close()
        raise
    return file


def create_segment_file_if_missing(directory: str | os.PathLike, files: Iterable[str]) -> None:
    """Create segment 0 when ``files`` lists no existing segments."""
    if not list(files):
        create_segment_file(directory, 0).close()


def open_segment_file(directory: str | os.PathLike, segment_no: int) -> BinaryIO:
    """Open a segment for appending, creating it if needed."""
    return open(segment_path(directory, segment_no), "ab")


def last_segment_no(files: Iterable[str]) -> int:
    """Highest segment number among ``files``; 0 when there are none."""
    last = 0
    for file in files:
        name = os.path.basename(file)
        if name.startswith(SEGMENT_PREFIX):
            name = name[len(SEGMENT_PREFIX):]
        if name.endswith(SEGMENT_SUFFIX):
            name = name[: -len(SEGMENT_SUFFIX)]
        if not _NUMBER.fullmatch(name):
            raise ValueError(f"invalid segment file name: {file!r}")
        last = max(last, int(name))
    return last


def list_segment_files(directory: str | os.PathLike) -> list[str]:
    """Paths of the segment files in ``directory``, sorted by name."""
    return sorted(
        str(path) for path in Path(directory).glob(f"{SEGMENT_PREFIX}*{SEGMENT_SUFFIX}")
    )


def read_all_data_logs(file: BinaryIO) -> list[DataLog]:
    """Read every record after the header of an open segment file.

    Reading stops at end of file or at a non-positive size prefix; a record
    cut short raises ``EOFError`` and a corrupt one raises the decoding error.
    """
    file.seek(HEADER_SIZE)
    logs: list[DataLog] = []
    while True:
        prefix = file.read(_SIZE.size)
        if not prefix:
            break
        if len(prefix) < _SIZE.size:
            raise EOFError("unexpected end of file in record size")
        (size,) = _SIZE.unpack(prefix)
        if size <= 0:
            break
        payload = file.read(size)
        if not payload:
            break
        if len(payload) < size:
            raise EOFError("unexpected end of file in record")
        logs.append(unmarshal_and_verify(payload))
    return logs