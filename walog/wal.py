"""Segmented write-ahead log with periodic syncing and checkpoint recovery."""

from __future__ import annotations

import logging
import os
import re
import struct
import threading
import time
from pathlib import Path
from typing import BinaryIO

from .record import DataLog, LogType, compute_crc, marshal
from .segment_header import HEADER_SIZE
from .segments import (
    SEGMENT_PREFIX,
    SEGMENT_SUFFIX,
    create_directory,
    create_segment_file,
    create_segment_file_if_missing,
    last_segment_no,
    list_segment_files,
    open_segment_file,
    read_all_data_logs,
    segment_path,
)

SYNC_INTERVAL = 0.001  # seconds between background syncs

logger = logging.getLogger(__name__)

_SIZE = struct.Struct("<i")
_NUMBER = re.compile(r"[+-]?\d+")


class NoCheckpointError(LookupError):
    """No checkpoint record exists in any reachable segment."""


def _segment_number(path: Path) -> int:
    name = path.name
    if name.startswith(SEGMENT_PREFIX):
        name = name[len(SEGMENT_PREFIX):]
    if name.endswith(SEGMENT_SUFFIX):
        name = name[: -len(SEGMENT_SUFFIX)]
    if not _NUMBER.fullmatch(name):
        raise ValueError(f"invalid segment file name: {str(path)!r}")
    return int(name)


class Wal:
    """A write-ahead log split into size-limited segment files.

    A background thread flushes buffered records every ``SYNC_INTERVAL``
    seconds; when ``trigger_fsync`` is set each such sync also fsyncs the
    segment and appends a checkpoint record.
    """

    def __init__(
        self,
        log_directory: str | os.PathLike,
        max_file_size: int,
        max_segments: int,
        trigger_fsync: bool = True,
        archive_directory: str | os.PathLike | None = None,
    ) -> None:
        self._directory = Path(log_directory)
        self._archive = (
            Path(archive_directory)
            if archive_directory is not None
            else self._directory.parent / "archival"
        )
        self._max_file_size = max_file_size
        self._max_segments = max_segments
        self._trigger_fsync = trigger_fsync

        create_directory(self._directory)
        files = list_segment_files(self._directory)
        create_segment_file_if_missing(self._directory, files)
        self._index = last_segment_no(files)
        self._path = segment_path(self._directory, self._index)
        self._file: BinaryIO = open_segment_file(self._directory, self._index)
        try:
            self._size = os.fstat(self._file.fileno()).st_size
            with open(self._path, "rb") as reader:
                logs = read_all_data_logs(reader)
        except BaseException:
            self._file.close()
            raise
        self._last_lsn = logs[-1].lsn if logs else 0
        self._last_checkpoint_lsn = 0

        self._lock = threading.RLock()
        self._closed = False
        self._stop = threading.Event()
        self._deadline = time.monotonic() + SYNC_INTERVAL
        self._thread = threading.Thread(
            target=self._housekeeping, name="wal-sync", daemon=True
        )
        self._thread.start()

    def __enter__(self) -> Wal:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def current_segment_file_name(self) -> str:
        """Path of the segment currently being written."""
        return str(self._path)

    def write(self, data: bytes) -> None:
        """Append a data record holding ``data``."""
        data = bytes(data)
        with self._lock:
            self._ensure_open()
            self._last_lsn += 1
            lsn = self._last_lsn
            self._append(DataLog(lsn, LogType.DATA, data, compute_crc(data, lsn)))

    def sync(self, checkpoint: bool = False) -> None:
        """Flush buffered records; with fsync enabled, fsync and optionally checkpoint."""
        with self._lock:
            self._ensure_open()
            self._sync(checkpoint)

    def close(self) -> None:
        """Stop background syncing, sync with a checkpoint and close the segment."""
        if self._closed:
            return
        self._stop.set()
        if self._thread is not threading.current_thread():
            self._thread.join()
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._sync(True)
            finally:
                self._file.close()

    def read_current_segment_file(self) -> list[DataLog]:
        """Records already on disk in the current segment."""
        with open(self._path, "rb") as reader:
            return read_all_data_logs(reader)

    def recover_from_checkpoint(self) -> tuple[DataLog, int, list[DataLog]]:
        """Find the last checkpoint and the records written after it.

        Returns the checkpoint record, the number of the segment holding it
        and the later records in log order.
        """
        with self._lock:
            checkpoint, start = self._last_checkpoint()
            replayed: list[DataLog] = []
            for index in range(start, self._index + 1):
                with self._open_for_reading(index) as reader:
                    records = read_all_data_logs(reader)
                replayed.extend(r for r in records if r.lsn > checkpoint.lsn)
            return checkpoint, start, replayed

    def _ensure_open(self) -> None:
        if self._closed:
            raise ValueError("write-ahead log is closed")

    def _housekeeping(self) -> None:
        while True:
            timeout = max(self._deadline - time.monotonic(), 0.0)
            if self._stop.wait(timeout):
                return
            if time.monotonic() < self._deadline:
                continue
            with self._lock:
                if self._closed or self._stop.is_set():
                    return
                try:
                    self._sync(True)
                except (OSError, ValueError) as exc:
                    logger.error("error while performing sync: %s", exc)

    def _sync(self, checkpoint: bool) -> None:
        self._file.flush()
        if self._trigger_fsync:
            os.fsync(self._file.fileno())
            if checkpoint:
                self._checkpoint()
        self._deadline = time.monotonic() + SYNC_INTERVAL

    def _checkpoint(self) -> None:
        self._last_lsn += 1
        lsn = self._last_lsn
        self._last_checkpoint_lsn = lsn
        record = DataLog(lsn, LogType.CHECKPOINT, b"", compute_crc(b"", lsn))
        try:
            self._append(record)
        except (OSError, ValueError) as exc:
            logger.error("failed to checkpoint: %s", exc)

    def _append(self, log: DataLog) -> None:
        payload = marshal(log)
        if self._size + len(payload) >= self._max_file_size:
            self._rotate()
        self._file.write(_SIZE.pack(len(payload)) + payload)
        self._size += _SIZE.size + len(payload)

    def _rotate(self) -> None:
        self._sync(False)
        self._file.close()
        logger.debug("rotating log: closing segment index %d", self._index)
        self._index += 1
        if self._index >= self._max_segments:
            self._archive_oldest()
        logger.debug("rotating log: new segment index %d", self._index)
        self._file = create_segment_file(self._directory, self._index)
        self._path = segment_path(self._directory, self._index)
        self._size = HEADER_SIZE

    def _archive_oldest(self) -> None:
        files = list(self._directory.glob(SEGMENT_PREFIX + "*"))
        if not files:
            return
        oldest = min(files, key=_segment_number)
        logger.debug("moving oldest segment file %s", oldest)
        self._archive.mkdir(mode=0o755, parents=True, exist_ok=True)
        os.replace(oldest, self._archive / oldest.name)

    def _open_for_reading(self, index: int) -> BinaryIO:
        try:
            return open(segment_path(self._directory, index), "rb")
        except FileNotFoundError:
            return open(segment_path(self._archive, index), "rb")

    def _last_checkpoint(self) -> tuple[DataLog, int]:
        for index in range(self._index, -1, -1):
            try:
                reader = self._open_for_reading(index)
            except FileNotFoundError:
                continue
            with reader:
                records = read_all_data_logs(reader)
            for record in reversed(records):
                if record.type is LogType.CHECKPOINT:
                    return record, index
        raise NoCheckpointError("no checkpoint found")