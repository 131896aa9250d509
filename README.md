# walog

A segmented write-ahead log. Every record carries a log sequence number
(LSN) and a CRC-32 checksum. Writes are buffered and a background thread
flushes them to disk about every millisecond. When fsync is enabled, each
of those syncs also fsyncs the segment and appends a checkpoint record, so
that later the log can be replayed from the last checkpoint onwards.

## Installation

```
pip install .
```

Nothing beyond the standard library is needed. To run the tests:

```
pip install .[test]
pytest
```

## On-disk layout

The log lives in a directory of segment files named `wal-segment-<N>.wal`.

* Each segment starts with a 16-byte header: the segment id (4 bytes),
  the creation time in nanoseconds (8 bytes) and a CRC-32 of those two
  fields (4 bytes), all little-endian.
* After the header come records, each a little-endian signed 32-bit length
  followed by the encoded record. A record holds its LSN, its type
  (`DATA` or `CHECKPOINT`), its payload and a CRC-32 of the payload
  followed by the low byte of the LSN.

When appending a record would bring the current segment to the size limit,
the segment is flushed and closed and the next-numbered segment is created.
Once the new segment's number reaches the maximum number of segments, the
lowest-numbered segment in the log directory is moved into the archive
directory. Recovery looks in the log directory first and in the archive
directory second.

## Using the library

```python
from walog.wal import Wal

with Wal("data/log", 5_000_000, 3, True, "data/archival") as wal:
    wal.write(b"1:first record")
    wal.write(b"2:second record")

with Wal("data/log", 5_000_000, 3, True, "data/archival") as wal:
    print(wal.current_segment_file_name())
    for record in wal.read_current_segment_file():
        print(record.lsn, record.type, record.data)
```

`Wal(log_directory, max_file_size, max_segments, trigger_fsync=True,
archive_directory=None)` creates the log directory if needed, creates
segment 0 when there are no segments, and opens the highest-numbered
segment for appending. Sequence numbers continue from the last record in
that segment. When `archive_directory` is not given, an `archival`
directory next to the log directory is used.

* `write(data)` appends a data record.
* `sync(checkpoint=False)` flushes buffered records; with fsync enabled it
  also fsyncs, and with `checkpoint` true it then appends a checkpoint
  record.
* `close()` stops the background thread, syncs with a checkpoint and closes
  the segment. Calling it again does nothing; `write` and `sync` raise
  `ValueError` on a closed log. A `Wal` is also a context manager.
* `read_current_segment_file()` returns the records already on disk in the
  current segment.
* `recover_from_checkpoint()` returns a tuple of the last checkpoint record,
  the number of the segment holding it, and the list of records with a
  higher LSN from that segment up to the current one. It raises
  `NoCheckpointError` (a `LookupError`) when no checkpoint exists.

```python
from walog.wal import Wal, NoCheckpointError

with Wal("data/log", 5_000_000, 3, False, "data/archival") as wal:
    try:
        checkpoint, segment, records = wal.recover_from_checkpoint()
    except NoCheckpointError:
        records = []
    for record in records:
        print(record.lsn, record.data)
```

Lower-level pieces:

* `walog.segment_header` — `SegmentHeader`, `new_segment_header`,
  `parse_segment_header`, which raises `InvalidHeaderSizeError` or
  `InvalidChecksumError`.
* `walog.record` — `DataLog`, `LogType`, `compute_crc`, `marshal`,
  `unmarshal`, `valid_data_integrity` and `unmarshal_and_verify`, which
  raise `DecodeError` or `IntegrityError` on bad input.
* `walog.segments` — `segment_path`, `create_segment_file`,
  `open_segment_file`, `list_segment_files`, `last_segment_no` and
  `read_all_data_logs`. Reading stops at end of file or at a non-positive
  length; a record cut short raises `EOFError`.

## Command line

The package installs a `walog` command with three subcommands:

* `walog insert [--count N]` writes `N` sample records (80000 by default),
  each `<n>:<json>` with a made-up payment object.
* `walog read` prints every record of the current segment, then the count.
* `walog replay` prints the last checkpoint and every record written after
  it.

Each subcommand takes `--directory` (default `data/log`), `--archive`,
`--max-file-size` (default 5000000), `--max-segments` (default 3) and
`--fsync/--no-fsync` (on by default for `insert` and `read`, off for
`replay`). Errors are printed to standard error and the command exits
with status 1.

```
walog --help
```

## What it does not do

`walog` only stores and reads back records. Replay hands back the records
after the last checkpoint; it does not apply them to any data store, and
the package has no storage engine, compaction or removal of archived
segments. The log is meant for one process at a time; nothing guards
against two processes writing to the same directory.