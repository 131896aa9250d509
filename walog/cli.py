"""Command line entry point: insert sample records, read them, replay after a checkpoint."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Sequence, TextIO

from .record import DataLog
from .wal import Wal

DEFAULT_DIRECTORY = "data/log"
DEFAULT_MAX_FILE_SIZE = 5 * 1000 * 1000
DEFAULT_MAX_SEGMENTS = 3
DEFAULT_COUNT = 80000

_KEY_PREFIX = "prefix-str"


def write_records(wal: Wal, count: int) -> None:
    """Write ``count`` sample payment records of the form ``<n>:<json>``."""
    for i in range(count):
        value = {
            "Operation": "insert",
            "key": f"{_KEY_PREFIX}{i}",
            "value": {"paymentStatus": "success", "paymentAmount": 100 + i * 10},
        }
        encoded = json.dumps(value, separators=(",", ":"), sort_keys=True)
        wal.write(f"{i}:{encoded}".encode())


def read_records(wal: Wal, out: TextIO | None = None) -> list[DataLog]:
    """Print every record of the current segment and return them."""
    out = out if out is not None else sys.stdout
    print(f"[DEBUG] Reading from segment file: {wal.current_segment_file_name()}", file=out)
    records = wal.read_current_segment_file()
    for record in records:
        text = record.data.decode("utf-8", errors="replace")
        print(f"Read key={record.lsn} value={text} type={record.type}", file=out)
    print(f"Read all data logs {len(records)}", file=out)
    return records


def replay(wal: Wal) -> list[DataLog]:
    """Print the last checkpoint and every record written after it."""
    checkpoint, segment, records = wal.recover_from_checkpoint()
    print(f"Found Recovery checkpoint at LSN {checkpoint.lsn} in segment {segment}")
    for record in records:
        text = record.data.decode("utf-8", errors="replace")
        print(f"Replay record: LSN={record.lsn}, Type={record.type}, Data={text}")
    return records


def _parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--directory", default=DEFAULT_DIRECTORY, help="segment directory")
    common.add_argument("--archive", default=None, help="archive directory")
    common.add_argument("--max-file-size", type=int, default=DEFAULT_MAX_FILE_SIZE)
    common.add_argument("--max-segments", type=int, default=DEFAULT_MAX_SEGMENTS)
    common.add_argument(
        "--fsync", action=argparse.BooleanOptionalAction, default=None,
        help="fsync and checkpoint on every sync",
    )

    parser = argparse.ArgumentParser(prog="walog", description="Write-ahead log tool.")
    commands = parser.add_subparsers(dest="command", required=True)
    insert = commands.add_parser("insert", parents=[common], help="write sample records")
    insert.add_argument("--count", type=int, default=DEFAULT_COUNT)
    insert.set_defaults(default_fsync=True)
    read = commands.add_parser("read", parents=[common], help="print the current segment")
    read.set_defaults(default_fsync=True)
    rep = commands.add_parser("replay", parents=[common], help="replay after the last checkpoint")
    rep.set_defaults(default_fsync=False)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line tool and return its exit status."""
    args = _parser().parse_args(argv)
    fsync = args.default_fsync if args.fsync is None else args.fsync
    try:
        wal = Wal(args.directory, args.max_file_size, args.max_segments, fsync, args.archive)
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    try:
        if args.command == "insert":
            write_records(wal, args.count)
        elif args.command == "read":
            read_records(wal)
        else:
            try:
                replay(wal)
            except LookupError as exc:
                raise LookupError(f"failed to recover from checkpoint: {exc}") from exc
        wal.close()
    except (OSError, ValueError, LookupError) as exc:
        wal.close()
        print(f"error: {exc}", file=sys.stderr)
        return 1
    if args.command == "read":
        print("WAL closed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())