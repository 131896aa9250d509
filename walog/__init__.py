"""Segmented write-ahead log with checksummed records, rotation, archival and checkpoint recovery."""

__version__ = "0.1.0"