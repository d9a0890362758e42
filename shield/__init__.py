"""Snapshot index and restore engine for per-directory file backups."""

from shield.errors import IndexWriteError, ShieldError, SnapshotNotFoundError, UnsafePathError
from shield.restore import RestoreEngine
from shield.snapshot import create_snapshot_store
from shield.snapshot.models import (
    BackupIndex,
    EventType,
    PruneResult,
    RestoreResult,
    Snapshot,
    SnapshotFile,
    Stats,
)

__version__ = "0.2.0"

__all__ = [
    "BackupIndex",
    "EventType",
    "IndexWriteError",
    "PruneResult",
    "RestoreEngine",
    "RestoreResult",
    "ShieldError",
    "Snapshot",
    "SnapshotFile",
    "SnapshotNotFoundError",
    "Stats",
    "UnsafePathError",
    "create_snapshot_store",
]
