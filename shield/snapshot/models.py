"""Index records for a workspace's backup store.

The on-disk index keeps the camelCase keys the snapshot producer writes, so
every record converts to and from that shape explicitly.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

INDEX_VERSION = 2

_DECODE_ERRORS = (ValueError, TypeError, KeyError, OverflowError)


def _is_optional_str(value):
    return value is None or isinstance(value, str)


class EventType(Enum):
    CREATE = "create"
    CHANGE = "change"
    DELETE = "delete"
    RENAME = "rename"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value):
        """Map a raw eventType string to a member, UNKNOWN for anything else."""
        for member in cls:
            if member is not cls.UNKNOWN and member.value == value:
                return member
        return cls.UNKNOWN


@dataclass
class SnapshotFile:
    """One recorded per-file event within a snapshot."""

    path: str
    backup_path: str = ""
    size: int = 0
    raw_event_type: Optional[str] = "change"  # None when recorded as null
    renamed_to: Optional[str] = None

    @property
    def event_type(self):
        return EventType.parse(self.raw_event_type)

    @classmethod
    def from_dict(cls, data):
        """Decode one record. ValueError if any field has the wrong JSON type."""
        if not isinstance(data, dict) or not isinstance(data.get("path"), str):
            raise ValueError(f"Invalid file record: {data!r}")
        backup_path = data.get("backupPath")
        if backup_path is None:
            backup_path = ""
        event_type = data.get("eventType")
        renamed_to = data.get("renamedTo")
        size = data.get("size") or 0
        if (
            not isinstance(backup_path, str)
            or not _is_optional_str(event_type)
            or not _is_optional_str(renamed_to)
            or isinstance(size, bool)
            or not isinstance(size, (int, float))
        ):
            raise ValueError(f"Invalid file record: {data!r}")
        return cls(
            path=data["path"],
            backup_path=backup_path,
            size=int(size),
            raw_event_type=event_type,
            renamed_to=renamed_to,
        )

    def to_dict(self):
        return {
            "path": self.path,
            "backupPath": self.backup_path,
            "size": self.size,
            "eventType": self.raw_event_type,
            "renamedTo": self.renamed_to,
        }


@dataclass
class Snapshot:
    """One capture event.

    File records that cannot be decoded are kept verbatim in
    unreadable_files and written back after the decoded ones; restore
    never sees them.
    """

    id: str
    timestamp: int
    files: List[SnapshotFile] = field(default_factory=list)
    message: Optional[str] = None
    unreadable_files: List[object] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict) or not isinstance(data.get("id"), str):
            raise ValueError(f"Invalid snapshot record: {data!r}")
        timestamp = data.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise ValueError(f"Invalid snapshot timestamp: {timestamp!r}")
        raw_files = data.get("files") or []
        if not isinstance(raw_files, list):
            raise ValueError(f"Invalid file list in snapshot {data['id']}")

        files, unreadable = [], []
        for raw in raw_files:
            try:
                files.append(SnapshotFile.from_dict(raw))
            except _DECODE_ERRORS:
                unreadable.append(raw)
        return cls(
            id=data["id"],
            timestamp=int(timestamp),
            files=files,
            message=data.get("message"),
            unreadable_files=unreadable,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "files": [f.to_dict() for f in self.files] + list(self.unreadable_files),
            "message": self.message,
        }


@dataclass
class BackupIndex:
    """The whole workspace index.

    Snapshot entries that cannot be decoded are held verbatim in
    unreadable. They are invisible to listing, restore and stats, are
    never expired by prune, and are written back unchanged on save.
    """

    version: int = INDEX_VERSION
    snapshots: List[Snapshot] = field(default_factory=list)
    unreadable: List[object] = field(default_factory=list)

    @classmethod
    def empty(cls):
        return cls(version=INDEX_VERSION, snapshots=[])

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise ValueError("Index root must be a JSON object")
        raw_snapshots = data.get("snapshots") or []
        if not isinstance(raw_snapshots, list):
            raise ValueError("Index snapshots must be a JSON array")
        version = data.get("version")
        if not isinstance(version, int) or isinstance(version, bool) or version != INDEX_VERSION:
            version = INDEX_VERSION

        index = cls(version=version)
        for raw in raw_snapshots:
            try:
                index.snapshots.append(Snapshot.from_dict(raw))
            except _DECODE_ERRORS:
                index.unreadable.append(raw)
        return index

    def to_dict(self):
        return {
            "version": self.version,
            "snapshots": [s.to_dict() for s in self.snapshots] + list(self.unreadable),
        }

    def find(self, snapshot_id):
        """Return the snapshot with this id, or None."""
        return next((s for s in self.snapshots if s.id == snapshot_id), None)


@dataclass
class RestoreResult:
    restored: int = 0
    failed: int = 0
    deleted: int = 0
    errors: List[tuple] = field(default_factory=list)  # (path, reason)

    def fail(self, path, reason):
        self.failed += 1
        self.errors.append((path, reason))


@dataclass
class PruneResult:
    removed: int = 0
    freed_bytes: int = 0


@dataclass
class Stats:
    snapshot_count: int = 0
    total_file_records: int = 0
    total_bytes: int = 0
    unique_path_count: int = 0
