import posixpath
from abc import ABC, abstractmethod
from pathlib import Path

from shield.errors import UnsafePathError

SHIELD_DIR = ".shield"
INDEX_FILE = "index.json"
BLOBS_DIR = "snapshots"


def join_inside(base, relative_path):
    """Join a recorded relative path under base without letting it escape.

    Leading slashes and drive anchors are dropped, so "/tmp/x" lands at
    base/tmp/x. A path that normalizes to base itself or climbs above it
    raises UnsafePathError. Pure path arithmetic, no I/O.
    """
    cleaned = str(relative_path).replace("\\", "/")
    head, sep, tail = cleaned.partition(":")
    if sep and len(head) == 1 and head.isalpha():
        cleaned = tail  # C:/... recorded on Windows
    normalized = posixpath.normpath("/".join(p for p in cleaned.split("/") if p))
    if normalized in (".", "..") or normalized.startswith("../"):
        raise UnsafePathError(f"Path escapes {base}: {relative_path!r}")
    return Path(base).joinpath(*normalized.split("/"))


class SnapshotStore(ABC):
    """Base interface for index backends.

    A store owns one workspace's index and knows where its blobs live.
    Implementations: LocalSnapshotStore (JSON file under <root>/.shield).
    """

    @abstractmethod
    def load(self, workspace_root):
        """Return the workspace's BackupIndex. Never raises on a bad index."""
        pass

    @abstractmethod
    def save(self, workspace_root, index):
        """Persist the index. Raises IndexWriteError on failure."""
        pass

    def shield_dir(self, workspace_root):
        return Path(workspace_root) / SHIELD_DIR

    def index_path(self, workspace_root):
        return self.shield_dir(workspace_root) / INDEX_FILE

    def blobs_dir(self, workspace_root):
        return self.shield_dir(workspace_root) / BLOBS_DIR

    def resolve_blob_path(self, workspace_root, backup_path):
        """Location of a recorded blob, kept inside the blob directory."""
        return join_inside(self.blobs_dir(workspace_root), backup_path)

    def resolve_target_path(self, workspace_root, relative_path):
        """Live location of a snapshot-relative path, kept inside the workspace."""
        return join_inside(workspace_root, relative_path)
