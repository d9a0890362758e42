"""Restore and retention for a workspace's snapshot index.

Restore walks one snapshot's file records and undoes each recorded event
against the live tree:

    create  -> remove the file the event created
    change  -> copy the pre-change blob back over the file
    delete  -> copy the blob back, recreating the file
    rename  -> remove the file at the new name, copy the blob to the old name

Per-file problems (missing blob, copy or unlink error, a path that would
leave the workspace) are counted, never raised; only
an unknown snapshot id stops a restore before it starts.

Prune drops snapshots older than a retention window together with their
blobs and rewrites the index once.
"""

import shutil
import threading
import time
from contextlib import contextmanager
from pathlib import Path

try:
    import fcntl
    _FCNTL_AVAILABLE = True
except ImportError:
    _FCNTL_AVAILABLE = False  # Windows fallback: in-process lock only

from shield.errors import SnapshotNotFoundError, UnsafePathError
from shield.snapshot import create_snapshot_store
from shield.snapshot.models import EventType, PruneResult, RestoreResult, Stats
from shield.utils import remove_empty_dirs

DAY_MS = 24 * 60 * 60 * 1000
LOCK_FILE = "index.lock"

_root_locks = {}
_root_locks_guard = threading.Lock()


def _now_ms():
    return int(time.time() * 1000)


@contextmanager
def workspace_lock(shield_dir):
    """Hold the index lock for one workspace.

    Serializes load/mutate/save cycles on the same workspace, both across
    threads in this process and (where fcntl exists) across processes.
    """
    shield_dir = Path(shield_dir)
    key = str(shield_dir.resolve())
    with _root_locks_guard:
        thread_lock = _root_locks.setdefault(key, threading.Lock())

    with thread_lock:
        shield_dir.mkdir(parents=True, exist_ok=True)
        lock_fd = open(shield_dir / LOCK_FILE, "w")
        try:
            if _FCNTL_AVAILABLE:
                fcntl.flock(lock_fd, fcntl.LOCK_EX)
            yield
        finally:
            if _FCNTL_AVAILABLE:
                fcntl.flock(lock_fd, fcntl.LOCK_UN)
            lock_fd.close()


class RestoreEngine:
    """Operations over one or more workspaces' snapshot indexes.

    Every call loads the index fresh; nothing is cached between calls.

    Usage:
        engine = RestoreEngine()
        result = engine.restore("/path/to/project", "snap_1737216000000")
        print(result.restored, result.failed, result.deleted)
    """

    def __init__(self, store=None, clock=None):
        self.store = store or create_snapshot_store()
        self._clock = clock or _now_ms

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def list_snapshots(self, workspace_root):
        """Snapshots, newest first. Storage order is left as is."""
        index = self.store.load(workspace_root)
        return sorted(index.snapshots, key=lambda s: s.timestamp, reverse=True)

    def get_snapshot(self, workspace_root, snapshot_id):
        return self.store.load(workspace_root).find(snapshot_id)

    def compute_stats(self, workspace_root):
        index = self.store.load(workspace_root)
        stats = Stats(snapshot_count=len(index.snapshots))
        paths = set()
        for snapshot in index.snapshots:
            for record in snapshot.files:
                paths.add(record.path)
                stats.total_file_records += 1
                stats.total_bytes += record.size
        stats.unique_path_count = len(paths)
        return stats

    def file_history(self, workspace_root, relative_path):
        """Every recorded version of one path as (snapshot, record), newest first."""
        index = self.store.load(workspace_root)
        history = []
        for snapshot in index.snapshots:
            record = next((f for f in snapshot.files if f.path == relative_path), None)
            if record is not None:
                history.append((snapshot, record))
        return sorted(history, key=lambda pair: pair[0].timestamp, reverse=True)

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore(self, workspace_root, snapshot_id):
        """Reverse-apply one snapshot. Returns a RestoreResult with counters.

        Raises SnapshotNotFoundError if the id is not in the index.
        """
        snapshot = self.store.load(workspace_root).find(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFoundError(f"Snapshot {snapshot_id} not found")

        result = RestoreResult()
        for record in snapshot.files:
            event = record.event_type
            if event is EventType.CREATE:
                self._undo_create(workspace_root, record, result)
            elif event is EventType.CHANGE or event is EventType.DELETE:
                self._copy_back(workspace_root, record, result)
            elif event is EventType.RENAME and record.renamed_to:
                self._undo_rename(workspace_root, record, result)
            # UNKNOWN events and renames with no new name are skipped
        return result

    def restore_to_time(self, workspace_root, timestamp):
        """Restore the snapshot taken at exactly this timestamp (ms)."""
        index = self.store.load(workspace_root)
        snapshot = next((s for s in index.snapshots if s.timestamp == timestamp), None)
        if snapshot is None:
            raise SnapshotNotFoundError(f"No snapshot found at timestamp {timestamp}")
        return self.restore(workspace_root, snapshot.id)

    def restore_file(self, workspace_root, relative_path):
        """Copy the newest recorded blob for one path back into place.

        Returns False when the blob is missing or cannot be copied.
        Raises SnapshotNotFoundError if the path has never been recorded.
        """
        history = self.file_history(workspace_root, relative_path)
        if not history:
            raise SnapshotNotFoundError(f"No backups found for {relative_path}")

        _, record = history[0]
        result = RestoreResult()
        self._copy_back(workspace_root, record, result)
        return result.restored == 1

    def _undo_create(self, workspace_root, record, result):
        try:
            target = self.store.resolve_target_path(workspace_root, record.path)
            if self._remove_file(target):
                result.deleted += 1
        except (OSError, UnsafePathError) as e:
            result.fail(record.path, str(e))

    def _undo_rename(self, workspace_root, record, result):
        try:
            renamed = self.store.resolve_target_path(workspace_root, record.renamed_to)
            if self._remove_file(renamed):
                result.deleted += 1
        except (OSError, UnsafePathError) as e:
            result.fail(record.renamed_to, str(e))
        self._copy_back(workspace_root, record, result)

    def _copy_back(self, workspace_root, record, result):
        if not record.backup_path:
            result.fail(record.path, "no backup recorded")
            return
        try:
            blob = self.store.resolve_blob_path(workspace_root, record.backup_path)
            target = self.store.resolve_target_path(workspace_root, record.path)
        except UnsafePathError as e:
            result.fail(record.path, str(e))
            return

        if not blob.is_file():
            result.fail(record.path, f"backup blob missing: {record.backup_path}")
            return
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(blob, target)
        except OSError as e:
            result.fail(record.path, str(e))
            return
        result.restored += 1

    @staticmethod
    def _remove_file(path):
        """Unlink path. False if nothing is there; OSError if it cannot be removed."""
        if not (path.exists() or path.is_symlink()):
            return False
        if path.is_dir() and not path.is_symlink():
            raise IsADirectoryError(f"Not a file: {path}")
        path.unlink()
        return True

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def prune(self, workspace_root, max_age_days):
        """Drop snapshots older than max_age_days and delete their blobs.

        Returns PruneResult(removed, freed_bytes). Raises IndexWriteError if
        the rewritten index cannot be saved; blobs deleted before that point
        stay deleted.
        """
        if max_age_days < 0:
            raise ValueError(f"max_age_days must be >= 0, got {max_age_days}")
        cutoff = self._clock() - max_age_days * DAY_MS
        result = PruneResult()

        with workspace_lock(self.store.shield_dir(workspace_root)):
            index = self.store.load(workspace_root)
            kept = []
            for snapshot in index.snapshots:
                if snapshot.timestamp >= cutoff:
                    kept.append(snapshot)
                    continue
                for record in snapshot.files:
                    result.freed_bytes += self._delete_blob(workspace_root, record)
                result.removed += 1
            index.snapshots = kept
            self.store.save(workspace_root, index)

        remove_empty_dirs(self.store.blobs_dir(workspace_root))
        return result

    def _delete_blob(self, workspace_root, record):
        """Delete a record's blob if present. Returns its size in bytes."""
        if not record.backup_path:
            return 0
        try:
            blob = self.store.resolve_blob_path(workspace_root, record.backup_path)
        except UnsafePathError:
            return 0  # never unlink outside the blob directory
        if not blob.is_file():
            return 0
        try:
            size = blob.stat().st_size
        except OSError:
            return 0
        try:
            blob.unlink()
        except OSError:
            pass  # cleanup is best-effort, the snapshot is dropped regardless
        return size
