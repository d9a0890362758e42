import json

from shield.errors import IndexWriteError
from shield.snapshot.base import SnapshotStore
from shield.snapshot.models import BackupIndex


def decode_index_or_default(text):
    """Decode index JSON, falling back to an empty index.

    The backup store must never stop the rest of the tool from running, so a
    file that is not JSON, or whose root is not an index object, reads as
    empty. Individual snapshots or file records that fail to decode are set
    aside by the models and written back untouched.
    """
    if text is None:
        return BackupIndex.empty()
    try:
        return BackupIndex.from_dict(json.loads(text))
    except (ValueError, TypeError, KeyError):
        # json.JSONDecodeError is a ValueError
        return BackupIndex.empty()


class LocalSnapshotStore(SnapshotStore):

    def load(self, workspace_root):
        index_path = self.index_path(workspace_root)
        try:
            text = index_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            text = None
        return decode_index_or_default(text)

    def save(self, workspace_root, index):
        index_path = self.index_path(workspace_root)
        try:
            index_path.parent.mkdir(parents=True, exist_ok=True)
            index_path.write_text(json.dumps(index.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise IndexWriteError(f"Could not write {index_path}: {e}") from e
