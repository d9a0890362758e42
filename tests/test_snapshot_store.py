"""
Unit tests for the local snapshot store.

Tests cover:
- Loading absent, corrupt and partial indexes
- Saving and the on-disk JSON shape
- Path resolution and containment
"""

import json

import pytest

from shield.errors import IndexWriteError, UnsafePathError
from shield.snapshot import create_snapshot_store
from shield.snapshot.base import join_inside
from shield.snapshot.local import LocalSnapshotStore, decode_index_or_default
from shield.snapshot.models import BackupIndex, EventType, Snapshot, SnapshotFile


class TestDecodeIndexOrDefault:
    """Tests for the corrupt-index fallback."""

    def test_none_is_empty_index(self):
        index = decode_index_or_default(None)
        assert index.version == 2
        assert index.snapshots == []

    @pytest.mark.parametrize("text", ["{not json", "[]", "42", '{"snapshots": "nope"}'])
    def test_invalid_content_is_empty_index(self, text):
        index = decode_index_or_default(text)
        assert index.version == 2
        assert index.snapshots == []

    def test_missing_version_and_files_filled_in(self):
        index = decode_index_or_default('{"snapshots": [{"id": "s1", "timestamp": 5}]}')
        assert index.version == 2
        assert index.snapshots[0].files == []
        assert index.snapshots[0].message is None

    def test_bad_snapshot_is_set_aside_not_fatal(self):
        text = json.dumps({"version": 2, "snapshots": [
            {"id": "good", "timestamp": 5, "files": []},
            {"id": "x"},
            {"id": "bad_ts", "timestamp": "yesterday"},
        ]})

        index = decode_index_or_default(text)

        assert [s.id for s in index.snapshots] == ["good"]
        assert index.unreadable == [{"id": "x"}, {"id": "bad_ts", "timestamp": "yesterday"}]

    def test_bad_file_record_is_set_aside_not_fatal(self):
        text = json.dumps({"snapshots": [{"id": "s1", "timestamp": 5, "files": [
            {"path": "a.txt", "backupPath": "5_a.txt", "size": 1, "eventType": "change"},
            {"path": "b.txt", "backupPath": 5, "eventType": "change"},
            {"path": 7, "eventType": "create"},
            {"path": "c.txt", "eventType": 3},
        ]}]})

        index = decode_index_or_default(text)

        snap = index.snapshots[0]
        assert [f.path for f in snap.files] == ["a.txt"]
        assert len(snap.unreadable_files) == 3
        assert index.unreadable == []

    def test_null_fields_decode(self):
        text = json.dumps({"snapshots": [{"id": "s1", "timestamp": 5, "files": [
            {"path": "a.txt", "backupPath": None, "size": None, "eventType": None, "renamedTo": None},
        ]}]})

        record = decode_index_or_default(text).snapshots[0].files[0]

        assert record.backup_path == ""
        assert record.size == 0
        assert record.raw_event_type is None
        assert record.event_type is EventType.UNKNOWN


class TestJoinInside:
    """Tests for keeping recorded paths under their base directory."""

    def test_plain_relative_path(self, tmp_path):
        assert join_inside(tmp_path, "src/a.txt") == tmp_path / "src" / "a.txt"

    def test_inner_dot_dot_that_stays_inside(self, tmp_path):
        assert join_inside(tmp_path, "src/../b.txt") == tmp_path / "b.txt"

    @pytest.mark.parametrize("path,expected", [
        ("/etc/passwd", ("etc", "passwd")),
        ("C:\\Users\\me\\a.txt", ("Users", "me", "a.txt")),
        ("//share/a.txt", ("share", "a.txt")),
    ])
    def test_anchors_are_dropped(self, tmp_path, path, expected):
        assert join_inside(tmp_path, path) == tmp_path.joinpath(*expected)

    @pytest.mark.parametrize("path", ["..", "../outside.txt", "a/../../outside.txt", "", "/", "."])
    def test_escaping_or_empty_paths_rejected(self, tmp_path, path):
        with pytest.raises(UnsafePathError):
            join_inside(tmp_path, path)


class TestLocalSnapshotStore:
    """Tests for LocalSnapshotStore load/save."""

    @pytest.fixture
    def store(self):
        return LocalSnapshotStore()

    def test_load_missing_index(self, store, ws):
        index = store.load(ws.root)
        assert index.version == 2
        assert index.snapshots == []

    def test_load_invalid_json(self, store, ws):
        ws.shield_dir.mkdir()
        ws.index_path.write_text("{{{ definitely not json")

        index = store.load(ws.root)

        assert index.version == 2
        assert index.snapshots == []

    def test_load_parses_records(self, store, ws):
        ws.write_index([
            ws.snapshot("s1", 1000, [
                ws.record("a.txt", "rename", backup="1000_a.txt", size=3, renamed_to="b.txt"),
                ws.record("c.txt", "create"),
            ], message="first"),
        ])

        index = store.load(ws.root)

        snap = index.snapshots[0]
        assert snap.id == "s1"
        assert snap.timestamp == 1000
        assert snap.message == "first"
        assert snap.files[0].event_type is EventType.RENAME
        assert snap.files[0].renamed_to == "b.txt"
        assert snap.files[0].backup_path == "1000_a.txt"
        assert snap.files[1].event_type is EventType.CREATE

    def test_unknown_event_type_survives_save(self, store, ws):
        ws.write_index([ws.snapshot("s1", 1, [ws.record("a.txt", "chmod", backup="x")])])

        index = store.load(ws.root)
        assert index.snapshots[0].files[0].event_type is EventType.UNKNOWN
        store.save(ws.root, index)

        assert ws.read_index()["snapshots"][0]["files"][0]["eventType"] == "chmod"

    def test_null_event_type_survives_save(self, store, ws):
        ws.write_index([ws.snapshot("s1", 1, [ws.record("a.txt", None, backup="x")])])

        store.save(ws.root, store.load(ws.root))

        assert ws.read_index()["snapshots"][0]["files"][0]["eventType"] is None

    def test_unreadable_entries_survive_save(self, store, ws):
        bad_record = {"path": "b.txt", "backupPath": 5, "eventType": "change"}
        bad_snapshot = {"id": "broken", "timestamp": None, "files": []}
        ws.write_index([
            ws.snapshot("s1", 1, [ws.record("a.txt", "change", backup="1_a.txt"), bad_record]),
            bad_snapshot,
        ])

        store.save(ws.root, store.load(ws.root))

        saved = ws.read_index()["snapshots"]
        assert saved[0]["files"][1] == bad_record
        assert saved[1] == bad_snapshot

    def test_save_writes_camel_case_json(self, store, ws):
        index = BackupIndex(snapshots=[
            Snapshot(id="s1", timestamp=42, files=[
                SnapshotFile(path="a.txt", backup_path="42_a.txt", size=7, raw_event_type="change"),
            ]),
        ])

        store.save(ws.root, index)

        data = json.loads(ws.index_path.read_text())
        assert data["version"] == 2
        assert data["snapshots"][0]["files"][0] == {
            "path": "a.txt",
            "backupPath": "42_a.txt",
            "size": 7,
            "eventType": "change",
            "renamedTo": None,
        }
        assert data["snapshots"][0]["message"] is None

    def test_save_preserves_storage_order(self, store, ws):
        ws.write_index([ws.snapshot("new", 300, []), ws.snapshot("old", 100, []), ws.snapshot("mid", 200, [])])

        store.save(ws.root, store.load(ws.root))

        assert [s["id"] for s in ws.read_index()["snapshots"]] == ["new", "old", "mid"]

    def test_save_failure_raises_index_write_error(self, store, ws):
        ws.index_path.mkdir(parents=True)  # a directory where the file should be

        with pytest.raises(IndexWriteError):
            store.save(ws.root, BackupIndex.empty())

    def test_resolve_paths_are_pure(self, store, tmp_path):
        root = tmp_path / "nowhere"

        assert store.resolve_blob_path(root, "1_a.txt") == root / ".shield" / "snapshots" / "1_a.txt"
        assert store.resolve_target_path(root, "src/a.txt") == root / "src" / "a.txt"
        assert not root.exists()


class TestCreateSnapshotStore:

    def test_default_is_local(self):
        assert isinstance(create_snapshot_store(), LocalSnapshotStore)
        assert isinstance(create_snapshot_store({"snapshot_backend": "local"}), LocalSnapshotStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown snapshot backend"):
            create_snapshot_store({"snapshot_backend": "s3"})
