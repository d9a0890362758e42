import json

import pytest

from shield import config, log


class WorkspaceBuilder:
    """Lays out a workspace with a .shield index and blobs for tests."""

    def __init__(self, root):
        self.root = root
        self.shield_dir = root / ".shield"
        self.blobs_dir = self.shield_dir / "snapshots"
        self.index_path = self.shield_dir / "index.json"

    def write_index(self, snapshots, version=2):
        self.shield_dir.mkdir(parents=True, exist_ok=True)
        self.index_path.write_text(json.dumps({"version": version, "snapshots": snapshots}))

    def read_index(self):
        return json.loads(self.index_path.read_text())

    def blob(self, name, content):
        path = self.blobs_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    def file(self, relative_path, content):
        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    @staticmethod
    def record(path, event, backup="", size=0, renamed_to=None):
        return {
            "path": path,
            "backupPath": backup,
            "size": size,
            "eventType": event,
            "renamedTo": renamed_to,
        }

    @staticmethod
    def snapshot(snapshot_id, timestamp, files, message=None):
        return {"id": snapshot_id, "timestamp": timestamp, "files": files, "message": message}


@pytest.fixture
def ws(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    return WorkspaceBuilder(root)


@pytest.fixture(autouse=True)
def shield_home(tmp_path, monkeypatch):
    """Keep the global config and audit log out of the real home directory."""
    home = tmp_path / "home" / ".shield"
    monkeypatch.setattr(config, "GLOBAL_CONFIG_FILE", home / "config.json")
    monkeypatch.setattr(log, "LOGS_FILE", home / "logs.jsonl")
    return home
