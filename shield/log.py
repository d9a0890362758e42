"""Audit trail for operations that change a workspace.

Every restore, single-file restore and prune appends one JSON line to
~/.shield/logs.jsonl:

    {"event": "prune", "workspace": "/abs/root", "days": 7,
     "removed": 2, "freed_bytes": 4096, "timestamp": "2025-01-18T16:00:00"}

The event name and workspace are always present; the remaining fields are
the operation's arguments and result counters.
"""

import json
from datetime import datetime
from pathlib import Path

from shield.snapshot.base import SHIELD_DIR

LOGS_FILE = Path.home() / SHIELD_DIR / "logs.jsonl"


def write_log(event, workspace, **fields):
    """Append one audit entry and return it."""
    entry = {"event": event, "workspace": str(workspace), **fields}
    entry["timestamp"] = datetime.now().isoformat()
    LOGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    with open(LOGS_FILE, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry) + "\n")
    return entry


def read_logs(workspace=None):
    """Entries oldest first, optionally only those for one workspace.

    Lines that are not JSON objects are skipped.
    """
    if not LOGS_FILE.exists():
        return []

    entries = []
    for line in LOGS_FILE.read_text(encoding="utf-8", errors="replace").splitlines():
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(entry, dict):
            continue
        if workspace is not None and entry.get("workspace") != str(workspace):
            continue
        entries.append(entry)
    return entries
