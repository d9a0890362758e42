import json
import time
from pathlib import Path

from shield.snapshot.base import SHIELD_DIR

GLOBAL_CONFIG_FILE = Path.home() / SHIELD_DIR / "config.json"

DEFAULT_CONFIG = {
    "max_age_days": 7,
    "snapshot_backend": "local",
}


def _parse_global_config(text):
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"{GLOBAL_CONFIG_FILE} must contain a JSON object, got {type(data).__name__}")
    if not isinstance(data.get("workspaces", []), list):
        raise ValueError(f"'workspaces' in {GLOBAL_CONFIG_FILE} must be a list")
    return data


def load_global_config():
    """Load ~/.shield/config.json: user defaults and the workspace registry.

    An unreadable or non-JSON file reads as empty. A file that parses but
    has the wrong shape raises ValueError.
    """
    if not GLOBAL_CONFIG_FILE.exists():
        return {}
    try:
        text = GLOBAL_CONFIG_FILE.read_text(encoding="utf-8")
        return _parse_global_config(text)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError):
        return {}


def save_global_config(updates):
    """Merge updates into ~/.shield/config.json.

    Raises ValueError rather than overwrite an existing file it cannot parse.
    """
    existing = {}
    if GLOBAL_CONFIG_FILE.exists():
        try:
            existing = _parse_global_config(GLOBAL_CONFIG_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"Refusing to overwrite unparseable {GLOBAL_CONFIG_FILE}: {e}")
    existing.update(updates)
    GLOBAL_CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    GLOBAL_CONFIG_FILE.write_text(json.dumps(existing, indent=2) + "\n", encoding="utf-8")


def load_config():
    # Merge order: defaults -> global config
    config = {**DEFAULT_CONFIG, **load_global_config()}
    config.pop("workspaces", None)

    days = config.get("max_age_days")
    if not isinstance(days, int) or isinstance(days, bool) or days < 0:
        raise ValueError(f"max_age_days in {GLOBAL_CONFIG_FILE} must be a non-negative integer, got {days!r}")

    return config


def find_workspace(start=None):
    """Walk up from start (default cwd) to the first directory holding .shield/, like git finds .git."""
    current = Path(start).resolve() if start else Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / SHIELD_DIR).is_dir() and parent != Path.home():
            return parent
    return None


def get_workspaces():
    return [w for w in load_global_config().get("workspaces", []) if isinstance(w, dict)]


def add_workspace(path):
    """Register a workspace root. Returns the stored entry."""
    path_obj = Path(path).resolve()
    if not path_obj.exists():
        raise ValueError(f"Directory does not exist: {path_obj}")
    if not path_obj.is_dir():
        raise ValueError(f"Path is not a directory: {path_obj}")

    workspaces = get_workspaces()
    if any(w.get("path") == str(path_obj) for w in workspaces):
        raise ValueError(f"Workspace already registered: {path_obj}")

    entry = {
        "path": str(path_obj),
        "name": path_obj.name or str(path_obj),
        "added_at": int(time.time() * 1000),
    }
    workspaces.append(entry)
    save_global_config({"workspaces": workspaces})
    return entry


def remove_workspace(path):
    """Unregister a workspace root. Returns True if it was registered."""
    target = str(Path(path).resolve())
    workspaces = get_workspaces()
    kept = [w for w in workspaces if w.get("path") != target]
    save_global_config({"workspaces": kept})
    return len(kept) != len(workspaces)
