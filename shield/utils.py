import time
from pathlib import Path

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_bytes(num_bytes):
    """Human-readable size, 1024-based: 1536 -> '1.5 KB'."""
    if num_bytes <= 0:
        return "0 B"
    value = float(num_bytes)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[unit]}"


def format_time_ago(timestamp_ms, now_ms=None):
    """Coarse age of a millisecond timestamp: '42s ago', '3h ago', '2d ago'."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    seconds = max(0, (now_ms - timestamp_ms) // 1000)
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def remove_empty_dirs(root):
    """Remove empty directories below root, deepest first. root itself stays."""
    root = Path(root)
    if not root.is_dir():
        return
    dirs = sorted((p for p in root.rglob("*") if p.is_dir()), key=lambda p: len(p.parts), reverse=True)
    for d in dirs:
        try:
            d.rmdir()
        except OSError:
            pass  # not empty, or already gone
