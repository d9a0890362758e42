from shield.snapshot.local import LocalSnapshotStore


def create_snapshot_store(config=None):
    """Create a snapshot store from config.

    Config keys:
        snapshot_backend: "local" (default, the only backend)
    """
    config = config or {}
    backend = config.get("snapshot_backend", "local")

    if backend == "local":
        return LocalSnapshotStore()

    raise ValueError(f"Unknown snapshot backend: {backend!r}. Use 'local'.")
