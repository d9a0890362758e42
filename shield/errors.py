class ShieldError(Exception):
    """Base class for errors surfaced to shield callers."""


class SnapshotNotFoundError(ShieldError, LookupError):
    """No snapshot (or file history) matches the requested key."""


class IndexWriteError(ShieldError, OSError):
    """The workspace index could not be written.

    Blob side effects of the failed operation have already happened; the
    on-disk index does not reflect them.
    """


class UnsafePathError(ShieldError, ValueError):
    """A recorded path would resolve outside the directory it belongs to."""
