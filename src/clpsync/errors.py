"""Domain errors for clpsync."""


class SyncError(RuntimeError):
    """Raised when a sync stage cannot complete."""
