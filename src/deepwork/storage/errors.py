"""Error types for the storage layer."""


class StorageError(Exception):
    """Base exception for storage failures."""

    pass


class SessionStoreError(StorageError):
    """Raised when sessions cannot be read or written."""

    pass


class InsightCacheError(StorageError):
    """Raised when the insight cache cannot be read or written."""

    pass


__all__ = ["InsightCacheError", "SessionStoreError", "StorageError"]
