"""Exceptions for bucketsync."""


class BucketSyncError(Exception):
    """Base exception for all bucketsync errors."""


class SyncConfigError(BucketSyncError):
    """Raised when the sync configuration is missing or invalid."""


class ListingError(BucketSyncError):
    """Raised when the local or remote tree cannot be listed."""


class StorageError(BucketSyncError):
    """Base exception for object store operations."""


class ObjectNotFoundError(StorageError):
    """Object does not exist in the bucket."""


class StorageAccessError(StorageError):
    """Bucket is unreachable or access was denied."""


class TransferError(BucketSyncError):
    """A single file transfer or delete failed."""

    def __init__(self, message: str, relative_path: str = ""):
        super().__init__(message)
        self.relative_path = relative_path


class PathValidationError(TransferError):
    """A relative path or object key escapes its intended root."""


class SyncCancelledError(BucketSyncError):
    """Raised when a sync is cancelled between phases."""
