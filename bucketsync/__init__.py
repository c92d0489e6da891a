"""bucketsync - mirror an S3 bucket prefix and a local workspace directory."""

from .config import SyncConfig, load_sync_config_from_json
from .exceptions import (
    BucketSyncError,
    ListingError,
    ObjectNotFoundError,
    PathValidationError,
    StorageAccessError,
    StorageError,
    SyncCancelledError,
    SyncConfigError,
    TransferError,
)
from .storage import S3ObjectStore, create_s3_client
from .sync import SyncEngine, SyncProgress, SyncResult

__version__ = "0.1.0"

__all__ = [
    "SyncEngine",
    "SyncConfig",
    "SyncResult",
    "SyncProgress",
    "S3ObjectStore",
    "create_s3_client",
    "load_sync_config_from_json",
    "BucketSyncError",
    "ListingError",
    "ObjectNotFoundError",
    "PathValidationError",
    "StorageAccessError",
    "StorageError",
    "SyncCancelledError",
    "SyncConfigError",
    "TransferError",
]
