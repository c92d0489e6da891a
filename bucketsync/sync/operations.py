"""Sync operations wrapper for unified upload/download interface."""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from ..exceptions import StorageError, TransferError
from ..storage import ObjectStoreProtocol
from ..utils import make_object_key, safe_local_path
from .content_types import ContentTypeResolver
from .hashing import ContentHasher

logger = logging.getLogger(__name__)


class SyncOperations:
    """Single-file operations between a workspace and a bucket prefix.

    Every relative path is validated before any I/O; a path that would
    escape the workspace or the prefix raises PathValidationError.
    """

    def __init__(
        self,
        store: ObjectStoreProtocol,
        bucket: str,
        prefix: str,
        workspace_dir: Path,
        hasher: Optional[ContentHasher] = None,
        content_types: Optional[ContentTypeResolver] = None,
    ):
        """Initialize sync operations.

        Args:
            store: Object store client
            bucket: Bucket name
            prefix: Normalized key prefix
            workspace_dir: Local workspace root
            hasher: Hasher for upload fingerprints
            content_types: Resolver for upload content types
        """
        self.store = store
        self.bucket = bucket
        self.prefix = prefix
        self.workspace_dir = workspace_dir
        self.hasher = hasher or ContentHasher()
        self.content_types = content_types or ContentTypeResolver()

    def download_file(self, relative_path: str, key: Optional[str] = None) -> Path:
        """Download an object into the workspace.

        The body is streamed into a temporary file next to the target and
        renamed over it, so an interrupted download never leaves a
        truncated file under the real name. Parent directories are created
        only once the object could be opened.

        Args:
            relative_path: Canonical relative path of the file
            key: Object key as listed; built from ``relative_path`` if omitted

        Returns:
            Path where the file was saved
        """
        local_path = safe_local_path(self.workspace_dir, relative_path)
        if key is None:
            key = make_object_key(self.prefix, relative_path)

        body = self.store.get_object(self.bucket, key)
        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{local_path.name}.", suffix=".part", dir=local_path.parent
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    shutil.copyfileobj(body.stream, f, length=self.hasher.chunk_size)
                os.replace(tmp_name, local_path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                raise
        finally:
            body.close()

        logger.debug(
            f"Downloaded {key} -> {local_path} "
            f"({body.info.content_type or 'unknown type'})"
        )
        return local_path

    def upload_file(self, relative_path: str, source: Optional[Path] = None) -> str:
        """Upload a workspace file.

        The object gets the resolved content type and the fingerprint as
        user metadata so later listings can compare it even when the
        store's ETag is not a plain MD5.

        Args:
            relative_path: Canonical relative path of the file
            source: File as found by the scan; resolved from
                ``relative_path`` if omitted

        Returns:
            Fingerprint of the uploaded contents
        """
        local_path = source or safe_local_path(self.workspace_dir, relative_path)
        key = make_object_key(self.prefix, relative_path)
        content_type = self.content_types.resolve(relative_path)

        fingerprint = self.hasher.hash_file(local_path)
        with open(local_path, "rb") as f:
            self.store.put_object(
                self.bucket,
                key,
                f,
                content_type,
                metadata={self.hasher.metadata_key: fingerprint},
            )
        logger.debug(f"Uploaded {local_path} -> {key} ({content_type})")
        return fingerprint

    def delete_remote(self, relative_path: str, key: Optional[str] = None) -> None:
        """Delete the object for a relative path, or the listed ``key``."""
        if key is None:
            key = make_object_key(self.prefix, relative_path)
        self.store.delete_object(self.bucket, key)

    def delete_local(self, relative_path: str, path: Optional[Path] = None) -> None:
        """Delete a workspace file and prune directories it leaves empty."""
        local_path = path or safe_local_path(self.workspace_dir, relative_path)
        try:
            local_path.unlink()
        except FileNotFoundError:
            logger.debug(f"Already gone: {local_path}")
        self._prune_empty_parents(local_path.parent)

    def _prune_empty_parents(self, directory: Path) -> None:
        root = self.workspace_dir.resolve()
        current = directory.resolve()
        while current != root and root in current.parents:
            try:
                current.rmdir()
            except OSError:
                # Not empty or not removable
                break
            current = current.parent


def describe_error(relative_path: str, error: Exception) -> str:
    """Format an item error for SyncResult.errors."""
    if isinstance(error, (StorageError, TransferError)):
        return f"{relative_path}: {error}"
    return f"{relative_path}: {type(error).__name__}: {error}"
