"""Directory and bucket scanning utilities for sync operations."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..exceptions import (
    ListingError,
    ObjectNotFoundError,
    PathValidationError,
    StorageError,
)
from ..storage import ObjectInfo, ObjectStoreProtocol
from ..utils import (
    IGNORE_FILE_NAME,
    canonicalize_relative_path,
    relative_key,
    validate_relative_path,
)
from .hashing import ContentHasher, normalize_etag
from .ignore import IgnoreFileManager

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Canonical relative path with forward slashes; may differ from the
    on-disk name when that contains backslashes"""

    size: int
    """File size in bytes"""

    fingerprint: str
    """Hex digest of the file contents"""

    @classmethod
    def from_path(
        cls, file_path: Path, base_path: Path, hasher: ContentHasher
    ) -> "LocalFile":
        """Create LocalFile from a path, hashing its contents.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths
            hasher: Hasher used for the fingerprint

        Returns:
            LocalFile instance

        Raises:
            OSError: If the file cannot be read
        """
        stat = file_path.stat()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = canonicalize_relative_path(
            file_path.relative_to(base_path).as_posix()
        )
        return cls(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            fingerprint=hasher.hash_file(file_path),
        )


@dataclass
class RemoteFile:
    """Represents a remote object with metadata."""

    key: str
    """Full object key including the prefix"""

    relative_path: str
    """Key with the prefix stripped"""

    size: int
    """Object size in bytes"""

    fingerprint: str
    """Content fingerprint comparable with LocalFile.fingerprint"""

    content_type: Optional[str] = None
    """Stored content type, if known"""


@dataclass
class ScanResult:
    """Files found by a scan plus non-fatal errors met on the way."""

    files: list = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def as_map(self) -> dict:
        """Index the files by canonical relative path."""
        return {canonicalize_relative_path(f.relative_path): f for f in self.files}


class DirectoryScanner:
    """Scans a workspace directory and fingerprints every included file.

    Symlinks are never followed, ignored directories are pruned, and the
    ignore file itself is never returned as data.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> result = scanner.scan_local(Path("/sync/folder"), matcher)
        >>> for f in result.files:
        ...     print(f.relative_path, f.fingerprint)
    """

    def __init__(self, hasher: Optional[ContentHasher] = None):
        self.hasher = hasher or ContentHasher()

    def should_ignore(
        self,
        relative_path: str,
        name: str,
        matcher: Optional[IgnoreFileManager],
        is_dir: bool = False,
    ) -> bool:
        """Check if a path should be ignored.

        Args:
            relative_path: Path relative to the scan root
            name: Base name of the entry
            matcher: Compiled ignore rules
            is_dir: Whether the path is a directory

        Returns:
            True if path should be ignored
        """
        if name == IGNORE_FILE_NAME and "/" not in relative_path:
            return True
        if matcher is not None and matcher.is_ignored(relative_path, is_dir=is_dir):
            logger.debug(f"Ignoring (from rules): {relative_path}")
            return True
        return False

    def scan_local(
        self, directory: Path, matcher: Optional[IgnoreFileManager] = None
    ) -> ScanResult:
        """Recursively scan a local directory.

        Args:
            directory: Workspace root
            matcher: Compiled ignore rules (None to include everything)

        Returns:
            ScanResult with LocalFile entries

        Raises:
            ListingError: If the root does not exist or cannot be read
        """
        if not directory.exists():
            raise ListingError(f"Workspace directory does not exist: {directory}")
        if not directory.is_dir():
            raise ListingError(f"Workspace path is not a directory: {directory}")
        try:
            with os.scandir(directory):
                pass
        except OSError as e:
            raise ListingError(f"Cannot read workspace directory {directory}: {e}") from e

        result = ScanResult()
        self._scan_dir(directory, directory, matcher, result, set())
        return result

    def _scan_dir(
        self,
        directory: Path,
        base_path: Path,
        matcher: Optional[IgnoreFileManager],
        result: ScanResult,
        seen: set[str],
    ) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            # Skip directories we can't read
            rel = directory.relative_to(base_path).as_posix()
            logger.warning(f"Cannot read directory {rel}: {e}")
            result.errors.append(f"{rel}: cannot read directory: {e}")
            return

        for entry in entries:
            item = Path(entry.path)
            relative_path = item.relative_to(base_path).as_posix()
            try:
                if entry.is_symlink():
                    logger.debug(f"Skipping symlink: {relative_path}")
                    continue
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError as e:
                result.errors.append(f"{relative_path}: {e}")
                continue

            if self.should_ignore(relative_path, entry.name, matcher, is_dir=is_dir):
                continue

            if is_dir:
                self._scan_dir(item, base_path, matcher, result, seen)
            elif is_file:
                try:
                    local_file = LocalFile.from_path(item, base_path, self.hasher)
                except OSError as e:
                    logger.warning(f"Cannot read {relative_path}: {e}")
                    result.errors.append(f"{relative_path}: cannot read file: {e}")
                    continue
                if local_file.relative_path in seen:
                    # Two on-disk names with one canonical path
                    result.errors.append(
                        f"{relative_path}: duplicate relative path "
                        f"{local_file.relative_path}, skipped"
                    )
                    continue
                seen.add(local_file.relative_path)
                result.files.append(local_file)


class RemoteScanner:
    """Lists every object under a bucket prefix.

    Fingerprints are resolved in this order:

    1. the ETag, when it is a plain MD5 and the hasher uses MD5
       (true for single-part uploads without KMS encryption);
    2. the ``content-<algorithm>`` user metadata written on push;
    3. a download of the object, hashed locally.

    Steps 2 and 3 cost one request per object, so buckets written by other
    tools with multipart uploads list noticeably slower.
    """

    def __init__(self, hasher: Optional[ContentHasher] = None):
        self.hasher = hasher or ContentHasher()

    def scan_remote(
        self,
        store: ObjectStoreProtocol,
        bucket: str,
        prefix: str,
        matcher: Optional[IgnoreFileManager] = None,
    ) -> ScanResult:
        """Collect RemoteFile entries for all objects under ``prefix``.

        Args:
            store: Object store client
            bucket: Bucket name
            prefix: Normalized prefix ("" or ending with "/")
            matcher: Compiled ignore rules

        Returns:
            ScanResult with RemoteFile entries

        Raises:
            ListingError: If the bucket cannot be listed
        """
        result = ScanResult()
        seen: set[str] = set()
        token: Optional[str] = None
        pages = 0

        while True:
            try:
                page = store.list_objects(bucket, prefix, token)
            except StorageError as e:
                raise ListingError(f"Failed to list s3://{bucket}/{prefix}: {e}") from e
            pages += 1

            for obj in page.objects:
                remote_file = self._process_object(
                    store, bucket, prefix, obj, matcher, seen, result
                )
                if remote_file is not None:
                    seen.add(remote_file.relative_path)
                    result.files.append(remote_file)

            token = page.next_token
            if not token:
                break

        logger.debug(
            f"Listed {len(result.files)} remote file(s) in {pages} page(s) "
            f"under s3://{bucket}/{prefix}"
        )
        return result

    def _process_object(
        self,
        store: ObjectStoreProtocol,
        bucket: str,
        prefix: str,
        obj: ObjectInfo,
        matcher: Optional[IgnoreFileManager],
        seen: set[str],
        result: ScanResult,
    ) -> Optional[RemoteFile]:
        # Directory markers
        if obj.key.endswith("/"):
            return None
        try:
            relative_path = validate_relative_path(relative_key(prefix, obj.key))
        except PathValidationError as e:
            if prefix and not obj.key.startswith(prefix):
                # Never list anything outside the prefix
                logger.debug(f"Skipping key outside prefix: {obj.key}")
                return None
            logger.warning(f"Rejecting object key {obj.key}: {e}")
            result.errors.append(f"{obj.key}: {e}")
            return None

        if relative_path in seen:
            result.errors.append(
                f"{obj.key}: duplicate relative path {relative_path}, skipped"
            )
            return None
        if matcher is not None and matcher.is_path_excluded(relative_path):
            logger.debug(f"Ignoring remote (from rules): {relative_path}")
            return None

        try:
            fingerprint, content_type = self._resolve_fingerprint(store, bucket, obj)
        except ObjectNotFoundError:
            # Deleted between listing and stat
            logger.debug(f"Object vanished during listing: {obj.key}")
            return None
        except StorageError as e:
            raise ListingError(f"Failed to read metadata of {obj.key}: {e}") from e

        return RemoteFile(
            key=obj.key,
            relative_path=relative_path,
            size=obj.size,
            fingerprint=fingerprint,
            content_type=content_type,
        )

    def _resolve_fingerprint(
        self, store: ObjectStoreProtocol, bucket: str, obj: ObjectInfo
    ) -> tuple[str, Optional[str]]:
        if self.hasher.etag_compatible:
            etag_hash = normalize_etag(obj.etag)
            if etag_hash:
                return etag_hash, obj.content_type

        head = store.head_object(bucket, obj.key)
        stored = head.metadata.get(self.hasher.metadata_key)
        if stored:
            return stored.lower(), head.content_type

        logger.debug(f"No usable fingerprint for {obj.key}, hashing contents")
        body = store.get_object(bucket, obj.key)
        try:
            return self.hasher.hash_stream(body.stream), head.content_type
        finally:
            body.close()
