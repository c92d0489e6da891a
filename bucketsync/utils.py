"""Utility functions for bucketsync."""

from pathlib import Path
from typing import Any

from .exceptions import PathValidationError, SyncConfigError

# =============================================================================
# Constants for sync operations
# =============================================================================

# Parallel GETs are cheap, uploads are bandwidth bound
DEFAULT_DOWNLOAD_CONCURRENCY: int = 50
DEFAULT_UPLOAD_CONCURRENCY: int = 10

# Read size used when hashing and streaming files (1 MB)
DEFAULT_HASH_CHUNK_SIZE: int = 1024 * 1024

# Page size for remote listings (S3 maximum)
DEFAULT_LIST_PAGE_SIZE: int = 1000

IGNORE_FILE_NAME: str = ".syncignore"

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Path and key utilities
# =============================================================================


def normalize_prefix(prefix: str) -> str:
    """Normalize a bucket prefix so it always names a "directory".

    Args:
        prefix: Raw prefix (e.g., "/workspaces/demo")

    Returns:
        Prefix without leading slash and with exactly one trailing slash,
        or an empty string for the bucket root

    Examples:
        >>> normalize_prefix("/workspaces/demo")
        'workspaces/demo/'
        >>> normalize_prefix("workspaces/demo/")
        'workspaces/demo/'
        >>> normalize_prefix("/")
        ''
    """
    stripped = prefix.replace("\\", "/").strip("/")
    return f"{stripped}/" if stripped else ""


def canonicalize_relative_path(path: str) -> str:
    """Canonicalize a relative path to forward-slash form.

    Backslashes become forward slashes, leading slashes and ``.`` segments
    are removed and repeated separators are collapsed. ``..`` segments are
    kept so that callers can reject them.

    Examples:
        >>> canonicalize_relative_path("docs\\\\notes.md")
        'docs/notes.md'
        >>> canonicalize_relative_path("/a//./b.txt")
        'a/b.txt'
    """
    parts = [p for p in path.replace("\\", "/").split("/") if p not in ("", ".")]
    return "/".join(parts)


def validate_relative_path(path: str) -> str:
    """Return the canonical form of ``path`` or raise if it escapes its root.

    Raises:
        PathValidationError: If the path is empty, absolute, or contains ``..``
    """
    if path.startswith(("/", "\\")) or (len(path) > 1 and path[1] == ":"):
        raise PathValidationError(f"Absolute path not allowed: {path}", path)
    canonical = canonicalize_relative_path(path)
    if not canonical:
        raise PathValidationError("Empty relative path", path)
    if ".." in canonical.split("/"):
        raise PathValidationError(f"Path escapes sync root: {path}", path)
    return canonical


def make_object_key(prefix: str, relative_path: str) -> str:
    """Build the object key for a relative path under ``prefix``.

    Args:
        prefix: Normalized prefix (see :func:`normalize_prefix`)
        relative_path: Relative path inside the workspace

    Returns:
        Object key

    Raises:
        PathValidationError: If the relative path escapes the prefix
    """
    return f"{prefix}{validate_relative_path(relative_path)}"


def safe_local_path(root: Path, relative_path: str) -> Path:
    """Resolve ``relative_path`` below ``root``.

    Raises:
        PathValidationError: If the resulting path lies outside ``root``
    """
    canonical = validate_relative_path(relative_path)
    root_resolved = root.resolve()
    target = (root_resolved / Path(*canonical.split("/"))).resolve()
    if target != root_resolved and root_resolved not in target.parents:
        raise PathValidationError(
            f"Path escapes workspace: {relative_path}", relative_path
        )
    return target


def relative_key(prefix: str, key: str) -> str:
    """Strip ``prefix`` from an object key.

    Examples:
        >>> relative_key("ws/", "ws/docs/a.txt")
        'docs/a.txt'
    """
    if prefix and not key.startswith(prefix):
        raise PathValidationError(f"Key {key} is outside prefix {prefix}", key)
    return key[len(prefix) :]


def validate_concurrency(value: Any, name: str = "concurrency") -> int:
    """Reject anything but a positive integer.

    Raises:
        SyncConfigError: If the value is not a positive integer
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise SyncConfigError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise SyncConfigError(f"{name} must be at least 1, got {value}")
    return value
