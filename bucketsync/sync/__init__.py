"""Sync engine for bucketsync - pull/push between a bucket prefix and a workspace."""

from .comparator import FileComparator, SyncAction, SyncDecision, SyncPlan
from .content_types import ContentTypeResolver, resolve_content_type
from .engine import SyncEngine
from .hashing import ContentHasher
from .ignore import (
    DEFAULT_IGNORE_PATTERNS,
    IgnoreFileManager,
    IgnoreRule,
    compile_ignore_filter,
    load_ignore_file,
)
from .models import SyncDirection, SyncResult
from .operations import SyncOperations
from .progress import SyncPhase, SyncProgress, SyncProgressTracker
from .scanner import DirectoryScanner, LocalFile, RemoteFile, RemoteScanner
from .scheduler import TransferReport, TransferScheduler

__all__ = [
    "SyncEngine",
    "SyncDirection",
    "SyncResult",
    "SyncOperations",
    "DirectoryScanner",
    "RemoteScanner",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "SyncPlan",
    "LocalFile",
    "RemoteFile",
    "ContentHasher",
    "ContentTypeResolver",
    "resolve_content_type",
    "TransferScheduler",
    "TransferReport",
    "SyncPhase",
    "SyncProgress",
    "SyncProgressTracker",
    "IgnoreFileManager",
    "IgnoreRule",
    "DEFAULT_IGNORE_PATTERNS",
    "compile_ignore_filter",
    "load_ignore_file",
]
