"""Result records for sync operations."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SyncDirection(str, Enum):
    """Direction of a sync call."""

    PULL = "pull"
    """Remote is authoritative, local is mirrored"""

    PUSH = "push"
    """Local is authoritative, remote is updated"""


@dataclass
class SyncResult:
    """Outcome of one pull or push."""

    success: bool
    """False when any error was recorded"""

    downloaded_files: Optional[int] = None
    uploaded_files: Optional[int] = None
    deleted_files: Optional[int] = None
    skipped_files: int = 0
    """Files whose fingerprints already matched"""

    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert the result to a JSON-friendly dictionary."""
        data: dict[str, Any] = {"success": self.success}
        if self.downloaded_files is not None:
            data["downloadedFiles"] = self.downloaded_files
        if self.uploaded_files is not None:
            data["uploadedFiles"] = self.uploaded_files
        if self.deleted_files is not None:
            data["deletedFiles"] = self.deleted_files
        data["skippedFiles"] = self.skipped_files
        data["errors"] = list(self.errors)
        data["durationMs"] = self.duration_ms
        return data
