"""File comparison logic for sync operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol

from ..utils import canonicalize_relative_path
from .models import SyncDirection


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    UPLOAD = "upload"
    """Upload local file to remote"""

    DOWNLOAD = "download"
    """Download remote file to local"""

    DELETE_LOCAL = "delete_local"
    """Delete local file"""

    DELETE_REMOTE = "delete_remote"
    """Delete remote file"""

    SKIP = "skip"
    """Skip file (no action needed)"""


class FingerprintedEntry(Protocol):
    relative_path: str
    fingerprint: str


@dataclass(frozen=True)
class SyncPlan:
    """Output of a comparison: what to transfer and what to delete."""

    to_transfer: tuple[str, ...] = ()
    """Paths new on the authoritative side or with a different fingerprint"""

    to_delete: tuple[str, ...] = ()
    """Paths that only exist on the mirror side"""

    unchanged: int = 0
    """Number of paths with equal fingerprints on both sides"""

    @property
    def is_empty(self) -> bool:
        return not self.to_transfer and not self.to_delete


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Relative path of the file"""


def build_fingerprint_map(entries: Iterable[FingerprintedEntry]) -> dict[str, str]:
    """Map canonical relative paths to fingerprints.

    Raises:
        ValueError: If two entries share the same canonical path
    """
    mapping: dict[str, str] = {}
    for entry in entries:
        path = canonicalize_relative_path(entry.relative_path)
        if path in mapping:
            raise ValueError(f"Duplicate path in listing: {path}")
        mapping[path] = entry.fingerprint
    return mapping


class FileComparator:
    """Compares an authoritative listing with its mirror.

    Files are compared by fingerprint only. Equal sizes never make two
    files equal, so a changed file of the same length is still transferred.
    """

    def diff(
        self,
        authoritative: Iterable[FingerprintedEntry],
        mirror: Iterable[FingerprintedEntry],
    ) -> SyncPlan:
        """Compute the sync plan.

        Args:
            authoritative: Entries of the side that wins
            mirror: Entries of the side that is updated

        Returns:
            SyncPlan with sorted path tuples
        """
        source = build_fingerprint_map(authoritative)
        target = build_fingerprint_map(mirror)

        to_transfer = []
        unchanged = 0
        for path, fingerprint in source.items():
            if target.get(path) == fingerprint:
                unchanged += 1
            else:
                to_transfer.append(path)

        to_delete = [path for path in target if path not in source]

        return SyncPlan(
            to_transfer=tuple(sorted(to_transfer)),
            to_delete=tuple(sorted(to_delete)),
            unchanged=unchanged,
        )

    def decide(
        self,
        plan: SyncPlan,
        direction: SyncDirection,
        delete_remote: bool = False,
    ) -> list[SyncDecision]:
        """Expand a plan into per-file decisions for display.

        Args:
            plan: Plan computed by :meth:`diff`
            direction: Direction the plan was computed for
            delete_remote: Whether push removes remote-only objects

        Returns:
            List of SyncDecision objects sorted by path
        """
        decisions: list[SyncDecision] = []
        if direction == SyncDirection.PULL:
            for path in plan.to_transfer:
                decisions.append(
                    SyncDecision(SyncAction.DOWNLOAD, "New or changed remote file", path)
                )
            for path in plan.to_delete:
                decisions.append(
                    SyncDecision(SyncAction.DELETE_LOCAL, "File deleted from remote", path)
                )
        else:
            for path in plan.to_transfer:
                decisions.append(
                    SyncDecision(SyncAction.UPLOAD, "New or changed local file", path)
                )
            for path in plan.to_delete:
                if delete_remote:
                    decisions.append(
                        SyncDecision(
                            SyncAction.DELETE_REMOTE, "File deleted locally", path
                        )
                    )
                else:
                    decisions.append(
                        SyncDecision(
                            SyncAction.SKIP,
                            "Remote-only file kept (push never deletes)",
                            path,
                        )
                    )
        return sorted(decisions, key=lambda d: d.relative_path)
