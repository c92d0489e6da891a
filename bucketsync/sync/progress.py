"""Progress events emitted during pull and push."""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    """Phase of a sync operation a progress event belongs to."""

    DOWNLOAD = "download"
    UPLOAD = "upload"
    CLEANUP = "cleanup"


@dataclass(frozen=True)
class SyncProgress:
    """A single progress update."""

    phase: SyncPhase
    current: int
    total: int
    current_file: Optional[str] = None

    @property
    def percentage(self) -> int:
        """Completion percentage in the range 0..100."""
        if self.total <= 0:
            return 100
        return min(100, int(self.current * 100 / self.total))


ProgressCallback = Callable[[SyncProgress], None]


class SyncProgressTracker:
    """Fans progress events out to subscribers.

    Delivery is fire-and-forget: events are not buffered, and an event
    emitted while nobody is subscribed is dropped. A subscriber that raises
    is logged and does not affect the sync or other subscribers.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._lock = threading.Lock()
        self._subscribers: list[ProgressCallback] = []
        if callback is not None:
            self._subscribers.append(callback)

    def subscribe(self, callback: ProgressCallback) -> None:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: ProgressCallback) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def emit(self, event: SyncProgress) -> None:
        """Deliver an event to the current subscribers."""
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Progress subscriber raised: {e}")
