"""CLI progress display for sync operations.

This module provides Rich-based progress displays that subscribe to the
progress events of a SyncEngine.
"""

import threading
from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.engine import SyncEngine
from .sync.models import SyncDirection, SyncResult
from .sync.progress import SyncPhase, SyncProgress

_PHASE_LABELS = {
    SyncPhase.DOWNLOAD: "Downloading",
    SyncPhase.UPLOAD: "Uploading",
    SyncPhase.CLEANUP: "Cleaning up",
}


class SyncProgressDisplay:
    """Rich-based progress display for sync operations.

    One bar is created per phase the first time an event for that phase
    arrives. Events come from worker threads; Rich's Progress is safe to
    update from them.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._tasks: dict[SyncPhase, TaskID] = {}
        self._lock = threading.Lock()

    def handle_event(self, event: SyncProgress) -> None:
        """Handle a progress event from the engine.

        Args:
            event: Progress information
        """
        if self._progress is None:
            return

        with self._lock:
            task = self._tasks.get(event.phase)
            if task is None:
                task = self._progress.add_task(
                    _PHASE_LABELS.get(event.phase, event.phase.value),
                    total=event.total,
                    current_file="",
                )
                self._tasks[event.phase] = task

        self._progress.update(
            task,
            completed=event.current,
            total=event.total,
            current_file=event.current_file or "",
        )

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[cyan]{task.fields[current_file]}"),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            for task in self._tasks.values():
                self._progress.update(task, current_file="done")
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._tasks = {}


def run_sync_with_progress(
    engine: SyncEngine,
    direction: SyncDirection,
    show_progress: bool = True,
    cancel_event: Optional[threading.Event] = None,
) -> SyncResult:
    """Run a pull or push, optionally with a Rich progress display.

    Args:
        engine: SyncEngine instance
        direction: Whether to pull or push
        show_progress: If False, run without any display
        cancel_event: Passed through to the engine

    Returns:
        SyncResult of the operation
    """
    run = engine.pull if direction == SyncDirection.PULL else engine.push

    if not show_progress:
        return run(cancel_event)

    with SyncProgressDisplay() as display:
        engine.subscribe(display.handle_event)
        try:
            return run(cancel_event)
        finally:
            engine.unsubscribe(display.handle_event)
