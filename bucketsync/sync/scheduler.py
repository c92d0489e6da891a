"""Bounded-concurrency execution of transfer operations."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from ..utils import validate_concurrency
from .progress import SyncPhase, SyncProgress, SyncProgressTracker

T = TypeVar("T")


@dataclass
class TransferFailure(Generic[T]):
    """A single item that could not be transferred."""

    item: T
    error: Exception

    def __str__(self) -> str:
        return f"{self.item}: {self.error}"


@dataclass
class TransferReport(Generic[T]):
    """Aggregated outcome of a scheduler run."""

    completed: int = 0
    failed: list[TransferFailure[T]] = field(default_factory=list)
    skipped: int = 0
    """Items never started because the run was cancelled"""


@dataclass
class _ItemOutcome(Generic[T]):
    item: T
    elapsed: float
    error: Optional[Exception] = None
    started: bool = True


class TransferScheduler:
    """Runs an operation over many items with at most N in flight.

    Items are started in submission order. A failing item is recorded and
    does not cancel its siblings. A progress event is emitted after every
    finished item, in completion order.
    """

    def __init__(
        self,
        concurrency: int,
        phase: SyncPhase,
        progress: Optional[SyncProgressTracker] = None,
        logger: Any = None,
    ):
        """Initialize the scheduler.

        Args:
            concurrency: Maximum number of operations running at once
            phase: Phase reported in progress events
            progress: Tracker receiving progress events
            logger: Logger with debug/info/warning/error methods

        Raises:
            SyncConfigError: If concurrency is not a positive integer
        """
        self.concurrency = validate_concurrency(concurrency)
        self.phase = phase
        self.progress = progress
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def run(
        self,
        items: Sequence[T],
        operation: Callable[[T], None],
        cancel_event: Optional[threading.Event] = None,
    ) -> TransferReport[T]:
        """Execute ``operation`` for every item.

        Args:
            items: Items to process, typically relative paths
            operation: Callable performing one transfer; raising marks the
                item as failed
            cancel_event: When set, items not yet started are skipped;
                running operations are allowed to finish

        Returns:
            TransferReport with completed, failed and skipped counts
        """
        report: TransferReport[T] = TransferReport()
        total = len(items)
        if total == 0:
            return report

        self.logger.debug(
            f"Executing {total} {self.phase.value} operation(s) "
            f"with {self.concurrency} worker(s)"
        )

        def execute_with_timing(item: T) -> _ItemOutcome[T]:
            if cancel_event is not None and cancel_event.is_set():
                return _ItemOutcome(item=item, elapsed=0.0, started=False)
            start = time.time()
            try:
                operation(item)
            except Exception as e:
                return _ItemOutcome(item=item, elapsed=time.time() - start, error=e)
            return _ItemOutcome(item=item, elapsed=time.time() - start)

        processed = 0
        workers = min(self.concurrency, total)
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix=f"bucketsync-{self.phase.value}"
        ) as executor:
            futures = [executor.submit(execute_with_timing, item) for item in items]

            try:
                for future in as_completed(futures):
                    outcome = future.result()
                    if not outcome.started:
                        report.skipped += 1
                        continue

                    processed += 1
                    if outcome.error is None:
                        report.completed += 1
                        self.logger.debug(
                            f"Completed {outcome.item} in {outcome.elapsed:.2f}s"
                        )
                    else:
                        report.failed.append(
                            TransferFailure(outcome.item, outcome.error)
                        )
                        self.logger.error(
                            f"Error syncing {outcome.item}: {outcome.error}"
                        )

                    if self.progress is not None:
                        self.progress.emit(
                            SyncProgress(
                                phase=self.phase,
                                current=processed,
                                total=total,
                                current_file=str(outcome.item),
                            )
                        )
            except BaseException:
                # Interrupted: drop queued items, let running ones finish
                for future in futures:
                    future.cancel()
                raise

        if report.skipped:
            self.logger.info(
                f"Skipped {report.skipped} {self.phase.value}(s) after cancel"
            )
        return report
