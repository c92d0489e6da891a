"""Core sync engine that mirrors a bucket prefix and a workspace directory."""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional

from ..config import SyncConfig
from ..exceptions import ListingError, SyncCancelledError
from ..storage import ObjectStoreProtocol
from ..utils import IGNORE_FILE_NAME, format_size
from .comparator import FileComparator, SyncPlan
from .content_types import ContentTypeResolver
from .hashing import ContentHasher
from .ignore import IgnoreFileManager, compile_ignore_filter, load_ignore_file
from .models import SyncDirection, SyncResult
from .operations import SyncOperations, describe_error
from .progress import ProgressCallback, SyncPhase, SyncProgressTracker
from .scanner import DirectoryScanner, RemoteScanner, ScanResult
from .scheduler import TransferScheduler


class _BackgroundPull:
    """One pull generation, started in the background or by ``pull()``.

    The future is assigned once at creation and only read afterwards, so
    readers on other threads always see a consistent handle.
    """

    def __init__(self, future: "Future[SyncResult]"):
        self.future = future
        self.consumed = False
        self.cached: Optional[SyncResult] = None


class SyncEngine:
    """Core sync engine that orchestrates file synchronization.

    ``pull()`` makes the workspace an exact mirror of the prefix (remote
    wins, local-only files are removed). ``push()`` uploads new and changed
    local files and never deletes remote objects unless
    ``SyncConfig.delete_remote_on_push`` is set.

    Examples:
        >>> config = SyncConfig(bucket="b", prefix="ws/demo", workspace_dir="/tmp/demo")
        >>> engine = SyncEngine(config, S3ObjectStore(region="eu-west-1"))
        >>> result = engine.pull()
        >>> print(result.downloaded_files, result.errors)
    """

    def __init__(
        self,
        config: SyncConfig,
        store: ObjectStoreProtocol,
        logger: Any = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize sync engine.

        Args:
            config: Validated sync options
            store: Object store client (credentials are the caller's concern)
            logger: Logger with debug/info/warning/error methods
            progress_callback: Optional subscriber for progress events

        Raises:
            SyncConfigError: If the configuration is invalid
        """
        config.validate()
        self.config = config
        self.store = store
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.progress = SyncProgressTracker(progress_callback)

        self.hasher = ContentHasher(algorithm=config.hash_algorithm)
        self.content_types = ContentTypeResolver(config.content_type_resolver)
        self.comparator = FileComparator()
        self.local_scanner = DirectoryScanner(self.hasher)
        self.remote_scanner = RemoteScanner(self.hasher)
        self.operations = SyncOperations(
            store=store,
            bucket=config.bucket,
            prefix=config.prefix,
            workspace_dir=config.workspace_dir,
            hasher=self.hasher,
            content_types=self.content_types,
        )
        self.download_scheduler = TransferScheduler(
            config.download_concurrency, SyncPhase.DOWNLOAD, self.progress, self.logger
        )
        self.upload_scheduler = TransferScheduler(
            config.upload_concurrency, SyncPhase.UPLOAD, self.progress, self.logger
        )
        self.cleanup_scheduler = TransferScheduler(
            1, SyncPhase.CLEANUP, self.progress, self.logger
        )

        self._lock = threading.Lock()
        self._background: Optional[_BackgroundPull] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    # ------------------------------------------------------------------
    # Progress subscription
    # ------------------------------------------------------------------

    def subscribe(self, callback: ProgressCallback) -> None:
        """Receive progress events from subsequent pulls and pushes."""
        self.progress.subscribe(callback)

    def unsubscribe(self, callback: ProgressCallback) -> None:
        self.progress.unsubscribe(callback)

    def get_workspace_path(self) -> Path:
        """Return the configured workspace root."""
        return self.config.workspace_dir

    # ------------------------------------------------------------------
    # Listing and planning
    # ------------------------------------------------------------------

    def _build_matcher(self) -> IgnoreFileManager:
        """Compile ignore rules; the ignore file is read once per call."""
        file_patterns: list[str] = []
        if self.config.use_ignore_file:
            file_patterns = load_ignore_file(
                self.config.workspace_dir / IGNORE_FILE_NAME
            )
        return compile_ignore_filter(
            file_patterns=file_patterns,
            extra_patterns=self.config.ignore_patterns,
            base_path=self.config.workspace_dir,
        )

    def _list_local(
        self,
        matcher: IgnoreFileManager,
        missing_ok: bool = False,
        create: bool = False,
    ) -> ScanResult:
        if not self.config.workspace_dir.exists():
            if create:
                # A fresh workspace for a pull
                try:
                    self.config.workspace_dir.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    raise ListingError(
                        f"Cannot create workspace {self.config.workspace_dir}: {e}"
                    ) from e
            elif missing_ok:
                return ScanResult()
        result = self.local_scanner.scan_local(self.config.workspace_dir, matcher)
        total = format_size(sum(f.size for f in result.files))
        self.logger.debug(f"Found {len(result.files)} local file(s), {total}")
        return result

    def _list_remote(self, matcher: IgnoreFileManager) -> ScanResult:
        result = self.remote_scanner.scan_remote(
            self.store, self.config.bucket, self.config.prefix, matcher
        )
        total = format_size(sum(f.size for f in result.files))
        self.logger.debug(f"Found {len(result.files)} remote file(s), {total}")
        return result

    def _snapshot(
        self, direction: SyncDirection, dry_run: bool = False
    ) -> tuple[SyncPlan, ScanResult, ScanResult]:
        """List both sides and diff them for ``direction``.

        Returns:
            Tuple of (plan, local scan, remote scan)

        Raises:
            ListingError: If either side cannot be listed
        """
        matcher = self._build_matcher()
        if direction == SyncDirection.PULL:
            remote = self._list_remote(matcher)
            local = self._list_local(matcher, missing_ok=dry_run, create=not dry_run)
            plan = self.comparator.diff(remote.files, local.files)
        else:
            local = self._list_local(matcher, missing_ok=dry_run)
            remote = self._list_remote(matcher)
            plan = self.comparator.diff(local.files, remote.files)
        return plan, local, remote

    def plan(self, direction: SyncDirection) -> SyncPlan:
        """Compute what a pull or push would do without changing anything.

        Raises:
            ListingError: If either side cannot be listed
        """
        plan, _, _ = self._snapshot(SyncDirection(direction), dry_run=True)
        return plan

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event], phase: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise SyncCancelledError(f"Sync cancelled before {phase}")

    # ------------------------------------------------------------------
    # Pull / push
    # ------------------------------------------------------------------

    def pull(self, cancel_event: Optional[threading.Event] = None) -> SyncResult:
        """Make the workspace mirror the remote prefix.

        Unless a background pull is pending, the call starts a new pull
        generation: ``wait_for_pull()`` afterwards reports this outcome
        instead of an earlier settled one.

        Phases run strictly in order: list, diff, download, delete. No local
        file is deleted while a download might still be running.

        Args:
            cancel_event: Checked between phases; in-flight downloads finish

        Returns:
            SyncResult; ``success`` is False if anything failed

        Raises:
            SyncCancelledError: If ``cancel_event`` was set
        """
        generation = self._begin_generation()
        if generation is None:
            return self._pull(cancel_event)
        try:
            result = self._pull(cancel_event)
        except BaseException as e:
            # The caller gets the exception; later waiters get a failed result
            generation.consumed = True
            generation.future.set_exception(e)
            raise
        generation.future.set_result(result)
        return result

    def _pull(self, cancel_event: Optional[threading.Event]) -> SyncResult:
        start_time = time.time()
        self.logger.info(
            f"Pulling s3://{self.config.bucket}/{self.config.prefix} "
            f"-> {self.config.workspace_dir}"
        )

        try:
            plan, local, remote = self._snapshot(SyncDirection.PULL)
        except ListingError as e:
            self.logger.error(f"Pull failed: {e}")
            return SyncResult(
                success=False,
                downloaded_files=0,
                deleted_files=0,
                errors=[str(e)],
                duration_ms=_elapsed_ms(start_time),
            )

        errors = local.errors + remote.errors
        self.logger.debug(
            f"Pull plan: {len(plan.to_transfer)} download(s), "
            f"{len(plan.to_delete)} delete(s), {plan.unchanged} unchanged"
        )
        self._check_cancelled(cancel_event, "downloads")

        remote_files = remote.as_map()
        local_files = local.as_map()

        def download(path: str) -> Path:
            return self.operations.download_file(path, remote_files[path].key)

        def delete_local(path: str) -> None:
            self.operations.delete_local(path, local_files[path].path)

        downloads = self.download_scheduler.run(plan.to_transfer, download, cancel_event)
        errors.extend(describe_error(f.item, f.error) for f in downloads.failed)
        self._check_cancelled(cancel_event, "cleanup")

        deletes = self.cleanup_scheduler.run(plan.to_delete, delete_local, cancel_event)
        errors.extend(describe_error(f.item, f.error) for f in deletes.failed)

        result = SyncResult(
            success=not errors,
            downloaded_files=downloads.completed,
            deleted_files=deletes.completed,
            skipped_files=plan.unchanged,
            errors=errors,
            duration_ms=_elapsed_ms(start_time),
        )
        self._log_summary("Pull", result)
        return result

    def push(self, cancel_event: Optional[threading.Event] = None) -> SyncResult:
        """Upload new and changed workspace files.

        Remote objects missing locally are kept unless
        ``delete_remote_on_push`` is configured.

        Args:
            cancel_event: Checked between phases; in-flight uploads finish

        Returns:
            SyncResult; ``success`` is False if anything failed

        Raises:
            SyncCancelledError: If ``cancel_event`` was set
        """
        start_time = time.time()
        self.logger.info(
            f"Pushing {self.config.workspace_dir} "
            f"-> s3://{self.config.bucket}/{self.config.prefix}"
        )

        try:
            plan, local, remote = self._snapshot(SyncDirection.PUSH)
        except ListingError as e:
            self.logger.error(f"Push failed: {e}")
            return SyncResult(
                success=False,
                uploaded_files=0,
                deleted_files=0,
                errors=[str(e)],
                duration_ms=_elapsed_ms(start_time),
            )

        errors = local.errors + remote.errors
        self.logger.debug(
            f"Push plan: {len(plan.to_transfer)} upload(s), "
            f"{len(plan.to_delete)} remote-only, {plan.unchanged} unchanged"
        )
        self._check_cancelled(cancel_event, "uploads")

        local_files = local.as_map()
        remote_files = remote.as_map()

        def upload(path: str) -> str:
            return self.operations.upload_file(path, local_files[path].path)

        def delete_remote(path: str) -> None:
            self.operations.delete_remote(path, remote_files[path].key)

        uploads = self.upload_scheduler.run(plan.to_transfer, upload, cancel_event)
        errors.extend(describe_error(f.item, f.error) for f in uploads.failed)

        deleted = 0
        if self.config.delete_remote_on_push and plan.to_delete:
            self._check_cancelled(cancel_event, "cleanup")
            deletes = self.cleanup_scheduler.run(
                plan.to_delete, delete_remote, cancel_event
            )
            errors.extend(describe_error(f.item, f.error) for f in deletes.failed)
            deleted = deletes.completed

        result = SyncResult(
            success=not errors,
            uploaded_files=uploads.completed,
            deleted_files=deleted,
            skipped_files=plan.unchanged,
            errors=errors,
            duration_ms=_elapsed_ms(start_time),
        )
        self._log_summary("Push", result)
        return result

    def _log_summary(self, name: str, result: SyncResult) -> None:
        if result.success:
            self.logger.info(
                f"{name} complete in {result.duration_ms} ms: "
                f"{result.downloaded_files or result.uploaded_files or 0} transferred, "
                f"{result.deleted_files or 0} deleted, {result.skipped_files} unchanged"
            )
        else:
            self.logger.warning(
                f"{name} finished with {len(result.errors)} error(s) "
                f"in {result.duration_ms} ms"
            )

    # ------------------------------------------------------------------
    # Background pull
    # ------------------------------------------------------------------

    def start_background_pull(self) -> None:
        """Start ``pull()`` on a worker thread without blocking.

        A no-op while a background pull is pending. Once the previous one
        has settled, a new call starts a fresh pull and discards the old
        outcome.
        """
        with self._lock:
            if self._background is not None and not self._background.future.done():
                self.logger.debug("Background pull already running")
                return
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="bucketsync-pull"
                )
            self._background = _BackgroundPull(self._executor.submit(self._pull, None))
            self.logger.debug("Started background pull")

    def _begin_generation(self) -> Optional[_BackgroundPull]:
        """Replace a settled handle with a new pending one for a foreground pull.

        Returns None while another pull generation is still pending.
        """
        with self._lock:
            if self._background is not None and not self._background.future.done():
                return None
            future: "Future[SyncResult]" = Future()
            future.set_running_or_notify_cancel()
            self._background = _BackgroundPull(future)
            return self._background

    def wait_for_pull(self, timeout: Optional[float] = None) -> SyncResult:
        """Block until the background pull settles.

        Returns immediately with a successful empty result when no pull
        was started yet. After a foreground ``pull()`` its result is
        returned. If a background pull raised, the first caller gets the
        exception; later callers get a failed SyncResult.

        Args:
            timeout: Seconds to wait (None waits forever)

        Returns:
            SyncResult of the background pull

        Raises:
            concurrent.futures.TimeoutError: If ``timeout`` expires
            Exception: Whatever the background pull raised, once
        """
        with self._lock:
            handle = self._background
        if handle is None:
            return SyncResult(success=True, downloaded_files=0, deleted_files=0)

        try:
            result = handle.future.result(timeout=timeout)
        except Exception as e:
            if not handle.future.done():
                # Timed out waiting, the pull is still running
                raise
            with self._lock:
                first = not handle.consumed
                handle.consumed = True
                if handle.cached is None:
                    handle.cached = SyncResult(success=False, errors=[str(e)])
            if first:
                raise
            return handle.cached
        with self._lock:
            handle.consumed = True
        return result

    def is_pull_complete(self) -> bool:
        """Non-blocking check of the background pull state.

        True when no pull was started or the last generation settled.
        """
        handle = self._background
        return handle is None or handle.future.done()

    def close(self) -> None:
        """Release the background worker thread."""
        with self._lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "SyncEngine":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)
