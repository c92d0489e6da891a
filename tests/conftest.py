"""Shared fixtures: an in-memory object store and workspace helpers."""

import hashlib
import io
import threading
import time
from pathlib import Path
from typing import Optional

import pytest

from bucketsync.config import SyncConfig
from bucketsync.exceptions import ObjectNotFoundError, StorageAccessError
from bucketsync.storage import ListObjectsPage, ObjectBody, ObjectInfo
from bucketsync.sync.engine import SyncEngine

BUCKET = "test-bucket"
PREFIX = "workspaces/demo/"


class FakeObjectStore:
    """Thread-safe in-memory object store with failure injection.

    ETags are quoted MD5 digests like single-part S3 uploads, unless
    ``multipart_etags`` is set.
    """

    def __init__(self, page_size: int = 1000):
        self.page_size = page_size
        self.objects: dict[tuple[str, str], dict] = {}
        self.lock = threading.Lock()

        self.list_calls = 0
        self.listings_started = 0
        self.head_calls = 0
        self.get_calls = 0
        self.put_calls = 0
        self.delete_calls = 0

        self.list_error: Optional[Exception] = None
        self.list_gate: Optional[threading.Event] = None
        self.failures: dict[tuple[str, str], Exception] = {}
        self.multipart_etags = False

        self.transfer_delay = 0.0
        self.active_transfers = 0
        self.peak_transfers = 0

    # -- helpers for tests -------------------------------------------------

    def put_text(self, key: str, text: str, bucket: str = BUCKET, **kwargs) -> None:
        self.put_object(bucket, key, text.encode("utf-8"), "text/plain", **kwargs)

    def read(self, key: str, bucket: str = BUCKET) -> bytes:
        return self.objects[(bucket, key)]["data"]

    def keys(self, bucket: str = BUCKET) -> list[str]:
        return sorted(k for b, k in self.objects if b == bucket)

    def fail(self, operation: str, key: str, error: Optional[Exception] = None) -> None:
        """Make ``operation`` ("get", "put", "delete", "head") fail for ``key``."""
        self.failures[(operation, key)] = error or StorageAccessError(
            f"injected {operation} failure"
        )

    def _check_failure(self, operation: str, key: str) -> None:
        error = self.failures.get((operation, key))
        if error is not None:
            raise error

    def _enter_transfer(self) -> None:
        with self.lock:
            self.active_transfers += 1
            self.peak_transfers = max(self.peak_transfers, self.active_transfers)
        if self.transfer_delay:
            time.sleep(self.transfer_delay)

    def _leave_transfer(self) -> None:
        with self.lock:
            self.active_transfers -= 1

    def _etag(self, data: bytes) -> str:
        digest = hashlib.md5(data).hexdigest()
        if self.multipart_etags:
            return f'"{digest}-2"'
        return f'"{digest}"'

    def _info(self, key: str, entry: dict) -> ObjectInfo:
        return ObjectInfo(
            key=key,
            size=len(entry["data"]),
            etag=entry["etag"],
            content_type=entry["content_type"],
            metadata=dict(entry["metadata"]),
        )

    # -- ObjectStoreProtocol -------------------------------------------------

    def list_objects(
        self, bucket: str, prefix: str, continuation_token: Optional[str] = None
    ) -> ListObjectsPage:
        with self.lock:
            self.list_calls += 1
            if continuation_token is None:
                self.listings_started += 1
        if self.list_gate is not None:
            self.list_gate.wait(timeout=10)
        if self.list_error is not None:
            raise self.list_error

        with self.lock:
            keys = sorted(k for b, k in self.objects if b == bucket and k.startswith(prefix))
            start = int(continuation_token) if continuation_token else 0
            chunk = keys[start : start + self.page_size]
            objects = [self._info(k, self.objects[(bucket, k)]) for k in chunk]
        for info in objects:
            # Listings carry no content type or user metadata
            info.content_type = None
            info.metadata = {}
        end = start + len(chunk)
        next_token = str(end) if end < len(keys) else None
        return ListObjectsPage(objects=objects, next_token=next_token)

    def head_object(self, bucket: str, key: str) -> ObjectInfo:
        with self.lock:
            self.head_calls += 1
        self._check_failure("head", key)
        entry = self.objects.get((bucket, key))
        if entry is None:
            raise ObjectNotFoundError(f"Object not found: {key}")
        return self._info(key, entry)

    def get_object(self, bucket: str, key: str) -> ObjectBody:
        with self.lock:
            self.get_calls += 1
        self._enter_transfer()
        try:
            self._check_failure("get", key)
            entry = self.objects.get((bucket, key))
            if entry is None:
                raise ObjectNotFoundError(f"Object not found: {key}")
            return ObjectBody(info=self._info(key, entry), stream=io.BytesIO(entry["data"]))
        finally:
            self._leave_transfer()

    def put_object(
        self,
        bucket: str,
        key: str,
        body,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> ObjectInfo:
        with self.lock:
            self.put_calls += 1
        self._enter_transfer()
        try:
            self._check_failure("put", key)
            data = body if isinstance(body, bytes) else body.read()
            entry = {
                "data": data,
                "etag": self._etag(data),
                "content_type": content_type,
                "metadata": dict(metadata or {}),
            }
            with self.lock:
                self.objects[(bucket, key)] = entry
            return self._info(key, entry)
        finally:
            self._leave_transfer()

    def delete_object(self, bucket: str, key: str) -> None:
        with self.lock:
            self.delete_calls += 1
        self._check_failure("delete", key)
        with self.lock:
            self.objects.pop((bucket, key), None)


def write_files(root: Path, files: dict[str, str]) -> None:
    """Create text files below ``root`` from a {relative_path: content} map."""
    for relative_path, content in files.items():
        path = root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


def read_tree(root: Path) -> dict[str, str]:
    """Read every regular file below ``root`` into a {relative_path: content} map."""
    return {
        p.relative_to(root).as_posix(): p.read_text()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def store():
    """Provide an empty in-memory object store."""
    return FakeObjectStore()


@pytest.fixture
def workspace(tmp_path):
    """Provide an empty workspace directory."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def make_config(workspace):
    """Factory for SyncConfig objects bound to the test workspace."""

    def _make(**kwargs) -> SyncConfig:
        kwargs.setdefault("bucket", BUCKET)
        kwargs.setdefault("prefix", PREFIX)
        kwargs.setdefault("workspace_dir", workspace)
        kwargs.setdefault("region", "us-east-1")
        return SyncConfig(**kwargs)

    return _make


@pytest.fixture
def make_engine(store, make_config):
    """Factory for SyncEngine objects using the in-memory store."""
    engines = []

    def _make(engine_store=None, **kwargs) -> SyncEngine:
        engine = SyncEngine(make_config(**kwargs), engine_store or store)
        engines.append(engine)
        return engine

    yield _make

    for engine in engines:
        engine.close()
