"""Unit tests for local and remote scanning."""

import hashlib
import os

import pytest
from conftest import BUCKET, PREFIX, FakeObjectStore, write_files

from bucketsync.exceptions import ListingError, StorageAccessError
from bucketsync.sync.hashing import ContentHasher
from bucketsync.sync.ignore import compile_ignore_filter
from bucketsync.sync.scanner import DirectoryScanner, RemoteScanner


def md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


class TestDirectoryScanner:
    """Tests for DirectoryScanner.scan_local."""

    def test_scan_nested_files(self, workspace):
        write_files(workspace, {"a.txt": "A", "sub/b.txt": "B", "sub/deep/c.txt": "C"})
        result = DirectoryScanner().scan_local(workspace)

        files = result.as_map()
        assert sorted(files) == ["a.txt", "sub/b.txt", "sub/deep/c.txt"]
        assert files["sub/b.txt"].fingerprint == md5("B")
        assert files["sub/b.txt"].size == 1
        assert result.errors == []

    def test_empty_directories_are_not_listed(self, workspace):
        (workspace / "empty" / "nested").mkdir(parents=True)
        assert DirectoryScanner().scan_local(workspace).files == []

    def test_ignored_files_and_directories(self, workspace):
        write_files(
            workspace,
            {
                "keep.txt": "k",
                "debug.log": "l",
                "build/out.o": "o",
                "src/main.py": "m",
            },
        )
        matcher = compile_ignore_filter(extra_patterns=["*.log", "build/"])
        result = DirectoryScanner().scan_local(workspace, matcher)
        assert sorted(result.as_map()) == ["keep.txt", "src/main.py"]

    def test_ignore_file_itself_is_never_listed(self, workspace):
        write_files(workspace, {".syncignore": "*.tmp\n", "a.txt": "a"})
        result = DirectoryScanner().scan_local(workspace, compile_ignore_filter())
        assert sorted(result.as_map()) == ["a.txt"]

    def test_symlinks_are_skipped(self, workspace, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("secret")
        write_files(workspace, {"real.txt": "r"})
        os.symlink(outside, workspace / "link.txt")
        result = DirectoryScanner().scan_local(workspace)
        assert sorted(result.as_map()) == ["real.txt"]

    @pytest.mark.skipif(os.name == "nt", reason="backslash is a separator on Windows")
    def test_backslash_names_are_canonicalized(self, workspace):
        write_files(workspace, {"dir/b.txt": "B"})
        (workspace / "dir\\b.txt").write_text("X")
        (workspace / "x\\y.txt").write_text("Y")

        result = DirectoryScanner().scan_local(workspace)

        files = result.as_map()
        assert sorted(files) == ["dir/b.txt", "x/y.txt"]
        assert files["dir/b.txt"].path == workspace / "dir" / "b.txt"
        assert files["x/y.txt"].path == workspace / "x\\y.txt"
        assert len(result.errors) == 1
        assert "duplicate relative path dir/b.txt" in result.errors[0]

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(ListingError, match="does not exist"):
            DirectoryScanner().scan_local(tmp_path / "missing")

    def test_root_is_a_file(self, tmp_path):
        path = tmp_path / "file.txt"
        path.write_text("x")
        with pytest.raises(ListingError, match="not a directory"):
            DirectoryScanner().scan_local(path)

    def test_uses_configured_hasher(self, workspace):
        write_files(workspace, {"a.txt": "A"})
        hasher = ContentHasher(algorithm="sha256")
        result = DirectoryScanner(hasher).scan_local(workspace)
        assert result.files[0].fingerprint == hashlib.sha256(b"A").hexdigest()


class TestRemoteScanner:
    """Tests for RemoteScanner.scan_remote."""

    def test_lists_objects_under_prefix(self, store):
        store.put_text(PREFIX + "a.txt", "A")
        store.put_text(PREFIX + "sub/b.txt", "B")
        store.put_text("workspaces/demo2/other.txt", "X")
        store.put_text("elsewhere/c.txt", "C")

        result = RemoteScanner().scan_remote(store, BUCKET, PREFIX)

        files = result.as_map()
        assert sorted(files) == ["a.txt", "sub/b.txt"]
        assert files["a.txt"].key == PREFIX + "a.txt"
        assert files["a.txt"].fingerprint == md5("A")
        assert store.head_calls == 0

    def test_paginates(self):
        store = FakeObjectStore(page_size=2)
        for i in range(5):
            store.put_text(f"{PREFIX}f{i}.txt", str(i))
        result = RemoteScanner().scan_remote(store, BUCKET, PREFIX)
        assert len(result.files) == 5
        assert store.list_calls == 3

    def test_directory_markers_are_skipped(self, store):
        store.put_text(PREFIX + "folder/", "")
        store.put_text(PREFIX + "folder/a.txt", "A")
        result = RemoteScanner().scan_remote(store, BUCKET, PREFIX)
        assert sorted(result.as_map()) == ["folder/a.txt"]

    def test_escaping_keys_are_rejected(self, store):
        store.put_text(PREFIX + "../escape.txt", "E")
        store.put_text(PREFIX + "ok.txt", "O")
        result = RemoteScanner().scan_remote(store, BUCKET, PREFIX)
        assert sorted(result.as_map()) == ["ok.txt"]
        assert len(result.errors) == 1
        assert "escape.txt" in result.errors[0]

    def test_non_canonical_key_is_kept_for_io(self, store):
        store.put_text(PREFIX + "docs/./a.txt", "A")
        result = RemoteScanner().scan_remote(store, BUCKET, PREFIX)
        files = result.as_map()
        assert sorted(files) == ["docs/a.txt"]
        assert files["docs/a.txt"].key == PREFIX + "docs/./a.txt"

    def test_ignore_rules_apply_to_remote(self, store):
        store.put_text(PREFIX + "a.txt", "A")
        store.put_text(PREFIX + "debug.log", "L")
        store.put_text(PREFIX + "node_modules/x/index.js", "J")
        matcher = compile_ignore_filter(extra_patterns=["*.log", "node_modules/"])
        result = RemoteScanner().scan_remote(store, BUCKET, PREFIX, matcher)
        assert sorted(result.as_map()) == ["a.txt"]

    def test_multipart_etag_uses_metadata(self, store):
        store.multipart_etags = True
        store.put_text(PREFIX + "a.txt", "A", metadata={"content-md5": md5("A")})
        result = RemoteScanner().scan_remote(store, BUCKET, PREFIX)
        assert result.files[0].fingerprint == md5("A")
        assert store.head_calls == 1
        assert store.get_calls == 0

    def test_multipart_etag_without_metadata_downloads(self, store):
        store.multipart_etags = True
        store.put_text(PREFIX + "a.txt", "A")
        result = RemoteScanner().scan_remote(store, BUCKET, PREFIX)
        assert result.files[0].fingerprint == md5("A")
        assert store.get_calls == 1

    def test_non_md5_hasher_reads_metadata(self, store):
        hasher = ContentHasher(algorithm="sha256")
        digest = hashlib.sha256(b"A").hexdigest()
        store.put_text(PREFIX + "a.txt", "A", metadata={"content-sha256": digest})
        result = RemoteScanner(hasher).scan_remote(store, BUCKET, PREFIX)
        assert result.files[0].fingerprint == digest

    def test_list_failure_raises_listing_error(self, store):
        store.list_error = StorageAccessError("AccessDenied")
        with pytest.raises(ListingError, match="AccessDenied"):
            RemoteScanner().scan_remote(store, BUCKET, PREFIX)

    def test_empty_prefix_lists_whole_bucket(self, store):
        store.put_text("a.txt", "A")
        store.put_text("dir/b.txt", "B")
        result = RemoteScanner().scan_remote(store, BUCKET, "")
        assert sorted(result.as_map()) == ["a.txt", "dir/b.txt"]
