"""Unit tests for content fingerprints."""

import hashlib
import io

import pytest

from bucketsync.sync.hashing import ContentHasher, normalize_etag


class TestNormalizeEtag:
    """Tests for normalize_etag."""

    def test_quoted_md5(self):
        digest = hashlib.md5(b"hello").hexdigest()
        assert normalize_etag(f'"{digest}"') == digest

    def test_uppercase_is_lowered(self):
        digest = hashlib.md5(b"hello").hexdigest()
        assert normalize_etag(digest.upper()) == digest

    def test_multipart_etag_is_not_a_hash(self):
        assert normalize_etag('"d41d8cd98f00b204e9800998ecf8427e-3"') is None

    def test_empty_values(self):
        assert normalize_etag(None) is None
        assert normalize_etag("") is None
        assert normalize_etag('"abc"') is None


class TestContentHasher:
    """Tests for ContentHasher."""

    def test_md5_default(self):
        hasher = ContentHasher()
        assert hasher.algorithm == "md5"
        assert hasher.etag_compatible is True
        assert hasher.metadata_key == "content-md5"
        digest = hasher.hash_stream(io.BytesIO(b"abc"))
        assert digest == hashlib.md5(b"abc").hexdigest()

    def test_hash_file_matches_digest(self, tmp_path):
        data = b"x" * 5000
        path = tmp_path / "data.bin"
        path.write_bytes(data)
        hasher = ContentHasher(chunk_size=1024)
        assert hasher.hash_file(path) == hashlib.md5(data).hexdigest()

    def test_hash_stream_reads_in_chunks(self):
        hasher = ContentHasher(chunk_size=3)
        assert hasher.hash_stream(io.BytesIO(b"abcdefgh")) == hashlib.md5(
            b"abcdefgh"
        ).hexdigest()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert ContentHasher().hash_file(path) == hashlib.md5(b"").hexdigest()

    def test_same_size_different_content(self):
        hasher = ContentHasher()
        assert hasher.hash_stream(io.BytesIO(b"aaaa")) != hasher.hash_stream(
            io.BytesIO(b"bbbb")
        )

    def test_sha256(self):
        hasher = ContentHasher(algorithm="sha256")
        assert hasher.etag_compatible is False
        assert hasher.metadata_key == "content-sha256"
        digest = hasher.hash_stream(io.BytesIO(b"abc"))
        assert digest == hashlib.sha256(b"abc").hexdigest()

    def test_unknown_algorithm(self):
        with pytest.raises(ValueError, match="Unsupported hash algorithm"):
            ContentHasher(algorithm="not-a-hash")
