"""Content fingerprints for change detection."""

import hashlib
import re
from pathlib import Path
from typing import BinaryIO, Optional, Union

from ..utils import DEFAULT_HASH_CHUNK_SIZE

_MD5_HEX = re.compile(r"^[0-9a-f]{32}$")


def normalize_etag(etag: Optional[str]) -> Optional[str]:
    """Convert an S3 ETag into an MD5 fingerprint if it is one.

    Single-part uploads without KMS encryption have an ETag equal to the
    hex MD5 of the body. Multipart ETags (``"<hex>-<parts>"``) and other
    opaque tags are not content hashes and yield None.

    Examples:
        >>> normalize_etag('"9e107d9d372bb6826bd81d3542a419d6"')
        '9e107d9d372bb6826bd81d3542a419d6'
        >>> normalize_etag('"d41d8cd98f00b204e9800998ecf8427e-3"') is None
        True
    """
    if not etag:
        return None
    value = etag.strip().strip('"').lower()
    if _MD5_HEX.match(value):
        return value
    return None


class ContentHasher:
    """Computes fixed-length hex digests of file contents.

    MD5 is the default algorithm so that local fingerprints can be compared
    with S3 ETags without downloading objects.
    """

    def __init__(
        self, algorithm: str = "md5", chunk_size: int = DEFAULT_HASH_CHUNK_SIZE
    ):
        if algorithm not in hashlib.algorithms_available:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    @property
    def metadata_key(self) -> str:
        """Object metadata key the fingerprint is stored under on upload."""
        return f"content-{self.algorithm}"

    @property
    def etag_compatible(self) -> bool:
        """True if plain S3 ETags can be used as fingerprints."""
        return self.algorithm == "md5"

    def _new(self):
        return hashlib.new(self.algorithm)

    def hash_stream(self, stream: BinaryIO) -> str:
        """Hash a binary stream, reading it in chunks."""
        digest = self._new()
        for chunk in iter(lambda: stream.read(self.chunk_size), b""):
            digest.update(chunk)
        return digest.hexdigest()

    def hash_file(self, path: Union[str, Path]) -> str:
        """Hash a file without loading it into memory at once."""
        with open(path, "rb") as f:
            return self.hash_stream(f)
