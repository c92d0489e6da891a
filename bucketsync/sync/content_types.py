"""Content type resolution for uploaded objects."""

import mimetypes
from pathlib import PurePosixPath
from typing import Callable, Optional

from ..utils import DEFAULT_CONTENT_TYPE

ContentTypeResolverFunc = Callable[[str], str]

CONTENT_TYPES: dict[str, str] = {
    # Documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Text and markup
    "txt": "text/plain",
    "log": "text/plain",
    "md": "text/markdown",
    "markdown": "text/markdown",
    "rst": "text/x-rst",
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "csv": "text/csv",
    "tsv": "text/tab-separated-values",
    "xml": "application/xml",
    "svg": "image/svg+xml",
    # Config
    "json": "application/json",
    "yaml": "application/yaml",
    "yml": "application/yaml",
    "toml": "application/toml",
    "ini": "text/plain",
    "cfg": "text/plain",
    "env": "text/plain",
    # Source code
    "js": "text/javascript",
    "mjs": "text/javascript",
    "ts": "text/typescript",
    "tsx": "text/typescript",
    "jsx": "text/javascript",
    "py": "text/x-python",
    "sh": "text/x-shellscript",
    "java": "text/x-java",
    "c": "text/x-c",
    "h": "text/x-c",
    "cpp": "text/x-c++",
    "go": "text/x-go",
    "rs": "text/x-rust",
    "rb": "text/x-ruby",
    "sql": "application/sql",
    # Images
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "ico": "image/x-icon",
    # Audio / video
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "mp4": "video/mp4",
    "webm": "video/webm",
    # Archives
    "zip": "application/zip",
    "gz": "application/gzip",
    "tar": "application/x-tar",
}

TEXT_EXTENSIONS: frozenset[str] = frozenset(
    {
        "txt", "log", "md", "markdown", "rst", "html", "htm", "css", "csv",
        "tsv", "xml", "svg", "json", "yaml", "yml", "toml", "ini", "cfg",
        "env", "js", "mjs", "ts", "tsx", "jsx", "py", "sh", "java", "c", "h",
        "cpp", "go", "rs", "rb", "sql",
    }
)  # fmt: skip


def resolve_content_type(file_name: str) -> str:
    """Map a file name to a MIME content type.

    Args:
        file_name: File name or relative path

    Returns:
        Content type, with ``; charset=utf-8`` for text-like files. Extensions
        missing from the table fall back to :func:`mimetypes.guess_type`, then
        to ``application/octet-stream``

    Examples:
        >>> resolve_content_type("notes/README.md")
        'text/markdown; charset=utf-8'
        >>> resolve_content_type("photo.JPG")
        'image/jpeg'
        >>> resolve_content_type("data.bin")
        'application/octet-stream'
    """
    suffix = PurePosixPath(file_name.replace("\\", "/")).suffix
    extension = suffix[1:].lower() if suffix else ""
    content_type = CONTENT_TYPES.get(extension)
    if content_type is None:
        guessed = mimetypes.guess_type(f"file{suffix.lower()}")[0] if suffix else None
        if guessed is None:
            return DEFAULT_CONTENT_TYPE
        if guessed.startswith("text/"):
            return f"{guessed}; charset=utf-8"
        return guessed
    if extension in TEXT_EXTENSIONS:
        return f"{content_type}; charset=utf-8"
    return content_type


class ContentTypeResolver:
    """Resolves content types, optionally through a caller-supplied function.

    A supplied resolver replaces the built-in table entirely.
    """

    def __init__(self, resolver: Optional[ContentTypeResolverFunc] = None):
        self._resolver = resolver or resolve_content_type

    def resolve(self, file_name: str) -> str:
        return self._resolver(file_name)

    __call__ = resolve
