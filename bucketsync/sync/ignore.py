"""Gitignore-style pattern matching for sync operations.

Rules are collected from three sources, lowest precedence first:

1. built-in defaults (version control metadata, OS clutter, the ignore file)
2. the ``.syncignore`` file at the workspace root
3. patterns supplied by the caller (CLI ``--ignore`` or ``SyncConfig``)

Rules are evaluated in that order and the last matching rule decides, so a
``!pattern`` re-includes a path excluded by an earlier rule.

Examples:
    >>> manager = compile_ignore_filter(["*.log"], ["!keep.log"], [])
    >>> manager.is_ignored("debug.log")
    True
    >>> manager.is_ignored("keep.log")
    False
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from ..utils import IGNORE_FILE_NAME, canonicalize_relative_path

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    ".git/",
    ".DS_Store",
    "Thumbs.db",
    "__pycache__/",
    "*.pyc",
    IGNORE_FILE_NAME,
)


def _translate_segment_glob(pattern: str) -> str:
    """Translate a glob to a regex where ``*`` and ``?`` stay in one segment."""
    i, n = 0, len(pattern)
    out: list[str] = []
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern[i : i + 2] == "**":
                # "**/" matches zero or more directories
                if pattern[i : i + 3] == "**/":
                    out.append("(?:.*/)?")
                    i += 3
                else:
                    out.append(".*")
                    i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = pattern.find("]", i + 1)
            if j == -1:
                raise ValueError(f"unbalanced '[' in pattern {pattern!r}")
            body = pattern[i + 1 : j]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append(f"[{body}]")
            i = j
        elif c == "\\" and i + 1 < n:
            i += 1
            out.append(re.escape(pattern[i]))
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


@dataclass
class IgnoreRule:
    """A single compiled ignore pattern."""

    pattern: str
    """Pattern text as written (without the leading ``!``)"""

    negated: bool = False
    """True for ``!pattern`` rules that re-include paths"""

    dir_only: bool = False
    """True when the pattern ended with ``/``"""

    anchored: bool = False
    """True when the pattern only matches relative to the workspace root"""

    source: str = "<cli>"
    """Where the rule came from, for log messages"""

    regex: Optional[re.Pattern] = None

    @classmethod
    def parse(cls, line: str, source: str = "<cli>") -> Optional["IgnoreRule"]:
        """Parse one pattern line.

        Args:
            line: Raw pattern line
            source: Name of the rule source for diagnostics

        Returns:
            IgnoreRule, or None for blank lines and comments

        Raises:
            ValueError: If the pattern is malformed
        """
        text = line.rstrip("\n").rstrip("\r")
        # Trailing spaces are insignificant unless escaped
        if not text.endswith("\\ "):
            text = text.rstrip(" ")
        if not text or text.startswith("#"):
            return None

        negated = False
        if text.startswith("!"):
            negated = True
            text = text[1:]
        elif text.startswith(("\\#", "\\!")):
            text = text[1:]

        dir_only = text.endswith("/")
        body = text.rstrip("/")
        if not body:
            raise ValueError(f"empty pattern {line!r}")

        anchored = "/" in body
        body = body.lstrip("/")
        if not body:
            raise ValueError(f"empty pattern {line!r}")

        core = _translate_segment_glob(body)
        prefix = "" if anchored else "(?:.*/)?"
        # A match on a directory also covers everything below it
        regex = re.compile(f"^{prefix}{core}(?P<rest>/.*)?$")

        return cls(
            pattern=text,
            negated=negated,
            dir_only=dir_only,
            anchored=anchored,
            source=source,
            regex=regex,
        )

    def matches(self, relative_path: str, is_dir: bool = False) -> bool:
        """Check whether the rule matches a workspace-relative path.

        Args:
            relative_path: Forward-slash relative path
            is_dir: Whether the path itself is a directory
        """
        if self.regex is None:
            return False
        match = self.regex.match(relative_path)
        if match is None:
            return False
        if self.dir_only and match.group("rest") is None and not is_dir:
            # "build/" matches the directory build and its contents, not a
            # file called build
            return False
        return True


def load_ignore_file(path: Path) -> list[str]:
    """Read pattern lines from an ignore file.

    Args:
        path: Path to the ignore file

    Returns:
        Raw lines (comments and blanks are filtered later by the parser),
        or an empty list if the file does not exist
    """
    if not path.is_file():
        return []
    try:
        with open(path, encoding="utf-8") as f:
            return f.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read ignore file {path}: {e}")
        return []


class IgnoreFileManager:
    """Ordered collection of ignore rules with last-match-wins semantics."""

    def __init__(self, base_path: Optional[Path] = None):
        """Initialize ignore manager.

        Args:
            base_path: Workspace root the patterns are relative to
        """
        self.base_path = base_path
        self.rules: list[IgnoreRule] = []

    def add_patterns(self, patterns: Iterable[str], source: str) -> int:
        """Compile and append patterns, skipping malformed ones.

        Returns:
            Number of rules added
        """
        added = 0
        for lineno, line in enumerate(patterns, start=1):
            try:
                rule = IgnoreRule.parse(line, source=source)
            except (ValueError, re.error) as e:
                logger.warning(f"Skipping invalid ignore pattern ({source}:{lineno}): {e}")
                continue
            if rule is not None:
                self.rules.append(rule)
                added += 1
        return added

    def load_default_patterns(
        self, patterns: Iterable[str] = DEFAULT_IGNORE_PATTERNS
    ) -> int:
        """Load the built-in default patterns."""
        return self.add_patterns(patterns, source="<defaults>")

    def load_from_file(self, ignore_file: Path) -> int:
        """Load patterns from an ignore file."""
        count = self.add_patterns(load_ignore_file(ignore_file), source=str(ignore_file))
        if count:
            logger.debug(f"Loaded {count} ignore rule(s) from {ignore_file}")
        return count

    def load_from_directory(self, directory: Path) -> int:
        """Load ``.syncignore`` from ``directory`` if it exists."""
        return self.load_from_file(directory / IGNORE_FILE_NAME)

    def load_cli_patterns(self, patterns: Iterable[str]) -> int:
        """Load caller-supplied patterns (highest precedence)."""
        return self.add_patterns(patterns, source="<cli>")

    def is_ignored(self, relative_path: str, is_dir: bool = False) -> bool:
        """Check whether a relative path is excluded.

        Args:
            relative_path: Path relative to the workspace root
            is_dir: Whether the path is a directory

        Returns:
            True if the last matching rule excludes the path
        """
        path = canonicalize_relative_path(relative_path)
        if not path:
            return False
        ignored = False
        for rule in self.rules:
            if rule.matches(path, is_dir=is_dir):
                ignored = not rule.negated
        return ignored

    def is_path_excluded(self, relative_path: str) -> bool:
        """Check a file path including all of its parent directories.

        A file below an ignored directory is excluded even if a later
        negation names the file, matching how a directory walk prunes
        ignored directories. Remote listings use this so both directions
        see the same set of paths.
        """
        parts = canonicalize_relative_path(relative_path).split("/")
        for depth in range(1, len(parts)):
            if self.is_ignored("/".join(parts[:depth]), is_dir=True):
                return True
        return self.is_ignored("/".join(parts))


def compile_ignore_filter(
    default_patterns: Iterable[str] = DEFAULT_IGNORE_PATTERNS,
    file_patterns: Iterable[str] = (),
    extra_patterns: Iterable[str] = (),
    base_path: Optional[Path] = None,
) -> IgnoreFileManager:
    """Build a matcher from the three pattern sources in precedence order."""
    manager = IgnoreFileManager(base_path=base_path)
    manager.load_default_patterns(default_patterns)
    manager.add_patterns(file_patterns, source=IGNORE_FILE_NAME)
    manager.load_cli_patterns(extra_patterns)
    return manager
