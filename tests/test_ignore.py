"""Unit tests for gitignore-style ignore rules."""

import pytest

from bucketsync.sync.ignore import (
    DEFAULT_IGNORE_PATTERNS,
    IgnoreFileManager,
    IgnoreRule,
    compile_ignore_filter,
    load_ignore_file,
)


class TestIgnoreRuleParse:
    """Tests for IgnoreRule.parse."""

    def test_blank_and_comment_lines(self):
        """Blank lines and comments produce no rule."""
        assert IgnoreRule.parse("") is None
        assert IgnoreRule.parse("   ") is None
        assert IgnoreRule.parse("# a comment") is None

    def test_negated_rule(self):
        rule = IgnoreRule.parse("!keep.log")
        assert rule is not None
        assert rule.negated is True
        assert rule.pattern == "keep.log"

    def test_escaped_hash_and_bang(self):
        """Escaped leading characters are literal."""
        hash_rule = IgnoreRule.parse("\\#notes")
        bang_rule = IgnoreRule.parse("\\!important")
        assert hash_rule.matches("#notes")
        assert not hash_rule.negated
        assert bang_rule.matches("!important")
        assert not bang_rule.negated

    def test_dir_only_rule(self):
        rule = IgnoreRule.parse("build/")
        assert rule.dir_only is True
        assert rule.matches("build", is_dir=True)
        assert not rule.matches("build", is_dir=False)
        assert rule.matches("build/output.bin")

    def test_anchored_when_pattern_has_slash(self):
        rule = IgnoreRule.parse("/docs/*.md")
        assert rule.anchored is True
        assert rule.matches("docs/readme.md")
        assert not rule.matches("sub/docs/readme.md")

    def test_unanchored_matches_at_any_depth(self):
        rule = IgnoreRule.parse("*.log")
        assert rule.matches("debug.log")
        assert rule.matches("a/b/debug.log")
        assert not rule.matches("debug.log.txt")

    def test_star_does_not_cross_directories(self):
        rule = IgnoreRule.parse("src/*.py")
        assert rule.matches("src/main.py")
        assert not rule.matches("src/pkg/main.py")

    def test_double_star(self):
        rule = IgnoreRule.parse("src/**/*.py")
        assert rule.matches("src/main.py")
        assert rule.matches("src/pkg/deep/main.py")
        assert not rule.matches("lib/main.py")

    def test_question_mark_and_character_class(self):
        assert IgnoreRule.parse("file?.txt").matches("file1.txt")
        assert not IgnoreRule.parse("file?.txt").matches("file10.txt")
        assert IgnoreRule.parse("[abc].txt").matches("b.txt")
        assert not IgnoreRule.parse("[!abc].txt").matches("a.txt")
        assert IgnoreRule.parse("[!abc].txt").matches("d.txt")

    def test_unbalanced_bracket_raises(self):
        with pytest.raises(ValueError):
            IgnoreRule.parse("file[.txt")

    def test_bare_slash_raises(self):
        with pytest.raises(ValueError):
            IgnoreRule.parse("/")


class TestIgnoreFileManager:
    """Tests for rule precedence and directory handling."""

    def test_last_match_wins(self):
        manager = IgnoreFileManager()
        manager.add_patterns(["*.log", "!keep.log"], source="test")
        assert manager.is_ignored("debug.log")
        assert not manager.is_ignored("keep.log")

    def test_later_source_overrides_earlier(self):
        manager = compile_ignore_filter(
            default_patterns=["*.tmp"],
            file_patterns=["!important.tmp"],
            extra_patterns=["important.tmp"],
        )
        assert manager.is_ignored("important.tmp")

    def test_malformed_pattern_is_skipped(self, caplog):
        manager = IgnoreFileManager()
        added = manager.add_patterns(["bad[", "*.bak"], source="test")
        assert added == 1
        assert manager.is_ignored("old.bak")
        assert "Skipping invalid ignore pattern" in caplog.text

    def test_empty_path_is_never_ignored(self):
        manager = compile_ignore_filter(extra_patterns=["*"])
        assert not manager.is_ignored("")

    def test_is_path_excluded_checks_parents(self):
        manager = compile_ignore_filter(extra_patterns=["node_modules/"])
        assert manager.is_path_excluded("node_modules/pkg/index.js")
        assert manager.is_path_excluded("app/node_modules/x.js")
        assert not manager.is_path_excluded("app/src/x.js")

    def test_negation_cannot_reinclude_below_ignored_directory(self):
        manager = compile_ignore_filter(extra_patterns=["logs/", "!logs/keep.txt"])
        assert manager.is_path_excluded("logs/keep.txt")

    def test_backslash_paths_are_canonicalized(self):
        manager = compile_ignore_filter(extra_patterns=["build/"])
        assert manager.is_path_excluded("build\\out.o")

    def test_default_patterns(self):
        manager = compile_ignore_filter()
        assert manager.is_path_excluded(".git/config")
        assert manager.is_path_excluded("sub/.DS_Store")
        assert manager.is_path_excluded("pkg/__pycache__/mod.cpython-311.pyc")
        assert manager.is_path_excluded(".syncignore")
        assert not manager.is_path_excluded("src/main.py")

    def test_defaults_can_be_disabled(self):
        manager = compile_ignore_filter(default_patterns=())
        assert not manager.is_path_excluded(".DS_Store")
        assert ".DS_Store" in DEFAULT_IGNORE_PATTERNS


class TestLoadIgnoreFile:
    """Tests for reading .syncignore files."""

    def test_missing_file_returns_empty_list(self, tmp_path):
        assert load_ignore_file(tmp_path / ".syncignore") == []

    def test_reads_lines(self, tmp_path):
        ignore_file = tmp_path / ".syncignore"
        ignore_file.write_text("# comment\n*.tmp\n\nbuild/\n")
        assert load_ignore_file(ignore_file) == ["# comment", "*.tmp", "", "build/"]

    def test_load_from_directory(self, tmp_path):
        (tmp_path / ".syncignore").write_text("*.tmp\n!keep.tmp\n")
        manager = IgnoreFileManager(base_path=tmp_path)
        assert manager.load_from_directory(tmp_path) == 2
        assert manager.is_ignored("a.tmp")
        assert not manager.is_ignored("keep.tmp")
