"""Tests for shared helpers."""

from pathlib import Path

import pytest

from depslice.utils import format_bytes, get_git_commit, hash_content, matches_pattern, normalize_relpath


class TestGlobPatterns:
    """``*`` stays inside one directory, ``**`` crosses them."""

    @pytest.mark.parametrize("path, pattern, expected", [
        ("src/a.test.ts", "**/*.test.ts", True),
        ("a.test.ts", "**/*.test.ts", True),
        ("src/deep/x/a.test.ts", "**/*.test.ts", True),
        ("src/a.ts", "src/*.ts", True),
        ("src/lib/a.ts", "src/*.ts", False),
        ("src/lib/a.ts", "src/**", True),
        ("src/ab.ts", "src/a?.ts", True),
        ("src/a/b.ts", "src/a?b.ts", False),
        ("src/a+b.ts", "src/a+b.ts", True),
    ])
    def test_matching(self, path, pattern, expected):
        assert matches_pattern(path, pattern) is expected


class TestNormalizeRelpath:
    def test_collapses_dots(self):
        assert normalize_relpath("src/./lib/../app/page.tsx") == "src/app/page.tsx"

    def test_backslashes(self):
        assert normalize_relpath("src\\app\\page.tsx") == "src/app/page.tsx"

    def test_root(self):
        assert normalize_relpath(".") == ""

    @pytest.mark.parametrize("path", ["..", "../x", "a/../../x", "/etc/passwd"])
    def test_escapes(self, path):
        assert normalize_relpath(path) is None


def test_format_bytes():
    assert format_bytes(512) == "512 B"
    assert format_bytes(2048) == "2.0 KB"
    assert format_bytes(3 * 1024 * 1024) == "3.00 MB"


def test_hash_content_is_short_and_stable():
    assert hash_content("abc") == hash_content("abc")
    assert len(hash_content("abc")) == 8
    assert hash_content("abc") != hash_content("abd")


def test_git_commit_outside_repository(temp_dir: Path):
    assert get_git_commit(temp_dir) is None
