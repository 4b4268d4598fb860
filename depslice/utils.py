"""Small shared helpers: glob matching, path normalisation, formatting."""

from __future__ import annotations

import hashlib
import logging
import posixpath
import re
import subprocess
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional, Pattern

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> Pattern[str]:
    # ``**`` crosses directory separators, ``*`` and ``?`` do not.
    parts = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif ch == "*":
            parts.append("[^/]*")
            i += 1
        elif ch == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(ch))
            i += 1
    return re.compile("^" + "".join(parts) + "$")


def matches_pattern(relative_path: str, pattern: str) -> bool:
    return bool(_compile_glob(pattern).match(relative_path))


def matches_patterns(relative_path: str, patterns: Iterable[str]) -> bool:
    """Check if *relative_path* matches any of the glob *patterns*."""
    return any(matches_pattern(relative_path, p) for p in patterns)


def normalize_relpath(path: str) -> Optional[str]:
    """Normalise a POSIX relative path; None if it escapes the root."""
    normalized = posixpath.normpath(path.replace("\\", "/"))
    if normalized in ("", "."):
        return ""
    if normalized == ".." or normalized.startswith("../") or normalized.startswith("/"):
        return None
    return normalized


def hash_content(content: str) -> str:
    """First 8 hex chars of the sha256 of *content*."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:8]


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


def get_git_commit(repo_root: Path) -> Optional[str]:
    """Return HEAD commit hash for *repo_root*, or None outside a git checkout."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=str(repo_root),
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("git unavailable for %s: %s", repo_root, exc)
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None
