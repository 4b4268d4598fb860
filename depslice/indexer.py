"""Lightweight repository indexer.

Walks a JavaScript / TypeScript tree and produces one :class:`FileRecord` per
source file. Specifier extraction is plain regex matching over the file text,
not parsing: it tolerates broken syntax and may pick up specifiers from
comments or strings, which the resolver later skips or reports as misses.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional

from .config import SKIP_DIRS, SOURCE_EXTENSIONS
from .models import FileRecord, RepoIndex
from .reader import FileReader
from .storage import OutputStore
from .utils import get_git_commit, hash_content, matches_patterns

logger = logging.getLogger(__name__)

DEFAULT_IGNORE: List[str] = [
    "**/*.test.ts", "**/*.test.tsx", "**/*.test.js", "**/*.test.jsx",
    "**/*.spec.ts", "**/*.spec.tsx", "**/*.spec.js", "**/*.spec.jsx",
    "**/convex/_generated/**",
    "**/*.d.ts",
]

_STATIC_IMPORT_RE = re.compile(r"""import\s+(?:[\w\s{},*$]+\s+from\s+)?['"]([^'"]+)['"]""")
_EXPORT_FROM_RE = re.compile(r"""export\s+(?:type\s+)?[\w\s{},*$]*\s+from\s+['"]([^'"]+)['"]""")
_DYNAMIC_IMPORT_RE = re.compile(r"""import\s*\(\s*['"]([^'"]+)['"]\s*\)""")
_REQUIRE_RE = re.compile(r"""require\s*\(\s*['"]([^'"]+)['"]\s*\)""")

_TYPE_RULES = [
    (re.compile(r"/(?:page)\."), "page"),
    (re.compile(r"/(?:layout)\."), "layout"),
    (re.compile(r"/(?:loading)\."), "loading"),
    (re.compile(r"/(?:error|not-found)\."), "error"),
    (re.compile(r"/(?:route)\."), "route"),
    (re.compile(r"middleware\."), "middleware"),
    (re.compile(r"/bin/|/cli\.|/commands?/", re.I), "api"),
    (re.compile(r"/generators?/|/validators?/|/core/", re.I), "lib"),
    (re.compile(r"/hooks?/", re.I), "hook"),
    (re.compile(r"/use[A-Z]"), "hook"),
    (re.compile(r"/lib/|/utils?/", re.I), "lib"),
    (re.compile(r"/types?/", re.I), "type"),
    (re.compile(r"/server/|/api/", re.I), "api"),
    (re.compile(r"\.config\."), "config"),
    (re.compile(r"/index\.[jt]sx?$"), "lib"),
]

_ROUTE_FILE_TYPES = {"page", "layout", "route", "loading", "error"}
_APP_DIR_RE = re.compile(r"^(?:src/)?app/")


def extract_imports(content: str) -> List[str]:
    """Return unique import specifiers in order of first appearance."""
    found = []
    for regex in (_STATIC_IMPORT_RE, _EXPORT_FROM_RE, _DYNAMIC_IMPORT_RE, _REQUIRE_RE):
        found.extend(m.group(1) for m in regex.finditer(content))
    return list(dict.fromkeys(s.strip() for s in found if s.strip()))


def infer_file_type(relative_path: str) -> str:
    """Classify a file by path convention (page, layout, lib, hook, ...)."""
    if relative_path.startswith("convex/"):
        return "schema"
    # Leading slash lets rules like ``/page.`` match top-level files.
    anchored = "/" + relative_path
    for regex, file_type in _TYPE_RULES:
        if regex.search(anchored):
            return file_type
    return "component"


def route_path_for(relative_path: str, file_type: str) -> Optional[str]:
    """URL route of an app-router file, e.g. ``src/app/(shop)/cart/page.tsx`` -> ``/cart``.

    Only page, layout, route, loading and error files under ``app/`` or
    ``src/app/`` have a route; route groups in parentheses are dropped.
    """
    if file_type not in _ROUTE_FILE_TYPES:
        return None
    match = _APP_DIR_RE.match(relative_path)
    if not match:
        return None
    segments = relative_path[match.end():].split("/")[:-1]
    kept = [s for s in segments if not (s.startswith("(") and s.endswith(")"))]
    return "/" + "/".join(kept)


def build_record(relative_path: str, reader: FileReader) -> Optional[FileRecord]:
    """Index a single file; None if it cannot be read."""
    try:
        content = reader.read_text(relative_path)
        size = reader.size(relative_path)
    except OSError as exc:
        logger.debug("Skipping unreadable file %s: %s", relative_path, exc)
        return None
    file_type = infer_file_type(relative_path)
    return FileRecord(
        relative_path=relative_path,
        file_type=file_type,
        imports=extract_imports(content),
        size_bytes=size,
        content_hash=hash_content(content),
        route_path=route_path_for(relative_path, file_type),
    )


def discover_files(root: Path, exclude: Iterable[str] = ()) -> List[str]:
    """List indexable source files under *root*, sorted by relative path."""
    ignore = DEFAULT_IGNORE + list(exclude)
    found = set()
    for ext in SOURCE_EXTENSIONS:
        for file_path in root.rglob(f"*{ext}"):
            rel_parts = file_path.relative_to(root).parts
            if any(part in SKIP_DIRS for part in rel_parts):
                continue
            rel = "/".join(rel_parts)
            if matches_patterns(rel, ignore):
                continue
            if file_path.is_file():
                found.add(rel)
    return sorted(found)


def index_repository(root: Path, reader: FileReader, exclude: Iterable[str] = ()) -> List[FileRecord]:
    """Scan *root* and return one record per readable source file."""
    records: List[FileRecord] = []
    for rel in discover_files(root, exclude):
        record = build_record(rel, reader)
        if record is not None:
            records.append(record)
    logger.debug("Indexed %d files under %s", len(records), root)
    return records


def index_paths(paths: Iterable[str], reader: FileReader) -> List[FileRecord]:
    """Index an explicit list of relative paths (missing ones are skipped)."""
    records = [build_record(p, reader) for p in sorted(set(paths))]
    return [r for r in records if r is not None]


def get_index(
    root: Path,
    reader: FileReader,
    store: OutputStore,
    refresh: bool = False,
    exclude: Iterable[str] = (),
) -> RepoIndex:
    """Return the saved index of *root*, scanning only when needed.

    Args:
        root: Repository root.
        reader: File access rooted at *root*.
        store: Output store holding ``index.json``.
        refresh: Ignore any saved index and scan again.
        exclude: Extra glob patterns for a fresh scan.

    Returns:
        RepoIndex; a fresh scan is returned but not saved.
    """
    if not refresh:
        cached = store.load_index()
        if cached is not None:
            logger.debug("Using saved index with %d files", len(cached.files))
            return cached
    return RepoIndex(
        repo_root=str(root),
        files=index_repository(root, reader, exclude),
        git_commit=get_git_commit(root),
    )
