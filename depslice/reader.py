"""File access capability handed to the resolver, builder, and slicer.

The engine never touches the filesystem directly: every existence check and
content read goes through a :class:`FileReader`. Paths are always POSIX-style
and relative to the repository root.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class FileReader(ABC):
    """Read-only view of a repository."""

    @abstractmethod
    def exists(self, relative_path: str) -> bool:
        """Return True if *relative_path* names an existing regular file."""
        ...

    @abstractmethod
    def read_text(self, relative_path: str) -> str:
        """Return file content; raises ``OSError`` when unreadable."""
        ...

    @abstractmethod
    def size(self, relative_path: str) -> int:
        """Return file size in bytes; raises ``OSError`` when unreadable."""
        ...

    def read_text_safe(self, relative_path: str) -> Optional[str]:
        try:
            return self.read_text(relative_path)
        except OSError:
            return None


class DiskFileReader(FileReader):
    """Filesystem-backed reader rooted at *root*.

    Content is cached per instance when *cache* is enabled; a fresh reader per
    invocation therefore sees a consistent snapshot of each file it has read.
    """

    def __init__(self, root: Path, cache: bool = True) -> None:
        self.root = root
        self._cache: Optional[Dict[str, str]] = {} if cache else None

    def _abs(self, relative_path: str) -> Path:
        return self.root / relative_path

    def exists(self, relative_path: str) -> bool:
        if not relative_path or relative_path.startswith("../") or relative_path.startswith("/"):
            return False
        return self._abs(relative_path).is_file()

    def read_text(self, relative_path: str) -> str:
        if self._cache is not None and relative_path in self._cache:
            return self._cache[relative_path]
        text = self._abs(relative_path).read_text(encoding="utf-8", errors="ignore")
        if self._cache is not None:
            self._cache[relative_path] = text
        return text

    def size(self, relative_path: str) -> int:
        return self._abs(relative_path).stat().st_size


class MemoryFileReader(FileReader):
    """Dictionary-backed reader, used for tests and in-process callers."""

    def __init__(self, files: Optional[Mapping[str, str]] = None) -> None:
        self._files: Dict[str, str] = dict(files or {})

    def add(self, relative_path: str, content: str) -> None:
        self._files[relative_path] = content

    def remove(self, relative_path: str) -> None:
        self._files.pop(relative_path, None)

    def exists(self, relative_path: str) -> bool:
        return relative_path in self._files

    def read_text(self, relative_path: str) -> str:
        try:
            return self._files[relative_path]
        except KeyError:
            raise FileNotFoundError(relative_path) from None

    def size(self, relative_path: str) -> int:
        return len(self.read_text(relative_path).encode("utf-8"))
