"""Module resolution: raw import specifier + source file -> repository path.

Resolution rules, in priority order:

1. A specifier that is neither relative (``.``-prefixed) nor matches an alias
   prefix is external; no file lookup happens.
2. An alias prefix is rewritten onto its target directory, then resolved like
   a root-relative path.
3. A relative specifier resolves against the directory of the source file.
4. A trailing source extension is stripped, then each extension in
   :data:`~depslice.config.SOURCE_EXTENSIONS` is tried, then ``index.<ext>``
   inside the stripped path. The first existing file wins.
5. Nothing found: a miss (``path=None, is_external=False``).
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from typing import Dict, List, Mapping, Optional, Tuple

from .config import ALIAS_CONFIG_FILES, DEFAULT_ALIASES, SOURCE_EXTENSIONS
from .models import EdgeKind, Resolution
from .reader import FileReader
from .utils import normalize_relpath

logger = logging.getLogger(__name__)

_EXT_RE = re.compile(r"\.(?:tsx?|jsx?|mjs)$")

EXTERNAL = Resolution(path=None, is_external=True)
MISS = Resolution(path=None, is_external=False)


class AliasConfig:
    """Ordered table of alias prefix -> target directory (root-relative).

    Longer prefixes are matched first so ``@/components/`` can shadow ``@/``.
    A malformed table degrades to no aliases at all.
    """

    def __init__(self, aliases: Optional[Mapping[str, str]] = None) -> None:
        self._aliases: Dict[str, str] = {}
        if aliases is None:
            aliases = DEFAULT_ALIASES
        if not isinstance(aliases, Mapping):
            logger.warning("Ignoring malformed alias table of type %s", type(aliases).__name__)
            return
        for prefix, target in aliases.items():
            if not isinstance(prefix, str) or not isinstance(target, str) or not prefix:
                logger.warning("Ignoring malformed alias entry %r -> %r", prefix, target)
                continue
            target_dir = _as_dir(target)
            if target_dir is None:
                logger.warning("Ignoring alias %r escaping the repository root", prefix)
                continue
            self._aliases[prefix] = target_dir

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def merged(self, extra: Mapping[str, str]) -> "AliasConfig":
        """Return a new config with *extra* entries layered on top."""
        combined = dict(self._aliases)
        if isinstance(extra, Mapping):
            combined.update(extra)
        return AliasConfig(combined)

    def match(self, specifier: str) -> Optional[str]:
        """Rewrite *specifier* if it starts with a known prefix."""
        for prefix in sorted(self._aliases, key=lambda p: (-len(p), p)):
            if specifier.startswith(prefix):
                return self._aliases[prefix] + specifier[len(prefix):]
        return None

    @classmethod
    def from_tsconfig(cls, reader: FileReader, base: Optional[Mapping[str, str]] = None) -> "AliasConfig":
        """Defaults plus wildcard ``compilerOptions.paths`` entries.

        Only ``"prefix/*": ["target/*"]`` mappings are understood; the first
        target wins. Unparseable config files leave *base* untouched.
        """
        config = cls(base)
        for name in ALIAS_CONFIG_FILES:
            if not reader.exists(name):
                continue
            raw = reader.read_text_safe(name)
            if raw is None:
                continue
            try:
                data = json.loads(raw)
            except ValueError as exc:
                logger.warning("Could not parse %s, using default aliases: %s", name, exc)
                continue
            config = config.merged(_paths_from_compiler_options(data))
        return config


def _as_dir(target: str) -> Optional[str]:
    normalized = normalize_relpath(target)
    if normalized is None:
        return None
    return normalized + "/" if normalized else ""


def _paths_from_compiler_options(data: object) -> Dict[str, str]:
    if not isinstance(data, dict):
        return {}
    options = data.get("compilerOptions")
    if not isinstance(options, dict):
        return {}
    paths = options.get("paths")
    if not isinstance(paths, dict):
        return {}
    base_url = options.get("baseUrl") if isinstance(options.get("baseUrl"), str) else "."

    aliases: Dict[str, str] = {}
    for key, targets in paths.items():
        if not isinstance(key, str) or not key.endswith("/*"):
            continue
        if not isinstance(targets, list) or not targets or not isinstance(targets[0], str):
            continue
        target = targets[0]
        if not target.endswith("*"):
            continue
        joined = normalize_relpath(posixpath.join(base_url, target[:-1]))
        if joined is None:
            continue
        aliases[key[:-1]] = joined
    return aliases


def package_name(specifier: str) -> str:
    """Package portion of an external specifier (``@scope/pkg`` or ``pkg``)."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def classify_import(content: str, specifier: str) -> EdgeKind:
    """Derive edge kind from the statement importing *specifier*."""
    quoted = r"""['"]""" + re.escape(specifier) + r"""['"]"""
    if re.search(r"(?:import|export)\s+type\s+.*?" + quoted, content):
        return "type-only"
    if re.search(r"import\s*\(\s*" + quoted, content):
        return "dynamic"
    return "static"


def is_plausible_specifier(specifier: str) -> bool:
    """Reject empty or whitespace-laden strings picked up by the regex indexer."""
    return bool(specifier) and specifier == specifier.strip() and not any(c.isspace() for c in specifier)


class ModuleResolver:
    """Resolve specifiers against a repository through a :class:`FileReader`.

    Results are memoised per (source directory, specifier) for the lifetime of
    the instance; build one resolver per invocation.
    """

    def __init__(
        self,
        reader: FileReader,
        aliases: Optional[AliasConfig] = None,
        extensions: Tuple[str, ...] = SOURCE_EXTENSIONS,
    ) -> None:
        self.reader = reader
        self.aliases = aliases if aliases is not None else AliasConfig()
        self.extensions = extensions
        self._memo: Dict[Tuple[str, str], Resolution] = {}

    def resolve(self, specifier: str, source_file: str) -> Resolution:
        """Resolve one import specifier.

        Args:
            specifier: Raw specifier as written in the import statement.
            source_file: Importing file, relative to the repository root.

        Returns:
            Resolution: a repository path, ``EXTERNAL``, or a miss.
        """
        if not is_plausible_specifier(specifier):
            return MISS

        source_dir = posixpath.dirname(source_file)
        key = (source_dir if specifier.startswith(".") else "", specifier)
        cached = self._memo.get(key)
        if cached is not None:
            return cached

        result = self._resolve(specifier, source_dir)
        self._memo[key] = result
        if result.is_miss:
            logger.debug("Unresolved import %r from %s", specifier, source_file)
        return result

    def _resolve(self, specifier: str, source_dir: str) -> Resolution:
        if specifier.startswith("."):
            base = normalize_relpath(posixpath.join(source_dir, specifier))
        else:
            rewritten = self.aliases.match(specifier)
            if rewritten is None:
                return EXTERNAL
            base = normalize_relpath(rewritten)

        if base is None:
            return MISS
        path = self.try_resolve_file(base)
        return Resolution(path=path, is_external=False)

    def try_resolve_file(self, base_path: str) -> Optional[str]:
        """First existing candidate for *base_path*, or None."""
        for candidate in self.candidates(base_path):
            if self.reader.exists(candidate):
                return candidate
        return None

    def candidates(self, base_path: str) -> List[str]:
        stripped = _EXT_RE.sub("", base_path)
        found = [stripped + ext for ext in self.extensions if stripped]
        found.extend(posixpath.join(stripped, f"index{ext}") for ext in self.extensions)
        return found
