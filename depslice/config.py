"""Configuration paths and engine defaults for depslice."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Set, Tuple

BASE_DIR = Path(os.environ.get("DEPSLICE_HOME", str(Path.home() / ".depslice"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# Output directory created inside the analysed repository
OUTPUT_DIRNAME = ".depslice"

# Resolution order matters: the first existing candidate wins.
SOURCE_EXTENSIONS: Tuple[str, ...] = (".tsx", ".ts", ".jsx", ".js", ".mjs")

DEFAULT_ALIASES: Dict[str, str] = {
    "@/": "src/",
    "~/": "",
}

ALIAS_CONFIG_FILES: Tuple[str, ...] = ("tsconfig.json", "jsconfig.json")

SKIP_DIRS: Set[str] = {
    "node_modules", ".git", ".next", "dist", "build", "coverage",
    "__tests__", ".turbo", ".vercel", OUTPUT_DIRNAME,
}

DEFAULT_GRAPH_DEPTH = 10
DEFAULT_SLICE_DEPTH = 5
DEFAULT_MAX_FILE_BYTES = 400 * 1024
DEFAULT_MAX_BYTES = 8 * 1024 * 1024
DEFAULT_SCHEMA_PREFIXES: Tuple[str, ...] = ("convex/",)

CHARS_PER_TOKEN = 3.5
