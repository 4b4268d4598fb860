"""Configuration manager for depslice using TOML files.

The user configuration lives in ``~/.depslice/config.toml`` (or
``$DEPSLICE_HOME/config.toml``). Recognised sections::

    [aliases]
    "#lib/" = "packages/lib/src/"

    [slice]
    depth = 5
    max_file_bytes = 409600
    max_bytes = 8388608
    exclude = ["**/*.stories.tsx"]

    [models.my-model]
    context_window = 32000
    max_output = 4096
    reserve_for_output = 2000
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from . import config
from .models import ModelProfile

logger = logging.getLogger(__name__)


DEFAULT_SLICE_SETTINGS: Dict[str, Any] = {
    "depth": config.DEFAULT_SLICE_DEPTH,
    "max_file_bytes": config.DEFAULT_MAX_FILE_BYTES,
    "max_bytes": config.DEFAULT_MAX_BYTES,
    "exclude": [],
}


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    Returns an empty dict when the file is missing or cannot be parsed.
    """
    config_file = path or config.CONFIG_FILE
    if not config_file.exists():
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", config_file, exc)
        return {}


def save_full_config(data: Dict[str, Any], path: Optional[Path] = None) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    config_file = path or config.CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(config_file, "w", encoding="utf-8") as f:
            toml.dump(data, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config file %s: %s", config_file, exc)
        return False


def load_alias_config(path: Optional[Path] = None) -> Dict[str, str]:
    """Return extra alias prefixes from the ``[aliases]`` section.

    Non-string entries are dropped; a non-table section is ignored entirely.
    """
    section = load_full_config(path).get("aliases", {})
    if not isinstance(section, dict):
        logger.warning("Ignoring malformed [aliases] section")
        return {}
    return {
        prefix: target
        for prefix, target in section.items()
        if isinstance(prefix, str) and isinstance(target, str) and prefix
    }


def load_slice_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """Return slice defaults merged with the ``[slice]`` section."""
    settings = DEFAULT_SLICE_SETTINGS.copy()
    section = load_full_config(path).get("slice", {})
    if not isinstance(section, dict):
        return settings

    for key in ("depth", "max_file_bytes", "max_bytes"):
        value = section.get(key)
        if isinstance(value, int) and value > 0:
            settings[key] = value
    exclude = section.get("exclude")
    if isinstance(exclude, list):
        settings["exclude"] = [p for p in exclude if isinstance(p, str)]
    return settings


def load_model_profiles(path: Optional[Path] = None) -> Dict[str, ModelProfile]:
    """Return custom model profiles from ``[models.<name>]`` tables."""
    section = load_full_config(path).get("models", {})
    if not isinstance(section, dict):
        return {}

    profiles: Dict[str, ModelProfile] = {}
    for name, raw in section.items():
        if not isinstance(raw, dict):
            continue
        try:
            profiles[name] = ModelProfile(
                name=name,
                context_window=int(raw["context_window"]),
                max_output=int(raw.get("max_output", 0)),
                reserve_for_output=int(raw.get("reserve_for_output", 0)),
                cost_per_1k_input=raw.get("cost_per_1k_input"),
                cost_per_1k_output=raw.get("cost_per_1k_output"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed model profile '%s': %s", name, exc)
    return profiles


def save_model_profile(profile: ModelProfile, path: Optional[Path] = None) -> bool:
    """Add or replace a custom model profile, preserving other sections."""
    data = load_full_config(path)
    models = data.setdefault("models", {})
    entry: Dict[str, Any] = {
        "context_window": profile.context_window,
        "max_output": profile.max_output,
        "reserve_for_output": profile.reserve_for_output,
    }
    if profile.cost_per_1k_input is not None:
        entry["cost_per_1k_input"] = profile.cost_per_1k_input
    if profile.cost_per_1k_output is not None:
        entry["cost_per_1k_output"] = profile.cost_per_1k_output
    models[profile.name] = entry
    return save_full_config(data, path)
