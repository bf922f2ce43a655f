"""Config and data directory resolution.

``BUDDY_CONFIG_DIR`` / ``BUDDY_DATA_DIR`` win; otherwise the XDG base
directories are used, with the usual macOS and Windows locations.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

APP_NAME = "buddy"


def _resolve(override: str, xdg_var: str, xdg_default: Path, windows_var: str) -> Path:
    env = os.environ.get(override)
    if env:
        return Path(env).expanduser()
    if sys.platform == "win32":
        base = os.environ.get(windows_var)
        return Path(base) / APP_NAME if base else Path.home() / APP_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    return Path(os.environ.get(xdg_var) or xdg_default) / APP_NAME


def get_config_dir() -> Path:
    return _resolve("BUDDY_CONFIG_DIR", "XDG_CONFIG_HOME", Path.home() / ".config", "APPDATA")


def get_data_dir() -> Path:
    """Where the SQLite stores live (history, group settings, reminders)."""
    return _resolve(
        "BUDDY_DATA_DIR", "XDG_DATA_HOME", Path.home() / ".local" / "share", "LOCALAPPDATA"
    )
