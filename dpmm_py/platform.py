"""
Platform detection helpers for dpmm.

Centralizes Windows vs Unix differences in where configuration and cache
directories live, so the rest of the codebase never reads these environment
variables directly.
"""

import os
import sys
from pathlib import Path


def is_windows() -> bool:
    """Return True when running on Windows."""
    return sys.platform == "win32"


def config_home() -> Path:
    """Return the per-user configuration base directory."""
    if is_windows():
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def cache_home() -> Path:
    """Return the per-user cache base directory."""
    if is_windows():
        local = os.environ.get("LOCALAPPDATA")
        if local:
            return Path(local)
        return Path.home() / "AppData" / "Local"
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".cache"
