"""
config_paths.py
Central helpers for resolving user-writable config locations.

Follows the XDG Base Directory Specification:
  Config lives in $XDG_CONFIG_HOME/JunimoProfileManager  (default: ~/.config/JunimoProfileManager)
"""

import os
from pathlib import Path

APP_NAME = "JunimoProfileManager"


def get_config_dir() -> Path:
    """Return the app config directory, creating it if it doesn't exist.

    Respects $XDG_CONFIG_HOME; falls back to ~/.config/JunimoProfileManager.
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    config_dir = base / APP_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_registry_path() -> Path:
    """Return the path of the profile/shared-mod registry document.

    Result: ~/.config/JunimoProfileManager/registry.json
    """
    return get_config_dir() / "registry.json"


def get_game_paths_path() -> Path:
    """Return the path of the file holding the Mods and saves roots.

    Result: ~/.config/JunimoProfileManager/paths.json
    """
    return get_config_dir() / "paths.json"
