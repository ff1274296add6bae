"""
registry_store.py
Load and save the registry document and the game paths.

  registry.json — ProfileRegistry.to_dict()
  paths.json    — {"mods_root": "...", "saves_root": "..."}

A missing or corrupt file loads as an empty registry (or no paths) rather
than raising; the caller decides whether that means first run.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from Profiles.registry import ProfileRegistry
from Utils.app_log import app_log
from Utils.config_paths import get_game_paths_path, get_registry_path


def load_registry(path: Path | None = None) -> ProfileRegistry:
    path = Path(path) if path else get_registry_path()
    if not path.is_file():
        return ProfileRegistry()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            return ProfileRegistry.from_dict(data)
        app_log(f"Registry {path.name} is not a JSON object, starting empty.")
    except (json.JSONDecodeError, OSError) as exc:
        app_log(f"Could not read registry {path}: {exc}")
    return ProfileRegistry()


def save_registry(registry: ProfileRegistry, path: Path | None = None) -> None:
    """Write the registry, replacing the old file only once the new one is complete."""
    path = Path(path) if path else get_registry_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(registry.to_dict(), indent=2), encoding="utf-8")
    os.replace(tmp, path)


def load_game_paths(path: Path | None = None) -> tuple[Path | None, Path | None]:
    """Return (mods_root, saves_root); either may be None if not configured."""
    path = Path(path) if path else get_game_paths_path()
    if not path.is_file():
        return None, None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return None, None
    if not isinstance(data, dict):
        return None, None
    raw_mods = data.get("mods_root", "")
    raw_saves = data.get("saves_root", "")
    return (Path(raw_mods) if raw_mods else None,
            Path(raw_saves) if raw_saves else None)


def save_game_paths(mods_root: Path | None, saves_root: Path | None,
                    path: Path | None = None) -> None:
    path = Path(path) if path else get_game_paths_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "mods_root":  str(mods_root)  if mods_root  else "",
        "saves_root": str(saves_root) if saves_root else "",
    }
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
