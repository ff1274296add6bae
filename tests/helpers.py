"""Builders for on-disk mod layouts used across the test suite."""
from __future__ import annotations

import json
from pathlib import Path


def write_manifest(mod_dir: Path, unique_id: str, version: str = "1.0.0",
                   name: str | None = None, **extra) -> Path:
    mod_dir.mkdir(parents=True, exist_ok=True)
    data = {"Name": name or unique_id.split(".")[-1], "Version": version,
            "UniqueID": unique_id, **extra}
    path = mod_dir / "manifest.json"
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def make_mod(parent: Path, folder: str, unique_id: str, version: str = "1.0.0",
             config: dict | None = None) -> Path:
    """Create parent/folder with a manifest and, optionally, a config.json."""
    mod_dir = parent / folder
    write_manifest(mod_dir, unique_id, version)
    (mod_dir / "mod.dll").write_bytes(b"\x00binary")
    if config is not None:
        write_config(mod_dir, config)
    return mod_dir


def make_collection(parent: Path, folder: str, sub_mods: dict[str, str],
                    version: str = "1.0.0") -> Path:
    """Create a collection folder; sub_mods maps sub-folder name → UniqueID."""
    collection = parent / folder
    for sub, unique_id in sub_mods.items():
        make_mod(collection, sub, unique_id, version)
    return collection


def write_config(mod_dir: Path, config: dict) -> None:
    (mod_dir / "config.json").write_text(json.dumps(config), encoding="utf-8")


def read_config(mod_dir: Path) -> dict:
    return json.loads((mod_dir / "config.json").read_text(encoding="utf-8"))


def tree_snapshot(root: Path) -> dict[str, bytes | None]:
    """Relative path → file bytes (None for directories) for everything under root."""
    result: dict[str, bytes | None] = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root).as_posix()
        result[rel] = path.read_bytes() if path.is_file() else None
    return result
