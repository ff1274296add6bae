"""
manifest.py
Read a SMAPI mod's manifest.json.

Mod authors write these by hand, so parsing is permissive: comments and
trailing commas are accepted (JSON5), unknown fields are ignored and
non-string values are coerced to strings.

    {
      "Name": "Lookup Anything",
      "Author": "Pathoschild",
      "Version": "1.40.0",
      "UniqueID": "Pathoschild.LookupAnything",
      "UpdateKeys": ["Nexus:541"],
    }

read_manifest_basic() only pulls Name/Version/UniqueID; it is what the
fingerprinting code uses when walking a whole collection.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

import json5

from Utils.errors import ManifestMalformed, ManifestMissing

MANIFEST_NAME = "manifest.json"

_NEXUS_KEY = re.compile(r"^\s*nexus\s*:\s*(\d+)\s*(?:@.*)?$", re.IGNORECASE)


@dataclass
class BasicManifest:
    name: str
    version: str
    unique_id: str


@dataclass
class ModManifest(BasicManifest):
    author: str = ""
    description: str = ""
    update_keys: list[str] = field(default_factory=list)

    @property
    def nexus_mod_id(self) -> int | None:
        return parse_nexus_mod_id(self.update_keys)


def _as_text(value, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return str(value)
    return default


def _load(mod_dir: Path) -> dict:
    manifest_path = Path(mod_dir) / MANIFEST_NAME
    if not manifest_path.is_file():
        raise ManifestMissing(Path(mod_dir))
    try:
        data = json5.loads(manifest_path.read_text(encoding="utf-8-sig"))
    except (OSError, ValueError, UnicodeDecodeError) as exc:
        raise ManifestMalformed(manifest_path, str(exc)) from exc
    if not isinstance(data, dict):
        raise ManifestMalformed(manifest_path, "top level is not an object")
    return data


def read_manifest_basic(mod_dir: Path) -> BasicManifest:
    """Return Name/Version/UniqueID only."""
    data = _load(mod_dir)
    return BasicManifest(
        name=_as_text(data.get("Name"), "Unknown") or "Unknown",
        version=_as_text(data.get("Version")),
        unique_id=_as_text(data.get("UniqueID")),
    )


def read_manifest(mod_dir: Path) -> ModManifest:
    """Return every field the manager cares about.

    Raises ManifestMissing when there is no manifest.json and
    ManifestMalformed when it cannot be parsed.
    """
    data = _load(mod_dir)
    keys = data.get("UpdateKeys")
    update_keys: list[str] = []
    if isinstance(keys, list):
        update_keys = [k for k in keys if isinstance(k, str)]
    return ModManifest(
        name=_as_text(data.get("Name"), "Unknown") or "Unknown",
        version=_as_text(data.get("Version")),
        unique_id=_as_text(data.get("UniqueID")),
        author=_as_text(data.get("Author")),
        description=_as_text(data.get("Description")),
        update_keys=update_keys,
    )


def parse_nexus_mod_id(update_keys: list[str]) -> int | None:
    """Extract the Nexus mod ID from update keys like 'Nexus:541@beta'."""
    for key in update_keys or []:
        if not isinstance(key, str):
            continue
        m = _NEXUS_KEY.match(key)
        if m:
            return int(m.group(1))
    return None


def has_manifest(directory: Path) -> bool:
    return (Path(directory) / MANIFEST_NAME).is_file()


def is_collection_folder(directory: Path) -> bool:
    """A collection has sub-folders with manifests but no manifest of its own."""
    directory = Path(directory)
    if not directory.is_dir() or has_manifest(directory):
        return False
    try:
        return any(sub.is_dir() and has_manifest(sub) for sub in directory.iterdir())
    except OSError:
        return False
