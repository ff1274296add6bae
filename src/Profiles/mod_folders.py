"""
mod_folders.py
List the mods inside a profile (or the common Mods/ root) and toggle them.

A ModFolder is one directory with a manifest.json, or a collection (a folder
whose sub-folders have manifests).  Enabled state comes from the dot prefix;
shared state comes from the folder being a directory link into the pool.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from Profiles.profile_state import SHARED_POOL_FOLDER, ProfileLocations
from Utils.dir_links import is_link, rename_link, resolve_link
from Utils.errors import FilesystemConflict, ProfileManagerError, ValidationError
from Utils.folder_names import (
    clean_name,
    is_enabled,
    names_equal,
    profile_folder_name,
    to_disabled,
    to_enabled,
)
from Utils.fs_ops import copy_dir, move_dir, remove_dir, subdirs
from Utils.manifest import has_manifest, read_manifest


@dataclass
class ModFolder:
    folder_name: str
    path: Path
    name: str = ""
    version: str = ""
    unique_id: str = ""
    author: str = ""
    description: str = ""
    update_keys: list[str] = field(default_factory=list)
    nexus_mod_id: int | None = None
    is_common: bool = False
    is_collection: bool = False
    sub_mods: list["ModFolder"] = field(default_factory=list)
    shared_folder_name: str | None = None

    @property
    def is_enabled(self) -> bool:
        return is_enabled(self.folder_name)

    @property
    def is_shared(self) -> bool:
        return self.shared_folder_name is not None

    @property
    def clean_name(self) -> str:
        return clean_name(self.folder_name)


def _detect_link(mod: ModFolder) -> None:
    if is_link(mod.path):
        target = resolve_link(mod.path)
        mod.shared_folder_name = target.name if target is not None else mod.clean_name


def read_mod_folder(mod_dir: Path, is_common: bool = False) -> ModFolder | None:
    """Build a ModFolder from a directory with a manifest; None if unreadable."""
    mod_dir = Path(mod_dir)
    try:
        manifest = read_manifest(mod_dir)
    except ProfileManagerError:
        return None
    mod = ModFolder(
        folder_name=mod_dir.name,
        path=mod_dir,
        name=manifest.name,
        version=manifest.version,
        unique_id=manifest.unique_id,
        author=manifest.author,
        description=manifest.description,
        update_keys=list(manifest.update_keys),
        nexus_mod_id=manifest.nexus_mod_id,
        is_common=is_common,
    )
    _detect_link(mod)
    return mod


def load_collection(collection_dir: Path, is_common: bool = False) -> ModFolder:
    collection_dir = Path(collection_dir)
    cleaned = clean_name(collection_dir.name)
    collection = ModFolder(
        folder_name=collection_dir.name,
        path=collection_dir,
        name=cleaned,
        author="Collection",
        unique_id=f"collection:{cleaned}",
        is_common=is_common,
        is_collection=True,
    )
    for sub in subdirs(collection_dir):
        if not has_manifest(sub):
            continue
        entry = read_mod_folder(sub, is_common=is_common)
        if entry is not None:
            collection.sub_mods.append(entry)
    collection.sub_mods.sort(key=lambda m: m.name.casefold())
    collection.description = f"{len(collection.sub_mods)} mod(s)"
    _detect_link(collection)
    return collection


def _collection_folder_set(names: list[str]) -> set[str]:
    result: set[str] = set()
    for n in names:
        result.add(to_enabled(n).casefold())
        result.add(to_disabled(n).casefold())
    return result


def load_profile_mods(locations: ProfileLocations, profile: str,
                      collection_names: list[str]) -> list[ModFolder]:
    """Every mod and collection in the profile, sorted by display name."""
    profile_dir = locations.find_profile_dir(profile)
    if profile_dir is None:
        return []
    collections = _collection_folder_set(collection_names)
    mods: list[ModFolder] = []
    for d in subdirs(profile_dir):
        if d.name.casefold() in collections:
            mods.append(load_collection(d))
            continue
        if not has_manifest(d):
            continue
        entry = read_mod_folder(d)
        if entry is not None:
            mods.append(entry)
    mods.sort(key=lambda m: m.name.casefold())
    return mods


def _profile_folder_set(profile_names: list[str]) -> set[str]:
    result: set[str] = set()
    for n in profile_names:
        result.add(profile_folder_name(n).casefold())
        result.add(to_disabled(profile_folder_name(n)).casefold())
    return result


def common_mod_folders(mods_root: Path, profile_names: list[str]) -> list[Path]:
    """Folders directly under Mods/ that belong to no profile and aren't the pool."""
    profiles = _profile_folder_set(profile_names)
    return [
        d for d in subdirs(mods_root)
        if d.name.casefold() not in profiles
        and not names_equal(d.name, SHARED_POOL_FOLDER)
    ]


def load_common_mods(mods_root: Path, profile_names: list[str],
                     common_collection_names: list[str]) -> list[ModFolder]:
    """Profile-independent mods that sit directly under Mods/."""
    collections = _collection_folder_set(common_collection_names)
    mods: list[ModFolder] = []
    for d in common_mod_folders(mods_root, profile_names):
        if d.name.casefold() in collections:
            mods.append(load_collection(d, is_common=True))
            continue
        if not has_manifest(d):
            continue
        entry = read_mod_folder(d, is_common=True)
        if entry is not None:
            mods.append(entry)
    mods.sort(key=lambda m: m.name.casefold())
    return mods


def set_mod_enabled(mod: ModFolder, enabled: bool) -> None:
    """Rename the mod folder (or its link) to the enabled/disabled form."""
    new_name = to_enabled(mod.folder_name) if enabled else to_disabled(mod.folder_name)
    if new_name == mod.folder_name:
        return
    new_path = mod.path.parent / new_name
    if is_link(mod.path):
        rename_link(mod.path, new_path)
    else:
        move_dir(mod.path, new_path)
    mod.path = new_path
    mod.folder_name = new_name


# ---------------------------------------------------------------------------
# Delete / move / duplicate
# ---------------------------------------------------------------------------

def _destination(mod: ModFolder, target_dir: Path) -> Path:
    dest = Path(target_dir) / mod.folder_name
    if dest.exists() or is_link(dest):
        raise FilesystemConflict(
            dest, f"A mod folder named '{mod.folder_name}' already exists in the target location."
        )
    return dest


def delete_mod(mod: ModFolder) -> None:
    """Delete the mod folder.  A shared link is removed, never followed."""
    remove_dir(mod.path)


def move_mod(mod: ModFolder, target_dir: Path) -> None:
    """Move the mod into target_dir (another profile folder or the Mods root)."""
    if mod.is_shared:
        raise ValidationError(f"'{mod.clean_name}' is shared; unshare it before moving.")
    dest = _destination(mod, target_dir)
    move_dir(mod.path, dest)
    mod.path = dest


def duplicate_mod(mod: ModFolder, target_dir: Path) -> Path:
    """Copy the mod into target_dir.  A shared mod is copied as real content."""
    dest = _destination(mod, target_dir)
    dest.parent.mkdir(parents=True, exist_ok=True)
    copy_dir(mod.path, dest)
    return dest
