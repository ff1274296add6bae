"""
shared_pool.py
Share one physical copy of a mod or collection between several profiles.

Layout under the Mods root:

  Mods/.[SHARED]/<SharedFolder>/                       the only real copy
  Mods/.[SHARED]/.configs/<Profile>/<SharedFolder>/config.json
  Mods/.[SHARED]/.configs/<Profile>/<SharedFolder>/<SubMod>/config.json   (collections)
  Mods/[PROFILE] <Profile>/<SharedFolder>  →  link to the pool copy

Each consuming profile holds a directory link, never a copy.  Because a mod's
config.json lives inside the shared folder, every profile keeps its own copy
of the settings in .configs/.  It is saved when the profile is switched away
from and copied back onto the pool when the profile becomes active again.

A shared entry with fewer than two consumers is dissolved on the spot: the
last consumer gets a plain copy back and the pool folder is removed.

Operations fail fast and leave partial state as-is; callers re-run
validate_pool() / repair_broken() after a failure.  Removal of stale snapshot
folders and pool remnants is best-effort (logged, never raised).
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from Profiles.mod_folders import ModFolder, read_mod_folder
from Profiles.profile_state import ProfileLocations
from Profiles.registry import ProfileRegistry, SharedCollectionEntry, SharedModEntry
from Utils.dir_links import create_link, is_link, points_to, remove_link
from Utils.errors import (
    FilesystemConflict,
    IdentityMismatch,
    NotFoundError,
    ProfileManagerError,
    SourceNotFound,
    ValidationError,
)
from Utils.fingerprint import SubModFingerprint, compare_identity, fingerprint_collection
from Utils.folder_names import clean_name, is_disabled, names_equal, to_disabled, to_enabled
from Utils.fs_ops import best_effort_remove, copy_dir, copy_file, move_dir, subdirs
from Utils.manifest import has_manifest, read_manifest_basic

SETTINGS_FILE = "config.json"

_MOD = "mod"
_COLLECTION = "collection"


@dataclass
class DuplicateCollectionInstance:
    profile: str
    path: Path
    fingerprint: dict[str, SubModFingerprint]

    @property
    def sub_mod_count(self) -> int:
        return len(self.fingerprint)


@dataclass
class DuplicateCollectionGroup:
    collection_name: str
    instances: list[DuplicateCollectionInstance] = field(default_factory=list)
    has_identity_mismatch: bool = False


def _lookup(entries: dict, name: str) -> str | None:
    """Registry key matching name case-insensitively."""
    if name in entries:
        return name
    for key in entries:
        if names_equal(key, name):
            return key
    return None


class SharedPoolManager:
    def __init__(self, locations: ProfileLocations, log_fn=None):
        self.locations = locations
        self._log = log_fn or (lambda _: None)

    # -----------------------------------------------------------------------
    # Paths
    # -----------------------------------------------------------------------

    @property
    def pool_dir(self) -> Path:
        return self.locations.pool_dir

    def pool_path(self, shared_name: str) -> Path:
        return self.pool_dir / shared_name

    def snapshot_dir(self, profile: str, shared_name: str | None = None) -> Path:
        base = self.locations.config_store_dir / profile
        return base / shared_name if shared_name else base

    def _require_profile_dir(self, profile: str) -> Path:
        path = self.locations.find_profile_dir(profile)
        if path is None:
            raise NotFoundError(f"Profile '{profile}' directory not found.")
        return path

    @staticmethod
    def _forms(profile_dir: Path, shared_name: str) -> tuple[Path, Path]:
        return profile_dir / to_enabled(shared_name), profile_dir / to_disabled(shared_name)

    def _real_copy(self, profile_dir: Path, folder: str) -> Path | None:
        """The profile's own (non-link) copy, enabled form first."""
        for path in self._forms(profile_dir, folder):
            if path.is_dir() and not is_link(path):
                return path
        return None

    def _has_link(self, profile_dir: Path, shared_name: str) -> bool:
        return any(is_link(p) for p in self._forms(profile_dir, shared_name))

    def _remove_links(self, profile_dir: Path, shared_name: str) -> bool:
        """Remove the profile's link in either form; True if it was disabled."""
        enabled, disabled = self._forms(profile_dir, shared_name)
        was_disabled = is_link(disabled)
        for path in (enabled, disabled):
            if is_link(path):
                remove_link(path)
        return was_disabled

    def _registry_for(self, kind: str, registry: ProfileRegistry) -> dict:
        return registry.shared_mods if kind == _MOD else registry.shared_collections

    def _kind_of(self, shared_name: str, registry: ProfileRegistry) -> tuple[str, str] | None:
        key = _lookup(registry.shared_mods, shared_name)
        if key is not None:
            return _MOD, key
        key = _lookup(registry.shared_collections, shared_name)
        if key is not None:
            return _COLLECTION, key
        return None

    # -----------------------------------------------------------------------
    # Settings snapshots
    # -----------------------------------------------------------------------

    def _save_mod_settings(self, mod_dir: Path, profile: str, shared_name: str) -> None:
        slot = self.snapshot_dir(profile, shared_name)
        slot.mkdir(parents=True, exist_ok=True)
        src = mod_dir / SETTINGS_FILE
        if src.is_file():
            copy_file(src, slot / SETTINGS_FILE)

    def _restore_mod_settings(self, mod_dir: Path, profile: str, shared_name: str) -> None:
        src = self.snapshot_dir(profile, shared_name) / SETTINGS_FILE
        if src.is_file() and mod_dir.is_dir():
            copy_file(src, mod_dir / SETTINGS_FILE)

    def _save_collection_settings(self, collection_dir: Path, profile: str,
                                  shared_name: str) -> None:
        slot = self.snapshot_dir(profile, shared_name)
        slot.mkdir(parents=True, exist_ok=True)
        for sub in subdirs(collection_dir):
            src = sub / SETTINGS_FILE
            if src.is_file():
                copy_file(src, slot / clean_name(sub.name) / SETTINGS_FILE)

    def _restore_collection_settings(self, collection_dir: Path, profile: str,
                                     shared_name: str) -> None:
        slot = self.snapshot_dir(profile, shared_name)
        if not slot.is_dir() or not collection_dir.is_dir():
            return
        for saved in subdirs(slot):
            src = saved / SETTINGS_FILE
            if not src.is_file():
                continue
            # The sub-mod may have been toggled since the snapshot was taken.
            for target in self._forms(collection_dir, saved.name):
                if target.is_dir():
                    copy_file(src, target / SETTINGS_FILE)
                    break

    def _save_settings(self, kind: str, content_dir: Path, profile: str, shared_name: str) -> None:
        if kind == _MOD:
            self._save_mod_settings(content_dir, profile, shared_name)
        else:
            self._save_collection_settings(content_dir, profile, shared_name)

    def _restore_settings(self, kind: str, content_dir: Path, profile: str,
                          shared_name: str) -> None:
        if kind == _MOD:
            self._restore_mod_settings(content_dir, profile, shared_name)
        else:
            self._restore_collection_settings(content_dir, profile, shared_name)

    @staticmethod
    def _entry_kind(entry) -> str:
        return _MOD if isinstance(entry, SharedModEntry) else _COLLECTION

    def save_settings_snapshot(self, profile: str, registry: ProfileRegistry) -> None:
        """Copy live settings of every shared entry of profile into its snapshot slot."""
        for entry in registry.shared_entries_for(profile):
            name = entry.shared_folder_name
            pool = self.pool_path(name)
            if pool.is_dir():
                self._save_settings(self._entry_kind(entry), pool, profile, name)

    def restore_settings_snapshot(self, profile: str, registry: ProfileRegistry) -> None:
        """Copy profile's snapshot of every shared entry back onto the pool."""
        for entry in registry.shared_entries_for(profile):
            name = entry.shared_folder_name
            pool = self.pool_path(name)
            if pool.is_dir():
                self._restore_settings(self._entry_kind(entry), pool, profile, name)

    # -----------------------------------------------------------------------
    # Share
    # -----------------------------------------------------------------------

    def _check_targets(self, target_profiles: list[str], registry: ProfileRegistry,
                       what: str) -> list[str]:
        targets: list[str] = []
        for p in target_profiles:
            name = registry.canonical_name(p) or p
            if not any(names_equal(name, t) for t in targets):
                targets.append(name)
        if len(targets) < 2:
            raise ValidationError(f"Must select at least 2 profiles to share a {what}.")
        return targets

    def _check_free(self, folder: str, registry: ProfileRegistry) -> None:
        if self._kind_of(folder, registry) is not None:
            raise FilesystemConflict(self.pool_path(folder), f"'{folder}' is already shared.")
        if self.pool_path(folder).exists():
            raise FilesystemConflict(self.pool_path(folder))

    def _find_source(self, folder: str, targets: list[str],
                     profile_dirs: dict[str, Path]) -> tuple[str, Path]:
        for p in targets:
            real = self._real_copy(profile_dirs[p], folder)
            if real is not None:
                return p, real
        raise SourceNotFound(
            f"Could not find a copy of '{folder}' in any of the selected profiles."
        )

    def _move_into_pool(self, kind: str, folder: str, targets: list[str],
                        profile_dirs: dict[str, Path], source_profile: str,
                        source_path: Path, registry: ProfileRegistry) -> Path:
        pool_path = self.pool_path(folder)
        self.pool_dir.mkdir(parents=True, exist_ok=True)

        self._save_settings(kind, source_path, source_profile, folder)
        move_dir(source_path, pool_path)
        self._log(f"Moved {source_path} → {pool_path}")

        for p in targets:
            profile_dir = profile_dirs[p]
            if not names_equal(p, source_profile):
                real = self._real_copy(profile_dir, folder)
                if real is not None:
                    self._save_settings(kind, real, p, folder)
            for path in self._forms(profile_dir, folder):
                if path.is_dir() and not is_link(path):
                    shutil.rmtree(path)
            if not self._has_link(profile_dir, folder):
                create_link(profile_dir / folder, pool_path)
                self._log(f"  Linked {p}/{folder}")

        active = registry.active_profile
        if active is not None and any(names_equal(active, p) for p in targets):
            self._restore_settings(kind, pool_path, active, folder)
        return pool_path

    def share_mod(self, mod: ModFolder, target_profiles: list[str],
                  registry: ProfileRegistry) -> SharedModEntry:
        """Move one real copy of mod into the pool and link it into every target."""
        targets = self._check_targets(target_profiles, registry, "mod")
        folder = to_enabled(mod.folder_name)
        self._check_free(folder, registry)
        profile_dirs = {p: self._require_profile_dir(p) for p in targets}
        source_profile, source_path = self._find_source(folder, targets, profile_dirs)

        pool_path = self._move_into_pool(_MOD, folder, targets, profile_dirs,
                                         source_profile, source_path, registry)

        unique_id, version = mod.unique_id, mod.version
        if not unique_id:
            try:
                basic = read_manifest_basic(pool_path)
                unique_id, version = basic.unique_id, basic.version
            except ProfileManagerError:
                pass
        entry = SharedModEntry(folder, unique_id, version, list(targets))
        registry.shared_mods[folder] = entry
        self._log(f"Shared '{folder}' across {', '.join(targets)}.")
        return entry

    def share_collection(self, collection: ModFolder, target_profiles: list[str],
                         registry: ProfileRegistry) -> SharedCollectionEntry:
        """Share a collection; every target instance must fingerprint-match the source."""
        targets = self._check_targets(target_profiles, registry, "collection")
        folder = to_enabled(collection.folder_name)
        self._check_free(folder, registry)
        profile_dirs = {p: self._require_profile_dir(p) for p in targets}
        source_profile, source_path = self._find_source(folder, targets, profile_dirs)

        source_fp = fingerprint_collection(source_path)
        for p in targets:
            if names_equal(p, source_profile):
                continue
            if self._has_link(profile_dirs[p], folder):
                raise ValidationError(f"Collection '{folder}' in '{p}' is already a link.")
            instance = self._real_copy(profile_dirs[p], folder)
            if instance is None:
                raise NotFoundError(f"Collection '{folder}' not found in profile '{p}'.")
            result = compare_identity(source_fp, fingerprint_collection(instance))
            if not result.matches:
                raise IdentityMismatch(
                    f"Collection in '{p}' differs from source:", result.differences
                )

        self._move_into_pool(_COLLECTION, folder, targets, profile_dirs,
                             source_profile, source_path, registry)

        for p in targets:
            registry.add_profile_collection(p, folder)
        entry = SharedCollectionEntry(folder, list(targets), source_fp)
        registry.shared_collections[folder] = entry
        self._log(f"Shared collection '{folder}' across {', '.join(targets)}.")
        return entry

    # -----------------------------------------------------------------------
    # Unshare / dissolve
    # -----------------------------------------------------------------------

    def _dissolve(self, kind: str, shared_name: str, registry: ProfileRegistry) -> None:
        entries = self._registry_for(kind, registry)
        if shared_name not in entries:
            return
        best_effort_remove(self.pool_path(shared_name), self._log)
        store = self.locations.config_store_dir
        for profile_store in subdirs(store):
            slot = profile_store / shared_name
            if slot.exists():
                best_effort_remove(slot, self._log)
        entries.pop(shared_name)
        self._log(f"Dissolved shared entry '{shared_name}'.")

    def _unshare(self, kind: str, shared_name: str, profile: str,
                 registry: ProfileRegistry) -> None:
        entries = self._registry_for(kind, registry)
        key = _lookup(entries, shared_name)
        if key is None:
            self._log(f"'{shared_name}' is not shared, nothing to do.")
            return
        entry = entries[key]
        if not entry.has_profile(profile):
            raise NotFoundError(f"Profile '{profile}' does not use shared '{key}'.")

        pool_path = self.pool_path(key)
        profile_dir = self.locations.find_profile_dir(profile)
        if profile_dir is not None:
            if registry.is_active(profile) and pool_path.is_dir():
                # Live settings of the active profile are on the pool copy.
                self._save_settings(kind, pool_path, profile, key)
            was_disabled = self._remove_links(profile_dir, key)
            if pool_path.is_dir():
                dest = profile_dir / (to_disabled(key) if was_disabled else key)
                copy_dir(pool_path, dest)
                self._restore_settings(kind, dest, profile, key)
                self._log(f"Unshared '{key}' for {profile} (local copy restored).")
            best_effort_remove(self.snapshot_dir(profile, key), self._log)

        entry.remove_profile(profile)
        if len(entry.profile_names) <= 1:
            if entry.profile_names:
                self._unshare(kind, key, entry.profile_names[0], registry)
            self._dissolve(kind, key, registry)

    def unshare_mod(self, shared_name: str, profile: str, registry: ProfileRegistry) -> None:
        self._unshare(_MOD, shared_name, profile, registry)

    def unshare_collection(self, shared_name: str, profile: str,
                           registry: ProfileRegistry) -> None:
        self._unshare(_COLLECTION, shared_name, profile, registry)

    def unshare_all(self, shared_name: str, registry: ProfileRegistry) -> None:
        """Give every consumer its own copy back and remove the shared entry."""
        found = self._kind_of(shared_name, registry)
        if found is None:
            return
        kind, key = found
        entries = self._registry_for(kind, registry)
        for profile in list(entries[key].profile_names):
            if key not in entries:
                break
            self._unshare(kind, key, profile, registry)
        if key in entries:
            self._dissolve(kind, key, registry)

    # -----------------------------------------------------------------------
    # Validation / repair
    # -----------------------------------------------------------------------

    def _all_entries(self, registry: ProfileRegistry):
        for name, entry in registry.shared_mods.items():
            yield _MOD, name, entry
        for name, entry in registry.shared_collections.items():
            yield _COLLECTION, name, entry

    def validate_pool(self, registry: ProfileRegistry) -> list[str]:
        """Names of shared entries whose pool folder or links are broken."""
        broken: list[str] = []
        for _kind, name, entry in self._all_entries(registry):
            pool_path = self.pool_path(name)
            if not pool_path.is_dir():
                broken.append(name)
                continue
            for profile in entry.profile_names:
                profile_dir = self.locations.find_profile_dir(profile)
                if profile_dir is None or not any(
                    points_to(p, pool_path) for p in self._forms(profile_dir, name)
                ):
                    broken.append(name)
                    break
        return list(dict.fromkeys(broken))

    def validate_collections(self, registry: ProfileRegistry) -> dict[str, list[str]]:
        """Shared collections whose pool content drifted from the share-time fingerprint."""
        drifted: dict[str, list[str]] = {}
        for name, entry in registry.shared_collections.items():
            pool_path = self.pool_path(name)
            if not pool_path.is_dir():
                continue
            result = compare_identity(entry.fingerprint, fingerprint_collection(pool_path))
            if not result.matches:
                drifted[name] = result.differences
        return drifted

    def repair_broken(self, shared_name: str, registry: ProfileRegistry) -> None:
        found = self._kind_of(shared_name, registry)
        if found is None:
            return
        kind, key = found
        entries = self._registry_for(kind, registry)
        entry = entries[key]
        pool_path = self.pool_path(key)

        if not pool_path.is_dir():
            for profile in entry.profile_names:
                profile_dir = self.locations.find_profile_dir(profile)
                if profile_dir is None:
                    continue
                for path in self._forms(profile_dir, key):
                    if is_link(path) and not path.exists():
                        best_effort_remove(path, self._log)
            self._dissolve(kind, key, registry)
            self._log(f"Pool folder for '{key}' is gone, removed registry entry.")
            return

        for profile in list(entry.profile_names):
            profile_dir = self.locations.find_profile_dir(profile)
            if profile_dir is None:
                entry.remove_profile(profile)
                self._log(f"Repair: profile '{profile}' not found, dropped from '{key}'.")
                continue

            enabled, disabled = self._forms(profile_dir, key)
            if points_to(enabled, pool_path) or points_to(disabled, pool_path):
                continue
            link_path = disabled if is_link(disabled) else enabled
            for path in (enabled, disabled):
                if is_link(path):
                    remove_link(path)
            if enabled.exists() or disabled.exists():
                entry.remove_profile(profile)
                best_effort_remove(self.snapshot_dir(profile, key), self._log)
                self._log(f"Repair: '{profile}' holds its own copy of '{key}', dropped.")
                continue
            create_link(link_path, pool_path)
            self._log(f"Repair: relinked {profile}/{link_path.name}")

        if len(entry.profile_names) < 2:
            self.unshare_all(key, registry)

    # -----------------------------------------------------------------------
    # Profile lifecycle hooks
    # -----------------------------------------------------------------------

    def detach_profile(self, shared_name: str, profile: str, registry: ProfileRegistry) -> None:
        """Drop profile as a consumer without giving it a copy; its link is removed."""
        found = self._kind_of(shared_name, registry)
        if found is None:
            return
        kind, key = found
        entry = self._registry_for(kind, registry)[key]
        if not entry.has_profile(profile):
            return
        profile_dir = self.locations.find_profile_dir(profile)
        if profile_dir is not None:
            self._remove_links(profile_dir, key)
        entry.remove_profile(profile)
        best_effort_remove(self.snapshot_dir(profile, key), self._log)
        if len(entry.profile_names) <= 1:
            if entry.profile_names:
                self._unshare(kind, key, entry.profile_names[0], registry)
            self._dissolve(kind, key, registry)

    def cleanup_profile(self, profile: str, registry: ProfileRegistry) -> None:
        """Detach profile from every shared entry (it is being deleted or converted)."""
        for entry in registry.shared_entries_for(profile):
            self.detach_profile(entry.shared_folder_name, profile, registry)
        store = self.snapshot_dir(profile)
        if store.exists():
            best_effort_remove(store, self._log)

    def rename_profile_references(self, old: str, new: str,
                                  registry: ProfileRegistry) -> None:
        old_store, new_store = self.snapshot_dir(old), self.snapshot_dir(new)
        if old_store.is_dir() and old_store != new_store:
            if new_store.exists():
                self._log(f"  WARN: snapshot folder for '{new}' already exists; "
                          f"keeping {old_store.name}/")
            else:
                move_dir(old_store, new_store)
        registry.rename_in_shared(old, new)

    # -----------------------------------------------------------------------
    # Duplicate detection (read-only)
    # -----------------------------------------------------------------------

    def detect_duplicate_mods(self, profile_names: list[str],
                              registry: ProfileRegistry | None = None
                              ) -> dict[str, list[tuple[str, ModFolder]]]:
        """Group real (non-linked) mods across profiles by UniqueID."""
        groups: dict[str, list[tuple[str, ModFolder]]] = {}
        keys: dict[str, str] = {}
        for profile in profile_names:
            profile_dir = self.locations.find_profile_dir(profile)
            if profile_dir is None:
                continue
            skip = set()
            if registry is not None:
                skip = {to_enabled(c).casefold() for c in registry.collections_for(profile)}
            for d in subdirs(profile_dir):
                if is_link(d) or clean_name(d.name).casefold() in skip:
                    continue
                if not has_manifest(d):
                    continue
                mod = read_mod_folder(d)
                if mod is None or not mod.unique_id:
                    continue
                key = keys.setdefault(mod.unique_id.casefold(), mod.unique_id)
                groups.setdefault(key, []).append((profile, mod))
        return {uid: found for uid, found in groups.items() if len(found) >= 2}

    def detect_duplicate_collections(self, registry: ProfileRegistry
                                     ) -> list[DuplicateCollectionGroup]:
        """Collections owned by 2+ profiles, flagged when any instance differs.

        Profiles are visited in case-folded name order; the first instance is
        the reference every other instance is compared against.
        """
        by_name: dict[str, DuplicateCollectionGroup] = {}
        for profile in sorted(registry.profile_names, key=str.casefold):
            profile_dir = self.locations.find_profile_dir(profile)
            if profile_dir is None:
                continue
            for cname in registry.collections_for(profile):
                path = profile_dir / cname
                if is_disabled(cname) or is_link(path) or not path.is_dir():
                    continue
                group = by_name.setdefault(
                    cname.casefold(), DuplicateCollectionGroup(collection_name=cname)
                )
                group.instances.append(
                    DuplicateCollectionInstance(profile, path, fingerprint_collection(path))
                )

        result: list[DuplicateCollectionGroup] = []
        for key in sorted(by_name):
            group = by_name[key]
            if len(group.instances) < 2:
                continue
            first = group.instances[0].fingerprint
            group.has_identity_mismatch = any(
                not compare_identity(first, other.fingerprint).matches
                for other in group.instances[1:]
            )
            result.append(group)
        return result
