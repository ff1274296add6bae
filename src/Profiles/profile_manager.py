"""
profile_manager.py
User-level profile workflows built on ProfileStateMachine and SharedPoolManager.

Each workflow mutates the registry it was given and then persists it (when a
registry_path was supplied), so callers never see the on-disk layout and the
registry disagree for longer than one call.

Vanilla profiles load no mods at all: entering one disables every enabled
common mod under Mods/ and remembers which were on; leaving it turns those
back on.  Shared-mod settings are not saved or restored for vanilla profiles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from Profiles.layout_detect import (
    DetectionResult,
    DetectionScenario,
    detect_common_collections,
    detect_existing_layout,
    detect_profile_collections,
    import_detected_profiles,
)
from Profiles.mod_folders import ModFolder, common_mod_folders, delete_mod, duplicate_mod, move_mod
from Profiles.profile_state import (
    ProfileIssue,
    ProfileLocations,
    ProfileState,
    ProfileStateMachine,
)
from Profiles.registry import ProfileRegistry, SharedModEntry
from Profiles.registry_store import save_registry
from Profiles.shared_pool import SharedPoolManager
from Utils.dir_links import is_link
from Utils.errors import FilesystemConflict, NotFoundError, ProfileManagerError, ValidationError
from Utils.folder_names import (
    is_disabled,
    names_equal,
    to_disabled,
    to_enabled,
    validate_name,
)
from Utils.fs_ops import move_dir, remove_dir, subdirs

VANILLA_PROFILE_NAME = "Vanilla"


@dataclass
class StartupReport:
    migrated: int = 0
    issues: list[ProfileIssue] = field(default_factory=list)
    repaired: list[str] = field(default_factory=list)
    drifted_collections: dict[str, list[str]] = field(default_factory=dict)

    @property
    def clean(self) -> bool:
        return not (self.issues or self.repaired or self.drifted_collections)


class ProfileManager:
    def __init__(self, locations: ProfileLocations, registry: ProfileRegistry,
                 registry_path: Path | None = None, log_fn=None):
        self.locations = locations
        self.registry = registry
        self.registry_path = Path(registry_path) if registry_path else None
        self._log = log_fn or (lambda _: None)
        self.state = ProfileStateMachine(locations, log_fn=self._log)
        self.pool = SharedPoolManager(locations, log_fn=self._log)

    def _save(self) -> None:
        if self.registry_path is not None:
            save_registry(self.registry, self.registry_path)

    def _require(self, name: str) -> str:
        canonical = self.registry.canonical_name(name)
        if canonical is None:
            raise NotFoundError(f"Profile '{name}' does not exist.")
        return canonical

    # -----------------------------------------------------------------------
    # Create / delete / rename
    # -----------------------------------------------------------------------

    def create_profile(self, name: str, vanilla: bool = False) -> str:
        error = validate_name(name, "Profile name")
        if error:
            raise ValidationError(error)
        name = name.strip()
        if self.registry.has_profile(name):
            raise ValidationError("A profile with that name already exists.")

        self.state.create(name)
        self.registry.add_profile(name, vanilla=vanilla)
        if len(self.registry.profile_names) == 1:
            self.state.switch_profile(None, name)
            self.registry.active_profile = name
        self._save()
        self._log(f"Created profile '{name}'.")
        return name

    def delete_profile(self, name: str) -> None:
        name = self._require(name)
        if self.registry.is_active(name):
            if self.registry.is_vanilla(name):
                self._restore_common_mods()
            self.state.deactivate(name)
            self.registry.active_profile = None

        self.pool.cleanup_profile(name, self.registry)
        self.state.delete(name)
        self.registry.remove_profile(name)

        if self.registry.active_profile is None and self.registry.profile_names:
            new_active = self.registry.profile_names[0]
            self._enter(None, new_active)
        self._save()
        self._log(f"Deleted profile '{name}'.")

    def rename_profile(self, old: str, new: str) -> None:
        old = self._require(old)
        error = validate_name(new, "Profile name")
        if error:
            raise ValidationError(error)
        new = new.strip()
        if new == old:
            return
        if not names_equal(old, new) and self.registry.has_profile(new):
            raise ValidationError("A profile with that name already exists.")

        self.state.rename(old, new)
        self.pool.rename_profile_references(old, new, self.registry)
        self.registry.rename_profile(old, new)
        self._save()
        self._log(f"Renamed '{old}' to '{new}'.")

    # -----------------------------------------------------------------------
    # Switching
    # -----------------------------------------------------------------------

    def _enabled_common_folders(self) -> list[str]:
        return [
            d.name for d in common_mod_folders(self.locations.mods_root,
                                               self.registry.profile_names)
            if not is_disabled(d.name)
        ]

    def _disable_common_mods(self) -> None:
        root = self.locations.mods_root
        enabled = self._enabled_common_folders()
        self.registry.saved_common_enabled_folders = enabled
        for folder in enabled:
            hidden = root / to_disabled(folder)
            if not hidden.exists():
                move_dir(root / folder, hidden)
        self._log(f"Disabled {len(enabled)} common mod(s) for vanilla profile.")

    def _restore_common_mods(self) -> None:
        root = self.locations.mods_root
        for folder in self.registry.saved_common_enabled_folders:
            hidden = root / to_disabled(folder)
            visible = root / to_enabled(folder)
            if hidden.is_dir() and not visible.exists():
                move_dir(hidden, visible)
        self.registry.saved_common_enabled_folders = []

    def _enter(self, from_name: str | None, to_name: str) -> None:
        from_vanilla = self.registry.is_vanilla(from_name)
        to_vanilla = self.registry.is_vanilla(to_name)

        if from_name is not None and not from_vanilla:
            self.pool.save_settings_snapshot(from_name, self.registry)
        self.state.switch_profile(from_name, to_name)
        if not to_vanilla:
            self.pool.restore_settings_snapshot(to_name, self.registry)

        if to_vanilla and not from_vanilla:
            self._disable_common_mods()
        elif from_vanilla and not to_vanilla:
            self._restore_common_mods()
        self.registry.active_profile = to_name

    def switch_to(self, name: str) -> None:
        name = self._require(name)
        current = self.registry.active_profile
        if current is not None and names_equal(current, name):
            return
        self._enter(current, name)
        self._save()
        self._log(f"Active profile: {name}")

    # -----------------------------------------------------------------------
    # Mods and collections
    # -----------------------------------------------------------------------

    def _mods_dir(self, profile: str | None) -> Path:
        """Folder a mod lives in: the profile's folder, or Mods/ for None."""
        if profile is None:
            return self.locations.mods_root
        return self.state.require_profile_dir(self._require(profile))

    def _register_collection(self, name: str, profile: str | None) -> None:
        if profile is None:
            self.registry.add_common_collection(name)
        else:
            self.registry.add_profile_collection(profile, name)

    def _unregister_collection(self, name: str, profile: str | None) -> None:
        if profile is None:
            self.registry.remove_common_collection(name)
        else:
            self.registry.remove_profile_collection(profile, name)

    def create_collection(self, name: str, profile: str | None = None) -> Path:
        """Create an empty collection folder in profile (or in Mods/ when None)."""
        error = validate_name(name, "Collection name")
        if error:
            raise ValidationError(error)
        name = name.strip()
        if profile is not None:
            profile = self._require(profile)
        existing = (self.registry.collections_for(profile) if profile is not None
                    else self.registry.common_collection_names)
        if any(names_equal(n, name) for n in existing):
            raise ValidationError("A collection with that name already exists.")

        path = self._mods_dir(profile) / name
        path.mkdir(parents=True, exist_ok=True)
        self._register_collection(name, profile)
        self._save()
        self._log(f"Collection '{name}' created.")
        return path

    def delete_mod(self, mod: ModFolder, profile: str | None = None) -> None:
        """Delete a mod from profile (or Mods/).  A shared mod only loses its link."""
        if mod.is_shared and profile is not None:
            self.pool.detach_profile(mod.shared_folder_name, self._require(profile),
                                     self.registry)
        if is_link(mod.path) or mod.path.exists():
            delete_mod(mod)
        if mod.is_collection:
            self._unregister_collection(mod.clean_name, profile)
        self._save()
        self._log(f"Deleted '{mod.clean_name}'.")

    def move_mod(self, mod: ModFolder, source: str | None, target: str | None) -> None:
        """Move a mod between profiles; None stands for the common Mods/ root."""
        move_mod(mod, self._mods_dir(target))
        mod.is_common = target is None
        if mod.is_collection:
            self._unregister_collection(mod.clean_name, source)
            self._register_collection(mod.clean_name,
                                      self._require(target) if target is not None else None)
        self._save()
        self._log(f"Moved '{mod.clean_name}' to {target or 'common mods'}.")

    def duplicate_mod(self, mod: ModFolder, target: str) -> Path:
        """Copy a mod into another profile."""
        target = self._require(target)
        dest = duplicate_mod(mod, self._mods_dir(target))
        if mod.is_collection:
            self.registry.add_profile_collection(target, mod.clean_name)
        self._save()
        self._log(f"Duplicated '{mod.clean_name}' to '{target}'.")
        return dest

    def convert_collection_to_profile(self, collection: ModFolder, name: str,
                                      owner: str | None = None) -> str:
        """Turn a collection into a new (inactive) profile holding its sub-mods.

        owner is the profile the collection sits in, None for a common one.
        """
        error = validate_name(name, "Profile name")
        if error:
            raise ValidationError(error)
        name = name.strip()
        if self.registry.has_profile(name):
            raise ValidationError("A profile with that name already exists.")
        if collection.is_shared:
            raise ValidationError(
                f"Collection '{collection.clean_name}' is shared; unshare it first."
            )
        if owner is not None:
            owner = self._require(owner)

        self.state.create(name)
        profile_dir = self.locations.inactive_mod_dir(name)
        for item in sorted(collection.path.iterdir()):
            move_dir(item, profile_dir / item.name)
        collection.path.rmdir()

        self._unregister_collection(collection.clean_name, owner)
        self.registry.add_profile(name)
        if self.registry.active_profile is None:
            self._enter(None, name)
        self._save()
        self._log(f"Converted collection '{collection.clean_name}' to profile '{name}'.")
        return name

    def _flatten_collections(self, profile: str, profile_dir: Path) -> None:
        """Move every sub-mod of the profile's collections up into profile_dir."""
        found: list[Path] = []
        for collection in self.registry.collections_for(profile):
            for path in (profile_dir / to_enabled(collection),
                         profile_dir / to_disabled(collection)):
                if path.is_dir() and not is_link(path):
                    found.append(path)
                    break
        for path in found:
            for item in sorted(path.iterdir()):
                move_dir(item, profile_dir / item.name)
            remove_dir(path)

    def _check_flatten(self, profile: str, profile_dir: Path) -> None:
        taken = {p.name.casefold() for p in subdirs(profile_dir)}
        for collection in self.registry.collections_for(profile):
            for path in (profile_dir / to_enabled(collection),
                         profile_dir / to_disabled(collection)):
                if not path.is_dir():
                    continue
                for item in subdirs(path):
                    if item.name.casefold() in taken:
                        raise FilesystemConflict(
                            profile_dir / item.name,
                            f"Cannot flatten collection '{collection}': "
                            f"'{item.name}' already exists in the profile.",
                        )
                    taken.add(item.name.casefold())
                break

    def convert_profile_to_collection(self, profile: str, collection_name: str,
                                      target: str | None = None) -> Path:
        """Fold a profile into a collection in target (or Mods/ when None).

        Shared mods are unshared first so the collection holds real copies.
        The profile's saves are deleted.
        """
        profile = self._require(profile)
        if len(self.registry.profile_names) <= 1:
            raise ValidationError("Cannot convert the only remaining profile to a collection.")
        error = validate_name(collection_name, "Collection name")
        if error:
            raise ValidationError(error)
        collection_name = collection_name.strip()

        if target is None:
            if any(names_equal(n, collection_name)
                   for n in self.registry.common_collection_names):
                raise ValidationError("A common collection with that name already exists.")
        else:
            target = self._require(target)
            if names_equal(target, profile):
                raise ValidationError(
                    "Cannot place the collection inside the profile being converted."
                )
            if any(names_equal(n, collection_name)
                   for n in self.registry.collections_for(target)):
                raise ValidationError(
                    "A collection with that name already exists in the target profile."
                )
        collection_dir = self._mods_dir(target) / collection_name
        if collection_dir.exists() or is_link(collection_dir):
            raise FilesystemConflict(collection_dir)
        self._check_flatten(profile, self.state.require_profile_dir(profile))

        if self.registry.is_active(profile):
            if self.registry.is_vanilla(profile):
                self._restore_common_mods()
            else:
                self.pool.save_settings_snapshot(profile, self.registry)
            self.state.deactivate(profile)
            self.registry.active_profile = None

        for entry in self.registry.shared_entries_for(profile):
            if isinstance(entry, SharedModEntry):
                self.pool.unshare_mod(entry.shared_folder_name, profile, self.registry)
            else:
                self.pool.unshare_collection(entry.shared_folder_name, profile, self.registry)
        self.pool.cleanup_profile(profile, self.registry)

        profile_dir = self.state.require_profile_dir(profile)
        self._flatten_collections(profile, profile_dir)
        move_dir(profile_dir, collection_dir)
        self.state.delete(profile)
        self.registry.remove_profile(profile)
        self._register_collection(collection_name, target)

        if self.registry.active_profile is None and self.registry.profile_names:
            self._enter(None, self.registry.profile_names[0])
        self._save()
        self._log(f"Converted profile '{profile}' to collection '{collection_name}'.")
        return collection_dir

    # -----------------------------------------------------------------------
    # Startup
    # -----------------------------------------------------------------------

    def ensure_vanilla_profile(self) -> None:
        if self.registry.has_profile(VANILLA_PROFILE_NAME):
            return
        try:
            self.state.create(VANILLA_PROFILE_NAME)
        except ProfileManagerError as exc:
            self._log(f"  WARN: could not create the {VANILLA_PROFILE_NAME} profile: {exc}")
            return
        self.registry.add_profile(VANILLA_PROFILE_NAME, vanilla=True, first=True)
        self._save()

    def startup_check(self) -> StartupReport:
        """Fix naming drift and broken shared links left by crashes or outside edits."""
        report = StartupReport()
        names = list(self.registry.profile_names)
        report.migrated = self.state.migrate_legacy_folders(names)

        report.issues = self.state.verify(names)
        self.state.recreate_missing(report.issues)
        for issue in report.issues:
            self._log(f"  WARN: profile {issue}")

        for shared_name in self.pool.validate_pool(self.registry):
            self._log(f"Repairing shared entry '{shared_name}'")
            self.pool.repair_broken(shared_name, self.registry)
            report.repaired.append(shared_name)

        report.drifted_collections = self.pool.validate_collections(self.registry)
        for name, differences in report.drifted_collections.items():
            self._log(f"  WARN: shared collection '{name}' changed since it was shared:")
            for line in differences:
                self._log(f"    {line}")

        self._save()
        return report

    def bootstrap(self) -> DetectionResult:
        """First run: adopt whatever profiles already exist under Mods/."""
        result = detect_existing_layout(self.locations.mods_root, self.locations.saves_root)
        self._log(f"Layout detection: {result.scenario.name}")

        if result.scenario in (DetectionScenario.PROFILES_DETECTED,
                               DetectionScenario.PROFILES_AND_SAVES):
            self.state.migrate_legacy_folders(result.detected_profile_names)
            import_detected_profiles(self.registry, result.detected_profile_names,
                                     self.locations)

        self.ensure_vanilla_profile()
        detect_profile_collections(self.registry, self.locations)
        detect_common_collections(self.registry, self.locations.mods_root)

        if self.registry.active_profile is None and self.registry.profile_names:
            self.registry.active_profile = self.registry.profile_names[0]
        active = self.registry.active_profile
        if active is not None and self.state.state_of(active) is not ProfileState.ACTIVE:
            self.state.activate(active)

        self._save()
        return result
