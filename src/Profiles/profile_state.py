"""
profile_state.py
Profile activation as a two-state machine over directories.

Each profile owns a mod folder and a save folder.  Exactly one profile is
ACTIVE (unprefixed folders, the ones SMAPI and the game read); every other
profile is INACTIVE (dot-prefixed folders the game ignores):

                   Mods/                         saves/
  ACTIVE     [PROFILE] Farm1/                   Saves/
  INACTIVE   .[PROFILE] Farm1/                  .Farm1Saves/

The active save folder is never profile-named, so whichever profile is
active owns Saves/.

Transitions are plain directory moves.  deactivate() and activate() are each
idempotent, switch_profile() is deactivate(from) followed by activate(to).
A destination that already exists raises FilesystemConflict; there is no
rollback of steps that already happened within the same call.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path

from Utils.errors import FilesystemConflict, NotFoundError
from Utils.folder_names import (
    ACTIVE_SAVES_FOLDER,
    inactive_saves_folder_name,
    profile_folder_name,
    to_disabled,
)
from Utils.fs_ops import best_effort_remove, move_dir

SHARED_POOL_FOLDER = ".[SHARED]"
CONFIG_STORE_FOLDER = ".configs"


class ProfileState(Enum):
    ACTIVE   = auto()
    INACTIVE = auto()


class ProfileLocations:
    """Resolves every on-disk path the profile core uses."""

    def __init__(self, mods_root: Path, saves_root: Path):
        # Link targets are written verbatim, so roots must be absolute.
        self.mods_root = Path(mods_root).resolve()
        self.saves_root = Path(saves_root).resolve()

    def mod_dir(self, name: str, state: ProfileState) -> Path:
        folder = profile_folder_name(name)
        if state is ProfileState.INACTIVE:
            folder = to_disabled(folder)
        return self.mods_root / folder

    def active_mod_dir(self, name: str) -> Path:
        return self.mod_dir(name, ProfileState.ACTIVE)

    def inactive_mod_dir(self, name: str) -> Path:
        return self.mod_dir(name, ProfileState.INACTIVE)

    @property
    def active_saves_dir(self) -> Path:
        return self.saves_root / ACTIVE_SAVES_FOLDER

    def inactive_saves_dir(self, name: str) -> Path:
        return self.saves_root / inactive_saves_folder_name(name)

    @property
    def pool_dir(self) -> Path:
        return self.mods_root / SHARED_POOL_FOLDER

    @property
    def config_store_dir(self) -> Path:
        return self.pool_dir / CONFIG_STORE_FOLDER

    def find_profile_dir(self, name: str) -> Path | None:
        """Whichever form of the profile's mod folder exists, active first."""
        for state in (ProfileState.ACTIVE, ProfileState.INACTIVE):
            path = self.mod_dir(name, state)
            if path.is_dir():
                return path
        return None


@dataclass
class ProfileIssue:
    profile: str
    problem: str

    MISSING      = "missing"        # neither mod folder form exists
    BOTH_FORMS   = "both_forms"     # active and inactive mod folder both exist
    MULTI_ACTIVE = "multi_active"   # more than one profile is in active form

    def __str__(self) -> str:
        return f"{self.profile}: {self.problem}"


class ProfileStateMachine:
    def __init__(self, locations: ProfileLocations, log_fn=None):
        self.locations = locations
        self._log = log_fn or (lambda _: None)

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def state_of(self, name: str) -> ProfileState | None:
        if self.locations.active_mod_dir(name).is_dir():
            return ProfileState.ACTIVE
        if self.locations.inactive_mod_dir(name).is_dir():
            return ProfileState.INACTIVE
        return None

    def find_profile_dir(self, name: str) -> Path | None:
        return self.locations.find_profile_dir(name)

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def create(self, name: str) -> None:
        """Allocate the inactive mod and save folders for a new profile."""
        loc = self.locations
        if loc.active_mod_dir(name).exists():
            raise FilesystemConflict(loc.active_mod_dir(name))
        loc.inactive_mod_dir(name).mkdir(parents=True, exist_ok=True)
        loc.inactive_saves_dir(name).mkdir(parents=True, exist_ok=True)
        self._log(f"Created profile folders for '{name}'.")

    def delete(self, name: str) -> None:
        """Remove every folder named after the profile.

        The shared Saves/ folder is left alone; it belongs to whichever
        profile is active.
        """
        loc = self.locations
        for path in (loc.active_mod_dir(name), loc.inactive_mod_dir(name),
                     loc.inactive_saves_dir(name)):
            if path.is_dir():
                shutil.rmtree(path)
                self._log(f"Deleted {path}")

    def rename(self, old: str, new: str) -> None:
        loc = self.locations
        if loc.active_mod_dir(old).is_dir():
            move_dir(loc.active_mod_dir(old), loc.active_mod_dir(new))
        elif loc.inactive_mod_dir(old).is_dir():
            move_dir(loc.inactive_mod_dir(old), loc.inactive_mod_dir(new))

        # Active saves are not profile-named, only the inactive slot moves.
        if loc.inactive_saves_dir(old).is_dir():
            move_dir(loc.inactive_saves_dir(old), loc.inactive_saves_dir(new))
        self._log(f"Renamed profile folders '{old}' → '{new}'.")

    # -----------------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------------

    def deactivate(self, name: str) -> None:
        """ACTIVE → INACTIVE.  A no-op when already inactive."""
        loc = self.locations
        active_saves = loc.active_saves_dir
        slot = loc.inactive_saves_dir(name)
        if active_saves.is_dir():
            if slot.exists():
                shutil.rmtree(slot)
            move_dir(active_saves, slot)
            self._log(f"  Saves/ → {slot.name}/")

        active_mods = loc.active_mod_dir(name)
        inactive_mods = loc.inactive_mod_dir(name)
        if active_mods.is_dir():
            if inactive_mods.exists():
                raise FilesystemConflict(
                    inactive_mods,
                    f"Profile '{name}' has both an active and an inactive mod folder.",
                )
            move_dir(active_mods, inactive_mods)
            self._log(f"  {active_mods.name}/ → {inactive_mods.name}/")

    def activate(self, name: str) -> None:
        """INACTIVE → ACTIVE.  A no-op when already active."""
        loc = self.locations
        active_saves = loc.active_saves_dir
        slot = loc.inactive_saves_dir(name)
        if slot.is_dir():
            if not active_saves.exists():
                move_dir(slot, active_saves)
                self._log(f"  {slot.name}/ → Saves/")
            elif not any(slot.iterdir()):
                # First activation over pre-existing saves: keep them.
                best_effort_remove(slot, self._log)
            else:
                raise FilesystemConflict(
                    active_saves,
                    f"Cannot activate '{name}': Saves/ is occupied and "
                    f"{slot.name}/ is not empty.",
                )
        elif not active_saves.exists():
            active_saves.mkdir(parents=True, exist_ok=True)

        active_mods = loc.active_mod_dir(name)
        inactive_mods = loc.inactive_mod_dir(name)
        if inactive_mods.is_dir():
            if active_mods.exists():
                raise FilesystemConflict(
                    active_mods,
                    f"Profile '{name}' has both an active and an inactive mod folder.",
                )
            move_dir(inactive_mods, active_mods)
            self._log(f"  {inactive_mods.name}/ → {active_mods.name}/")
        elif not active_mods.exists():
            active_mods.mkdir(parents=True, exist_ok=True)

    def switch_profile(self, from_name: str | None, to_name: str) -> None:
        """Deactivate from_name (if any) and activate to_name."""
        self._log(f"Switching profile: {from_name or '(none)'} → {to_name}")
        if from_name is not None and from_name.casefold() != to_name.casefold():
            self.deactivate(from_name)
        self.activate(to_name)

    # -----------------------------------------------------------------------
    # Migration / recovery
    # -----------------------------------------------------------------------

    def migrate_legacy_folders(self, names: list[str]) -> int:
        """Move 'Name' / '.Name' folders to the '[PROFILE] Name' convention.

        Never overwrites; returns the number of folders moved.
        """
        root = self.locations.mods_root
        if not root.is_dir():
            return 0
        moved = 0
        for name in names:
            pairs = (
                (root / name, self.locations.active_mod_dir(name)),
                (root / to_disabled(name), self.locations.inactive_mod_dir(name)),
            )
            for old, new in pairs:
                if old.is_dir() and not new.exists():
                    move_dir(old, new)
                    self._log(f"Migrated {old.name}/ → {new.name}/")
                    moved += 1
        return moved

    def verify(self, names: list[str]) -> list[ProfileIssue]:
        """Report profiles left half-moved by a crash or outside edits."""
        issues: list[ProfileIssue] = []
        active: list[str] = []
        for name in names:
            has_active = self.locations.active_mod_dir(name).is_dir()
            has_inactive = self.locations.inactive_mod_dir(name).is_dir()
            if has_active and has_inactive:
                issues.append(ProfileIssue(name, ProfileIssue.BOTH_FORMS))
            elif not has_active and not has_inactive:
                issues.append(ProfileIssue(name, ProfileIssue.MISSING))
            if has_active:
                active.append(name)
        if len(active) > 1:
            issues.extend(ProfileIssue(n, ProfileIssue.MULTI_ACTIVE) for n in active)
        return issues

    def recreate_missing(self, issues: list[ProfileIssue]) -> None:
        """Give profiles with no mod folder at all an empty inactive one."""
        for issue in issues:
            if issue.problem != ProfileIssue.MISSING:
                continue
            path = self.locations.inactive_mod_dir(issue.profile)
            path.mkdir(parents=True, exist_ok=True)
            self._log(f"Recreated missing mod folder for '{issue.profile}'.")

    def require_profile_dir(self, name: str) -> Path:
        path = self.find_profile_dir(name)
        if path is None:
            raise NotFoundError(f"Profile '{name}' directory not found.")
        return path
