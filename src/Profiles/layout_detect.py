"""
layout_detect.py
First-run inspection of an unmanaged Mods/ folder.

Classifies what is already on disk so the registry can be bootstrapped:

  manifest.json directly inside          → loose mod (or a disabled mod if dot-prefixed)
  no manifest, mods up to 2 levels below → likely profile
  Saves/ + .<Name>Saves/ folders         → saves that can be matched to profiles

Nothing here moves or deletes anything.  The only mutations are the
import_*/detect_* helpers at the bottom, and those touch the registry only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path

from Profiles.profile_state import SHARED_POOL_FOLDER, ProfileLocations
from Profiles.registry import ProfileRegistry
from Utils.folder_names import (
    ACTIVE_SAVES_FOLDER,
    clean_name,
    is_disabled,
    names_equal,
    parse_profile_name,
    parse_saves_folder_name,
    profile_folder_name,
)
from Utils.fs_ops import subdirs
from Utils.manifest import has_manifest, is_collection_folder

_MAX_DEPTH = 2


class DetectionScenario(Enum):
    NO_MODS_FOLDER         = auto()
    MODS_EXIST_NO_PROFILES = auto()
    PROFILES_DETECTED      = auto()
    PROFILES_AND_SAVES     = auto()


@dataclass
class DetectedFolder:
    folder_name: str
    path: Path
    is_likely_profile: bool = False
    is_likely_disabled_mod: bool = False
    sub_mod_count: int = 0
    is_dot_prefixed: bool = False

    @property
    def profile_name(self) -> str:
        return parse_profile_name(self.folder_name) or clean_name(self.folder_name)


@dataclass
class DetectionResult:
    scenario: DetectionScenario = DetectionScenario.NO_MODS_FOLDER
    dot_prefixed_folders: list[DetectedFolder] = field(default_factory=list)
    multi_mod_folders: list[DetectedFolder] = field(default_factory=list)
    detected_profile_names: list[str] = field(default_factory=list)
    save_folder_names: list[str] = field(default_factory=list)
    has_loose_mods_at_root: bool = False


def count_mods(path: Path, max_depth: int = _MAX_DEPTH) -> int:
    """Folders with a manifest below path, looking at most max_depth levels down."""
    if max_depth <= 0:
        return 0
    count = 0
    for sub in subdirs(path):
        if has_manifest(sub):
            count += 1
        else:
            count += count_mods(sub, max_depth - 1)
    return count


def _analyse_dot_prefixed(path: Path) -> DetectedFolder:
    detected = DetectedFolder(folder_name=path.name, path=path, is_dot_prefixed=True)
    if has_manifest(path):
        detected.is_likely_disabled_mod = True
        return detected
    detected.sub_mod_count = count_mods(path)
    detected.is_likely_profile = detected.sub_mod_count > 0
    return detected


def detect_existing_layout(mods_root: Path, saves_root: Path | None) -> DetectionResult:
    result = DetectionResult()
    mods_root = Path(mods_root)
    if not mods_root.is_dir():
        return result

    all_dirs = subdirs(mods_root)
    for d in all_dirs:
        if names_equal(d.name, SHARED_POOL_FOLDER):
            continue
        if is_disabled(d.name):
            detected = _analyse_dot_prefixed(d)
            result.dot_prefixed_folders.append(detected)
            if detected.is_likely_profile:
                result.multi_mod_folders.append(detected)
        elif has_manifest(d):
            result.has_loose_mods_at_root = True
        else:
            count = count_mods(d)
            if count > 0:
                result.multi_mod_folders.append(DetectedFolder(
                    folder_name=d.name, path=d,
                    is_likely_profile=True, sub_mod_count=count,
                ))

    if not result.multi_mod_folders:
        result.scenario = (DetectionScenario.MODS_EXIST_NO_PROFILES
                           if result.has_loose_mods_at_root or all_dirs
                           else DetectionScenario.NO_MODS_FOLDER)
        return result

    for folder in result.multi_mod_folders:
        name = folder.profile_name
        if not any(names_equal(name, n) for n in result.detected_profile_names):
            result.detected_profile_names.append(name)

    result.scenario = DetectionScenario.PROFILES_DETECTED
    if saves_root is None or not Path(saves_root).is_dir():
        return result

    saves_root = Path(saves_root)
    matched: list[str] = []
    for d in subdirs(saves_root):
        owner = parse_saves_folder_name(d.name)
        if owner is None:
            continue
        for name in result.detected_profile_names:
            if names_equal(owner, name) and name not in matched:
                matched.append(name)

    active_saves = saves_root / ACTIVE_SAVES_FOLDER
    if active_saves.is_dir():
        result.save_folder_names = [d.name for d in subdirs(active_saves)]
        # The one profile without a .<Name>Saves slot owns Saves/.
        if (len(matched) == len(result.detected_profile_names) - 1
                and result.save_folder_names):
            matched.extend(n for n in result.detected_profile_names if n not in matched)

    if len(matched) == len(result.detected_profile_names):
        result.scenario = DetectionScenario.PROFILES_AND_SAVES
    return result


# ---------------------------------------------------------------------------
# Registry import
# ---------------------------------------------------------------------------

def import_detected_profiles(registry: ProfileRegistry, profile_names: list[str],
                             locations: ProfileLocations | None = None) -> list[str]:
    """Register profile names not yet known; returns the names added.

    When no profile is active, the one whose mod folder is in active form
    wins, otherwise the first registered profile.
    """
    added = []
    for name in profile_names:
        if not registry.has_profile(name):
            registry.add_profile(name)
            added.append(name)
    if registry.active_profile is None and registry.profile_names:
        active = registry.profile_names[0]
        if locations is not None:
            for name in registry.profile_names:
                if locations.active_mod_dir(name).is_dir():
                    active = name
                    break
        registry.active_profile = active
    return added


def detect_profile_collections(registry: ProfileRegistry, locations: ProfileLocations) -> None:
    """Record enabled collection folders found inside every profile."""
    for profile in registry.profile_names:
        profile_dir = locations.find_profile_dir(profile)
        if profile_dir is None:
            continue
        for d in subdirs(profile_dir):
            if is_disabled(d.name):
                continue
            if is_collection_folder(d):
                registry.add_profile_collection(profile, d.name)


def detect_common_collections(registry: ProfileRegistry, mods_root: Path) -> None:
    """Record enabled collection folders sitting directly under Mods/."""
    profile_folders = {profile_folder_name(n).casefold() for n in registry.profile_names}
    for d in subdirs(mods_root):
        if is_disabled(d.name) or d.name.casefold() in profile_folders:
            continue
        if is_collection_folder(d) and not any(
            names_equal(d.name, c) for c in registry.common_collection_names
        ):
            registry.common_collection_names.append(d.name)
