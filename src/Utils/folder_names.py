"""
folder_names.py
Folder naming rules for enabled/disabled mods, profiles and save slots.

SMAPI skips any folder whose name starts with a dot, so the dot prefix is the
on/off switch for mods, collections and whole profiles:

  ContentPatcher   — enabled mod
  .ContentPatcher  — disabled mod
  [PROFILE] Farm1  — active profile mod folder
  .[PROFILE] Farm1 — inactive profile mod folder
  Saves            — active profile save folder (never profile-named)
  .Farm1Saves      — inactive save folder of profile "Farm1"

Everything here is a pure string transform; nothing touches the disk.
"""

from __future__ import annotations

import re

DISABLED_PREFIX = "."
PROFILE_PREFIX = "[PROFILE] "
SAVES_SUFFIX = "Saves"
ACTIVE_SAVES_FOLDER = "Saves"

# Union of what Windows and POSIX refuse in a single path component.
_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def clean_name(folder_name: str) -> str:
    """Strip every leading dot."""
    return folder_name.lstrip(DISABLED_PREFIX)


def to_enabled(folder_name: str) -> str:
    return clean_name(folder_name)


def to_disabled(folder_name: str) -> str:
    return DISABLED_PREFIX + clean_name(folder_name)


def is_disabled(folder_name: str) -> bool:
    return folder_name.startswith(DISABLED_PREFIX)


def is_enabled(folder_name: str) -> bool:
    return not is_disabled(folder_name)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def profile_folder_name(profile_name: str) -> str:
    """Active-form mod folder name for a profile."""
    return PROFILE_PREFIX + profile_name


def parse_profile_name(folder_name: str) -> str | None:
    """Return the profile name encoded in folder_name, or None if it isn't one."""
    stripped = clean_name(folder_name)
    if not stripped.startswith(PROFILE_PREFIX):
        return None
    name = stripped[len(PROFILE_PREFIX):]
    return name or None


def inactive_saves_folder_name(profile_name: str) -> str:
    return DISABLED_PREFIX + profile_name + SAVES_SUFFIX


def parse_saves_folder_name(folder_name: str) -> str | None:
    """Inverse of inactive_saves_folder_name(); None for anything else."""
    if not (folder_name.startswith(DISABLED_PREFIX) and folder_name.endswith(SAVES_SUFFIX)):
        return None
    name = folder_name[len(DISABLED_PREFIX):-len(SAVES_SUFFIX)]
    return name or None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_name(text: str, field_label: str = "Name") -> str | None:
    """Check a user-supplied profile/collection name.

    Returns a human-readable error message, or None when the name is usable.
    Never raises.
    """
    name = (text or "").strip()
    if not name:
        return f"{field_label} cannot be empty."
    if name in (".", ".."):
        return f"{field_label} cannot be '{name}'."
    if _INVALID_CHARS.search(name):
        return f"{field_label} contains invalid characters."
    if name.startswith(DISABLED_PREFIX):
        return f"{field_label} cannot start with '{DISABLED_PREFIX}'."
    return None


def names_equal(a: str | None, b: str | None) -> bool:
    """Case-insensitive comparison used for profile and folder names."""
    if a is None or b is None:
        return a is b
    return a.casefold() == b.casefold()
