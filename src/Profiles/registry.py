"""
registry.py
The mutable context object every profile / shared-pool operation works on.

ProfileRegistry holds the profile list, the active profile and both
shared-content registries.  It is passed explicitly; nothing here is global.
Persistence lives in registry_store.py; this module only provides
to_dict()/from_dict().

Profile names compare case-insensitively everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from Utils.fingerprint import SubModFingerprint
from Utils.folder_names import names_equal


def _contains(names: list[str], name: str) -> bool:
    return any(names_equal(n, name) for n in names)


def _remove(names: list[str], name: str) -> bool:
    before = len(names)
    names[:] = [n for n in names if not names_equal(n, name)]
    return len(names) != before


def _rename(names: list[str], old: str, new: str) -> None:
    for i, n in enumerate(names):
        if names_equal(n, old):
            names[i] = new


@dataclass
class SharedModEntry:
    shared_folder_name: str
    unique_id: str = ""
    version: str = ""
    profile_names: list[str] = field(default_factory=list)

    def has_profile(self, name: str) -> bool:
        return _contains(self.profile_names, name)

    def remove_profile(self, name: str) -> bool:
        return _remove(self.profile_names, name)

    def to_dict(self) -> dict:
        return {
            "shared_folder_name": self.shared_folder_name,
            "unique_id": self.unique_id,
            "version": self.version,
            "profile_names": list(self.profile_names),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SharedModEntry":
        return cls(
            shared_folder_name=str(data.get("shared_folder_name", "")),
            unique_id=str(data.get("unique_id", "")),
            version=str(data.get("version", "")),
            profile_names=[str(n) for n in data.get("profile_names", [])],
        )


@dataclass
class SharedCollectionEntry:
    shared_folder_name: str
    profile_names: list[str] = field(default_factory=list)
    fingerprint: dict[str, SubModFingerprint] = field(default_factory=dict)

    @property
    def collection_unique_id(self) -> str:
        return f"collection:{self.shared_folder_name}"

    def has_profile(self, name: str) -> bool:
        return _contains(self.profile_names, name)

    def remove_profile(self, name: str) -> bool:
        return _remove(self.profile_names, name)

    def to_dict(self) -> dict:
        return {
            "shared_folder_name": self.shared_folder_name,
            "collection_unique_id": self.collection_unique_id,
            "profile_names": list(self.profile_names),
            "fingerprint": {k: v.to_dict() for k, v in self.fingerprint.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SharedCollectionEntry":
        raw_fp = data.get("fingerprint", {})
        return cls(
            shared_folder_name=str(data.get("shared_folder_name", "")),
            profile_names=[str(n) for n in data.get("profile_names", [])],
            fingerprint={
                str(k): SubModFingerprint.from_dict(v)
                for k, v in (raw_fp.items() if isinstance(raw_fp, dict) else [])
                if isinstance(v, dict)
            },
        )


@dataclass
class ProfileRegistry:
    profile_names: list[str] = field(default_factory=list)
    active_profile: str | None = None
    vanilla_profile_names: list[str] = field(default_factory=list)
    profile_collection_names: dict[str, list[str]] = field(default_factory=dict)
    common_collection_names: list[str] = field(default_factory=list)
    saved_common_enabled_folders: list[str] = field(default_factory=list)
    shared_mods: dict[str, SharedModEntry] = field(default_factory=dict)
    shared_collections: dict[str, SharedCollectionEntry] = field(default_factory=dict)

    # -- profiles ------------------------------------------------------------

    def has_profile(self, name: str) -> bool:
        return _contains(self.profile_names, name)

    def canonical_name(self, name: str) -> str | None:
        """The registered spelling of name, or None."""
        for n in self.profile_names:
            if names_equal(n, name):
                return n
        return None

    def is_active(self, name: str | None) -> bool:
        return name is not None and names_equal(self.active_profile, name)

    def is_vanilla(self, name: str | None) -> bool:
        return name is not None and _contains(self.vanilla_profile_names, name)

    def collections_for(self, name: str) -> list[str]:
        for key, value in self.profile_collection_names.items():
            if names_equal(key, name):
                return value
        return []

    def add_profile(self, name: str, vanilla: bool = False, first: bool = False) -> None:
        if self.has_profile(name):
            return
        if first:
            self.profile_names.insert(0, name)
        else:
            self.profile_names.append(name)
        if vanilla:
            self.vanilla_profile_names.append(name)

    def remove_profile(self, name: str) -> None:
        _remove(self.profile_names, name)
        _remove(self.vanilla_profile_names, name)
        for key in [k for k in self.profile_collection_names if names_equal(k, name)]:
            del self.profile_collection_names[key]
        if self.is_active(name):
            self.active_profile = None

    def rename_profile(self, old: str, new: str) -> None:
        _rename(self.profile_names, old, new)
        _rename(self.vanilla_profile_names, old, new)
        for key in [k for k in self.profile_collection_names if names_equal(k, old)]:
            self.profile_collection_names[new] = self.profile_collection_names.pop(key)
        if self.is_active(old):
            self.active_profile = new

    def add_profile_collection(self, profile: str, collection: str) -> None:
        for key, value in self.profile_collection_names.items():
            if names_equal(key, profile):
                if not _contains(value, collection):
                    value.append(collection)
                return
        self.profile_collection_names[profile] = [collection]

    def remove_profile_collection(self, profile: str, collection: str) -> None:
        for key, value in self.profile_collection_names.items():
            if names_equal(key, profile):
                _remove(value, collection)

    def add_common_collection(self, collection: str) -> None:
        if not _contains(self.common_collection_names, collection):
            self.common_collection_names.append(collection)

    def remove_common_collection(self, collection: str) -> None:
        _remove(self.common_collection_names, collection)

    # -- shared entries --------------------------------------------------------

    def shared_entries_for(self, profile: str) -> list[SharedModEntry | SharedCollectionEntry]:
        entries: list[SharedModEntry | SharedCollectionEntry] = []
        entries.extend(e for e in self.shared_mods.values() if e.has_profile(profile))
        entries.extend(e for e in self.shared_collections.values() if e.has_profile(profile))
        return entries

    def rename_in_shared(self, old: str, new: str) -> None:
        for entry in list(self.shared_mods.values()) + list(self.shared_collections.values()):
            _rename(entry.profile_names, old, new)

    # -- serialisation ---------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "profile_names": list(self.profile_names),
            "active_profile": self.active_profile,
            "vanilla_profile_names": list(self.vanilla_profile_names),
            "profile_collection_names": {
                k: list(v) for k, v in self.profile_collection_names.items()
            },
            "common_collection_names": list(self.common_collection_names),
            "saved_common_enabled_folders": list(self.saved_common_enabled_folders),
            "shared_mods": {k: v.to_dict() for k, v in self.shared_mods.items()},
            "shared_collections": {k: v.to_dict() for k, v in self.shared_collections.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProfileRegistry":
        def _str_list(value) -> list[str]:
            return [str(v) for v in value] if isinstance(value, list) else []

        def _dict(value) -> dict:
            return value if isinstance(value, dict) else {}

        active = data.get("active_profile")
        return cls(
            profile_names=_str_list(data.get("profile_names")),
            active_profile=str(active) if active else None,
            vanilla_profile_names=_str_list(data.get("vanilla_profile_names")),
            profile_collection_names={
                str(k): _str_list(v)
                for k, v in _dict(data.get("profile_collection_names")).items()
            },
            common_collection_names=_str_list(data.get("common_collection_names")),
            saved_common_enabled_folders=_str_list(data.get("saved_common_enabled_folders")),
            shared_mods={
                str(k): SharedModEntry.from_dict({**v, "shared_folder_name": k})
                for k, v in _dict(data.get("shared_mods")).items()
                if isinstance(v, dict)
            },
            shared_collections={
                str(k): SharedCollectionEntry.from_dict({**v, "shared_folder_name": k})
                for k, v in _dict(data.get("shared_collections")).items()
                if isinstance(v, dict)
            },
        )
