"""
fingerprint.py
Content identity for collections.

A collection fingerprint maps each sub-mod folder name to the sub-mod's
UniqueID, Version and a SHA-256 of its manifest.json.  Two collection
instances are considered the same when their fingerprints compare equal;
that is the gate for sharing a collection and the check for drift afterwards.

Nothing in this module raises: unreadable files and folders are skipped or
reported through the return value.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import asdict, dataclass, field
from pathlib import Path

from Utils.errors import ProfileManagerError
from Utils.manifest import MANIFEST_NAME, read_manifest_basic

_CHUNK = 1024 * 1024


@dataclass(frozen=True)
class SubModFingerprint:
    unique_id: str
    version: str
    manifest_hash: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SubModFingerprint":
        return cls(
            unique_id=str(data.get("unique_id", "")),
            version=str(data.get("version", "")),
            manifest_hash=str(data.get("manifest_hash", "")),
        )


@dataclass
class IdentityComparison:
    matches: bool
    differences: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.matches


def hash_file(path: Path) -> str | None:
    """Base64 SHA-256 of the file's bytes, or None if it can't be read.

    Only content is hashed, so timestamps and permissions never matter.
    """
    sha = hashlib.sha256()
    try:
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(_CHUNK), b""):
                sha.update(chunk)
    except OSError:
        return None
    return base64.b64encode(sha.digest()).decode("ascii")


def fingerprint_collection(collection_path: Path) -> dict[str, SubModFingerprint]:
    """Fingerprint every immediate sub-folder that holds a readable manifest."""
    result: dict[str, SubModFingerprint] = {}
    try:
        subdirs = sorted(p for p in Path(collection_path).iterdir() if p.is_dir())
    except OSError:
        return result
    for sub in subdirs:
        manifest_path = sub / MANIFEST_NAME
        if not manifest_path.is_file():
            continue
        try:
            basic = read_manifest_basic(sub)
        except ProfileManagerError:
            continue
        digest = hash_file(manifest_path)
        if digest is None:
            continue
        result[sub.name] = SubModFingerprint(
            unique_id=basic.unique_id,
            version=basic.version,
            manifest_hash=digest,
        )
    return result


def compare_identity(
    a: dict[str, SubModFingerprint],
    b: dict[str, SubModFingerprint],
) -> IdentityComparison:
    """Compare two fingerprints; a is the canonical side.

    Only keys of a are itemized (sorted); sub-mods that exist only in b show up
    through the count check.
    """
    if len(a) != len(b):
        return IdentityComparison(
            False, [f"SubMod count mismatch: {len(a)} vs {len(b)}"]
        )

    differences: list[str] = []
    for folder_name in sorted(a):
        fp_a = a[folder_name]
        fp_b = b.get(folder_name)
        if fp_b is None:
            differences.append(f"SubMod '{folder_name}' missing in second collection")
            continue
        if fp_a.unique_id != fp_b.unique_id:
            differences.append(f"{folder_name}: Different mod (UniqueID mismatch)")
        if fp_a.version != fp_b.version:
            differences.append(
                f"{folder_name}: Version mismatch ({fp_a.version} vs {fp_b.version})"
            )
        if fp_a.manifest_hash != fp_b.manifest_hash:
            differences.append(f"{folder_name}: Manifest changed")

    return IdentityComparison(not differences, differences)
