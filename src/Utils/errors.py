"""
errors.py
Exception types raised by the profile and shared-pool operations.

ValidationError      — bad input the caller can correct before retrying
NotFoundError        — a profile, mod or directory expected but absent
FilesystemConflict   — a destination already exists where it must not
IdentityMismatch     — fingerprint / version / UniqueID disagreement
LinkOperationFailure — creating or removing a directory link failed

Naming and fingerprint helpers never raise these; they return failure values.
"""

from __future__ import annotations

from pathlib import Path


class ProfileManagerError(Exception):
    """Base class for every error raised by the profile core."""


class ValidationError(ProfileManagerError):
    """Raised for bad names or a missing required selection."""


class NotFoundError(ProfileManagerError):
    """Raised when a profile, mod or directory is expected but absent."""


class SourceNotFound(NotFoundError):
    """Raised when no target profile holds a real copy of the mod to share."""


class ManifestMissing(NotFoundError):
    """Raised when a mod directory has no manifest.json."""
    def __init__(self, mod_dir: Path):
        super().__init__(f"No manifest.json in {mod_dir}")
        self.mod_dir = mod_dir


class ManifestMalformed(ProfileManagerError):
    """Raised when manifest.json exists but cannot be parsed."""
    def __init__(self, manifest_path: Path, reason: str = ""):
        msg = f"Malformed manifest: {manifest_path}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)
        self.manifest_path = manifest_path


class FilesystemConflict(ProfileManagerError):
    """Raised when a destination already exists where an operation needs it free."""
    def __init__(self, path: Path, message: str = ""):
        super().__init__(message or f"Destination already exists: {path}")
        self.path = path


class IdentityMismatch(ProfileManagerError):
    """Raised when collection instances differ; carries the itemized differences."""
    def __init__(self, message: str, differences: list[str] | None = None):
        self.differences = list(differences or [])
        if self.differences:
            message = message + "\n" + "\n".join(self.differences)
        super().__init__(message)


class LinkOperationFailure(ProfileManagerError):
    """Raised when the OS refuses to create or remove a directory link."""
    def __init__(self, link_path: Path, os_message: str):
        super().__init__(f"Directory link operation failed for {link_path}: {os_message}")
        self.link_path = link_path
        self.os_message = os_message
