"""
dir_links.py
Directory links: the primitive that lets several profiles see one copy of a
shared mod.

  Linux / macOS — directory symlink (os.symlink)
  Windows       — directory symlink when allowed (Developer Mode / admin),
                  otherwise an NTFS junction created with "mklink /J"

A platform with neither cannot host the shared pool: create_link() raises
LinkOperationFailure and the caller must keep plain copies instead.

Link paths are never followed when removing: remove_link() only deletes the
link itself, never the content behind it.
"""

from __future__ import annotations

import os
import stat
import subprocess
from pathlib import Path

from Utils.errors import FilesystemConflict, LinkOperationFailure


def is_link(path: Path) -> bool:
    """True if path itself is a symlink or junction (dangling or not)."""
    p = Path(path)
    if p.is_symlink():
        return True
    is_junction = getattr(p, "is_junction", None)
    if is_junction is not None:
        return is_junction()
    try:
        st = os.lstat(p)
    except OSError:
        return False
    attrs = getattr(st, "st_file_attributes", 0)
    return bool(attrs & stat.FILE_ATTRIBUTE_REPARSE_POINT)


def link_exists(path: Path) -> bool:
    """True if path is a link whose target directory still exists."""
    return is_link(path) and Path(path).is_dir()


def resolve_link(path: Path) -> Path | None:
    """Return the directory a link points at, or None if path isn't a link."""
    if not is_link(path):
        return None
    return Path(os.path.realpath(path))


def points_to(link_path: Path, target: Path) -> bool:
    """True if link_path is a link resolving to target."""
    resolved = resolve_link(link_path)
    if resolved is None:
        return False
    return os.path.normcase(str(resolved)) == os.path.normcase(os.path.realpath(target))


def _create_junction(link_path: Path, target: Path) -> None:
    proc = subprocess.run(
        ["cmd", "/c", "mklink", "/J", str(link_path), str(target)],
        capture_output=True,
        text=True,
    )
    if proc.returncode != 0:
        raise LinkOperationFailure(link_path, (proc.stderr or proc.stdout).strip())


def create_link(link_path: Path, target: Path) -> None:
    """Create a directory link at link_path pointing to target."""
    link_path = Path(link_path)
    target = Path(os.path.abspath(target))
    if link_path.exists() or is_link(link_path):
        raise FilesystemConflict(link_path, f"Cannot create link, path exists: {link_path}")
    try:
        os.symlink(target, link_path, target_is_directory=True)
        return
    except OSError as exc:
        if os.name != "nt":
            raise LinkOperationFailure(link_path, str(exc)) from exc
    try:
        _create_junction(link_path, target)
    except OSError as exc:
        raise LinkOperationFailure(link_path, str(exc)) from exc


def remove_link(link_path: Path) -> None:
    """Delete the link at link_path; no-op if nothing is there."""
    link_path = Path(link_path)
    if not is_link(link_path):
        if link_path.exists():
            raise LinkOperationFailure(link_path, "path is not a directory link")
        return
    try:
        if os.name == "nt":
            os.rmdir(link_path)
        else:
            os.unlink(link_path)
    except OSError as exc:
        raise LinkOperationFailure(link_path, str(exc)) from exc


def rename_link(link_path: Path, new_path: Path) -> None:
    """Rename the link itself (used to enable/disable a shared mod)."""
    if Path(new_path).exists() or is_link(new_path):
        raise FilesystemConflict(Path(new_path))
    try:
        os.rename(link_path, new_path)
    except OSError as exc:
        raise LinkOperationFailure(Path(link_path), str(exc)) from exc
