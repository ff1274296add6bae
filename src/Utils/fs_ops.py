"""
fs_ops.py
Directory moves and copies used by the profile and shared-pool code.

Two kinds of operation live here:

  critical    — move_dir(), copy_dir(), copy_file(), remove_dir()
                Failures propagate.  A destination that already exists is a
                FilesystemConflict, never a silent merge.
  best-effort — best_effort() / best_effort_remove()
                Cleanup of stale snapshot folders and pool remnants.  Failures
                are written to the app log and swallowed so they can never
                block the primary operation.
"""

from __future__ import annotations

import shutil
from contextlib import contextmanager
from pathlib import Path

from Utils.app_log import app_log
from Utils.dir_links import is_link, remove_link
from Utils.errors import FilesystemConflict, ProfileManagerError


def _occupied(path: Path) -> bool:
    return path.exists() or is_link(path)


def move_dir(src: Path, dst: Path) -> None:
    """Move directory src to dst.  dst must not exist."""
    src, dst = Path(src), Path(dst)
    if _occupied(dst):
        raise FilesystemConflict(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(src), str(dst))


def copy_dir(src: Path, dst: Path) -> None:
    """Recursively copy a real directory.  dst must not exist."""
    src, dst = Path(src), Path(dst)
    if _occupied(dst):
        raise FilesystemConflict(dst)
    shutil.copytree(src, dst, symlinks=True)


def copy_file(src: Path, dst: Path) -> None:
    """Byte-for-byte copy, overwriting dst and creating its parent."""
    dst = Path(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dst)


def remove_dir(path: Path) -> None:
    """Delete a directory tree, or just the link if path is a link."""
    path = Path(path)
    if is_link(path):
        remove_link(path)
    elif path.is_dir():
        shutil.rmtree(path)


def subdirs(directory: Path) -> list[Path]:
    """Immediate sub-directories (links included), sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(
        (p for p in directory.iterdir() if p.is_dir() or is_link(p)),
        key=lambda p: p.name,
    )


@contextmanager
def best_effort(description: str, log_fn=None):
    """Run a cleanup block whose failure must not stop the caller."""
    _log = log_fn or app_log
    try:
        yield
    except (OSError, ProfileManagerError) as exc:
        _log(f"  WARN: {description} failed: {exc}")


def best_effort_remove(path: Path, log_fn=None) -> None:
    with best_effort(f"removing {path}", log_fn):
        remove_dir(path)
