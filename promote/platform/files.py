"""Filesystem helpers."""

from __future__ import annotations

import os
import shutil
import stat
from collections.abc import Callable
from pathlib import Path

__all__ = ["remove_tree"]


def _make_writable_and_retry(
    func: Callable[..., object], path: str, exc: BaseException
) -> None:
    if not isinstance(exc, PermissionError):
        raise exc
    parent = os.path.dirname(path)
    os.chmod(parent, os.stat(parent).st_mode | stat.S_IWUSR | stat.S_IXUSR)
    func(path)


def remove_tree(path: Path) -> bool:
    """Remove a directory tree, including read-only directories extracted from archives.

    Returns:
        True if removed, False if it didn't exist
    """
    if not path.exists() and not path.is_symlink():
        return False
    shutil.rmtree(path, onexc=_make_writable_and_retry)
    return True
