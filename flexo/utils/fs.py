"""Filesystem helpers shared by the lock store and the action handlers."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def atomic_write(path: str | Path, content: str) -> None:
    """Write ``content`` to ``path`` so readers never see a partial file.

    The content goes to a temporary file in the same directory, which is
    then moved over the target with ``os.replace``.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if target.exists():
            os.chmod(tmp_name, target.stat().st_mode & 0o777)
        else:
            os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def remove_file(path: str | Path) -> bool:
    """Delete a file. Returns False when it was already gone."""
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    return True


def is_within(root: str | Path, path: str | Path) -> bool:
    """True if ``path`` resolves to a location inside ``root``."""
    root = Path(root).resolve()
    try:
        Path(path).resolve().relative_to(root)
    except ValueError:
        return False
    return True
