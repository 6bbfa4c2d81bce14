"""Shared plumbing for action handlers.

Handlers that edit shared text files (``.env``, ``.gitignore``) own a marked
block per package::

    ###> acme/mailer ###
    MAILER_DSN=null://null
    ###< acme/mailer ###

Re-applying the same content leaves the file untouched, different content
replaces the block in place, and reversing removes it.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path

from flexo.models.manifest import Action, Manifest
from flexo.options import Options
from flexo.report import DeferredMessageQueue
from flexo.utils.fs import atomic_write, is_within

logger = logging.getLogger(__name__)


class ActionHandler(ABC):
    """Applies and reverses one action type."""

    def __init__(self, options: Options, messages: DeferredMessageQueue):
        self.options = options
        self.messages = messages

    @abstractmethod
    def configure(self, manifest: Manifest, action: Action) -> None:
        """Apply ``action`` for ``manifest.package_name``."""

    @abstractmethod
    def unconfigure(self, manifest: Manifest, action: Action) -> None:
        """Reverse ``action``. Already-removed state is not an error."""

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        return self.options.root_dir

    def project_path(self, target: str) -> Path:
        """Expand placeholders in ``target`` and anchor it at the project root.

        Raises:
            OSError: If the target escapes the project root.
        """
        path = self.root / self.options.expand_target(target)
        if not is_within(self.root, path):
            raise PermissionError(f"Refusing to touch {target!r}: outside the project directory")
        return path

    def relative(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.root))
        except ValueError:
            return str(path)


# ----------------------------------------------------------------------
# Marker blocks
# ----------------------------------------------------------------------


def block_markers(package_name: str) -> tuple[str, str]:
    return f"###> {package_name} ###", f"###< {package_name} ###"


def _block_re(package_name: str) -> re.Pattern:
    start, end = block_markers(package_name)
    return re.compile(
        rf"^{re.escape(start)}\n.*?^{re.escape(end)}\n?",
        re.MULTILINE | re.DOTALL,
    )


def render_block(package_name: str, lines: list[str]) -> str:
    start, end = block_markers(package_name)
    return "\n".join([start, *lines, end]) + "\n"


def write_block(path: Path, package_name: str, lines: list[str]) -> bool:
    """Insert or replace a package's block. Returns True if the file changed."""
    content = path.read_text(encoding="utf-8") if path.exists() else ""
    block = render_block(package_name, lines)
    pattern = _block_re(package_name)

    match = pattern.search(content)
    if match:
        if match.group(0).rstrip("\n") == block.rstrip("\n"):
            return False
        updated = content[: match.start()] + block + content[match.end():]
    else:
        if content and not content.endswith("\n"):
            content += "\n"
        separator = "\n" if content else ""
        updated = content + separator + block

    atomic_write(path, updated)
    return True


def remove_block(path: Path, package_name: str) -> bool:
    """Remove a package's block. Returns False if there was nothing to remove."""
    if not path.exists():
        return False
    content = path.read_text(encoding="utf-8")
    match = _block_re(package_name).search(content)
    if not match:
        return False

    before = content[: match.start()]
    after = content[match.end():]
    # Drop the blank separator line that was added with the block.
    if before.endswith("\n\n"):
        before = before[:-1]
    atomic_write(path, before + after)
    return True
