"""Lock store: which recipe is currently applied to which package.

The lock file is a JSON object keyed by package name::

    {
      "acme/mailer": {
        "recipe_provenance": "acme/mailer:1.2@github.com/acme/recipes:main",
        "version": "1.2.4",
        "manifest": {"origin": "...", "manifest": {...}}
      }
    }

The stored manifest is the exact recipe that was applied. Removing a package
reverses that recipe, not a freshly resolved one.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from flexo.errors import StoreCorruptionError
from flexo.utils.fs import atomic_write

logger = logging.getLogger(__name__)

LOCK_FILE = "flexo.lock"


@dataclass
class LockEntry:
    """One applied recipe."""

    package_name: str
    recipe_provenance: str
    version: str = ""
    manifest: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "recipe_provenance": self.recipe_provenance,
            "version": self.version,
            "manifest": self.manifest,
        }

    @classmethod
    def from_dict(cls, package_name: str, data: dict) -> LockEntry:
        return cls(
            package_name=package_name,
            recipe_provenance=data["recipe_provenance"],
            version=data.get("version", ""),
            manifest=data.get("manifest", {}),
        )


class LockStore:
    """File-backed lock store for a project."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._entries: dict[str, LockEntry] = {}
        self._loaded = False
        self._changed = False

    @classmethod
    def for_project(cls, project_dir: str | Path) -> LockStore:
        return cls(Path(project_dir) / LOCK_FILE)

    def load(self) -> LockStore:
        """Read the lock file. A missing file is an empty store.

        Raises:
            StoreCorruptionError: If the file exists but is not a valid lock.
        """
        self._entries = {}
        self._loaded = True
        self._changed = False
        if not self.path.exists():
            return self

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreCorruptionError(f"Cannot read lock file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreCorruptionError(f"Lock file {self.path} must contain a JSON object")

        for name, raw in data.items():
            if (
                not isinstance(raw, dict)
                or not isinstance(raw.get("recipe_provenance"), str)
                or not isinstance(raw.get("manifest", {}), dict)
            ):
                raise StoreCorruptionError(f"Lock file {self.path}: malformed entry for {name!r}")
            self._entries[name] = LockEntry.from_dict(name, raw)

        logger.debug("Loaded %d lock entr(ies) from %s", len(self._entries), self.path)
        return self

    def get(self, package_name: str) -> LockEntry | None:
        self._ensure_loaded()
        return self._entries.get(package_name)

    def has(self, package_name: str) -> bool:
        self._ensure_loaded()
        return package_name in self._entries

    def put(self, package_name: str, entry: LockEntry) -> None:
        self._ensure_loaded()
        self._entries[package_name] = entry
        self._changed = True

    def remove(self, package_name: str) -> None:
        self._ensure_loaded()
        if self._entries.pop(package_name, None) is not None:
            self._changed = True

    def entries(self) -> list[LockEntry]:
        self._ensure_loaded()
        return [self._entries[name] for name in sorted(self._entries)]

    def persist(self) -> bool:
        """Write all entries atomically, sorted by package name.

        Nothing is written when no entry was added, replaced or removed since
        the last load or write. Returns whether the file was written.
        """
        self._ensure_loaded()
        if not self._changed:
            return False
        payload = {name: self._entries[name].to_dict() for name in sorted(self._entries)}
        atomic_write(self.path, json.dumps(payload, indent=4) + "\n")
        self._changed = False
        logger.debug("Wrote %d lock entr(ies) to %s", len(payload), self.path)
        return True

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._entries)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()
