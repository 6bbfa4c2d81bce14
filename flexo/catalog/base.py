"""Catalog client interface and recipe version selection."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

from flexo.models.manifest import Manifest
from flexo.models.package import OperationKind, Package

_NUMERIC_PREFIX_RE = re.compile(r"^v?(\d+(?:\.\d+)*)")


class CatalogClient(ABC):
    """Resolves a package to zero or one recipe manifest."""

    session_id: str = ""

    @abstractmethod
    def resolve(self, package: Package, operation: OperationKind) -> Manifest | None:
        """Return the recipe for ``package`` or None.

        Raises:
            ValidationError: If the recipe exists but is malformed.
            CatalogUnavailableError: If the catalog cannot be reached.
        """

    def is_enabled(self) -> bool:
        return True

    def close(self) -> None:
        """Release any connection held by the catalog."""


class NullCatalog(CatalogClient):
    """A catalog that never has recipes."""

    def resolve(self, package: Package, operation: OperationKind) -> Manifest | None:
        return None

    def is_enabled(self) -> bool:
        return False


def version_key(version: str) -> tuple[int, ...] | None:
    """Numeric sort key for a dotted version, ignoring any suffix.

    ``"v1.2.3-beta"`` → ``(1, 2, 3)``. Returns None for non-numeric versions.
    """
    match = _NUMERIC_PREFIX_RE.match(version.strip())
    if not match:
        return None
    parts = [int(p) for p in match.group(1).split(".")]
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def select_recipe_version(available: list[str], package_version: str) -> str | None:
    """Highest recipe version that is not newer than the package version.

    Recipes are published per minor line (``1.0``, ``2.3``), so package
    ``2.3.7`` picks recipe ``2.3`` and package ``1.9.0`` picks ``1.0``.
    A package with a non-numeric version (``dev-main``) gets the newest recipe.
    """
    candidates = [(version_key(v), v) for v in available]
    candidates = sorted((k, v) for k, v in candidates if k is not None)
    if not candidates:
        return None

    target = version_key(package_version)
    if target is None:
        return candidates[-1][1]

    selected = None
    for key, version in candidates:
        if key <= target:
            selected = version
    return selected
