"""Directory-backed recipe catalog.

Layout (same as a recipes repository checkout)::

    <root>/index.yaml                          optional: source, ref, contrib
    <root>/<vendor>/<name>/<version>/manifest.yaml   (or manifest.json)

The recipe's origin is built from the package name, the recipe version
directory and the index's ``source``/``ref``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml

from flexo.catalog.base import CatalogClient, select_recipe_version
from flexo.errors import ConfigError, ValidationError
from flexo.models.manifest import Manifest, parse_manifest
from flexo.models.package import OperationKind, Package

logger = logging.getLogger(__name__)

INDEX_FILE = "index.yaml"
MANIFEST_FILES = ("manifest.yaml", "manifest.yml", "manifest.json")


class LocalCatalog(CatalogClient):
    """Recipes read from a local directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        index = self._load_index()
        self.source = index.get("source") or self.root.resolve().name
        self.ref = index.get("ref") or "local"
        self.contrib = bool(index.get("contrib", False))

    def is_enabled(self) -> bool:
        return self.root.is_dir()

    def available_versions(self, package_name: str) -> list[str]:
        package_dir = self.root / package_name
        if not package_dir.is_dir():
            return []
        try:
            return sorted(
                d.name for d in package_dir.iterdir()
                if d.is_dir() and any((d / f).is_file() for f in MANIFEST_FILES)
            )
        except OSError as e:
            raise ValidationError(f"Cannot list recipes in {package_dir}: {e}") from e

    def resolve(self, package: Package, operation: OperationKind) -> Manifest | None:
        version = select_recipe_version(self.available_versions(package.name), package.version)
        if version is None:
            logger.debug("No recipe for %s %s in %s", package.name, package.version, self.root)
            return None

        recipe_dir = self.root / package.name / version
        body = self._read_manifest(recipe_dir)
        data = {
            "origin": f"{package.name}:{version}@{self.source}:{self.ref}",
            "manifest": body,
            "is_contrib": self.contrib,
        }
        logger.debug("Resolved %s %s to recipe %s", package.name, package.version, recipe_dir)
        return parse_manifest(package.name, data, operation)

    def _read_manifest(self, recipe_dir: Path) -> dict:
        for name in MANIFEST_FILES:
            path = recipe_dir / name
            if not path.is_file():
                continue
            try:
                with open(path) as f:
                    if path.suffix == ".json":
                        data = json.load(f)
                    else:
                        data = yaml.safe_load(f)
            except OSError as e:
                raise ValidationError(f"Cannot read recipe file {path}: {e}") from e
            except (UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
                raise ValidationError(f"Invalid recipe file {path}: {e}") from e
            return data or {}
        return {}

    def _load_index(self) -> dict:
        path = self.root / INDEX_FILE
        if not path.exists():
            return {}
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read catalog index {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Catalog index {path} must contain a mapping")
        return data
