"""Recipe catalogs, where manifests for a package + version come from.

Available catalogs:
- LocalCatalog: a checkout of a recipes repository on disk
- RemoteCatalog: an HTTP endpoint serving the same layout as JSON
- NullCatalog: no catalog at all, auto-generated recipes only
"""

from flexo.catalog.base import CatalogClient, NullCatalog, select_recipe_version
from flexo.catalog.local import LocalCatalog
from flexo.catalog.remote import RemoteCatalog

__all__ = [
    "CatalogClient",
    "LocalCatalog",
    "NullCatalog",
    "RemoteCatalog",
    "select_recipe_version",
]


def open_catalog(location: str | None) -> CatalogClient:
    """Pick a catalog for a CLI-style location (URL, directory or nothing)."""
    if not location:
        return NullCatalog()
    if location.startswith(("http://", "https://")):
        return RemoteCatalog(location)
    return LocalCatalog(location)
