"""HTTP recipe catalog.

The endpoint serves::

    GET <endpoint>/index.json
        {"source": "github.com/acme/recipes", "ref": "main", "contrib": false,
         "recipes": {"acme/mailer": ["1.0", "1.2"]}}

    GET <endpoint>/<vendor>/<name>/<version>/manifest.json
        {"register-modules": {...}, ...}

The index is fetched once per catalog instance. Transport errors and server
errors are retried; when retries run out the package's resolution raises
CatalogUnavailableError.
"""

from __future__ import annotations

import logging
import time
import uuid

import httpx

from flexo import __version__
from flexo.catalog.base import CatalogClient, select_recipe_version
from flexo.errors import CatalogUnavailableError, ValidationError
from flexo.models.manifest import Manifest, parse_manifest
from flexo.models.package import OperationKind, Package

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRIES = 3
DEFAULT_BACKOFF = 0.5


class RemoteCatalog(CatalogClient):
    """Recipes fetched over HTTP."""

    def __init__(
        self,
        endpoint: str,
        *,
        retries: int = DEFAULT_RETRIES,
        backoff: float = DEFAULT_BACKOFF,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.retries = max(1, retries)
        self.backoff = backoff
        self.session_id = uuid.uuid4().hex[:12]
        self._client = httpx.Client(
            base_url=self.endpoint,
            timeout=timeout,
            transport=transport,
            headers={
                "User-Agent": f"flexo/{__version__}",
                "X-Flexo-Session": self.session_id,
            },
        )
        self._index: dict | None = None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RemoteCatalog:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def resolve(self, package: Package, operation: OperationKind) -> Manifest | None:
        index = self._get_index()
        available = (index.get("recipes") or {}).get(package.name) or []
        version = select_recipe_version([str(v) for v in available], package.version)
        if version is None:
            return None

        body = self._get_json(f"/{package.name}/{version}/manifest.json")
        if body is None:
            logger.warning("Index lists %s %s but the manifest is missing", package.name, version)
            return None

        source = index.get("source") or httpx.URL(self.endpoint).host
        ref = index.get("ref") or "main"
        data = {
            "origin": f"{package.name}:{version}@{source}:{ref}",
            "manifest": body,
            "is_contrib": bool(index.get("contrib", False)),
        }
        return parse_manifest(package.name, data, operation)

    def _get_index(self) -> dict:
        if self._index is None:
            index = self._get_json("/index.json")
            if not isinstance(index, dict):
                index = {}
            self._index = index
        return self._index

    def _get_json(self, path: str):
        """GET a JSON document. Returns None on 404."""
        last_error = ""
        for attempt in range(1, self.retries + 1):
            try:
                response = self._client.get(path)
            except httpx.TransportError as e:
                last_error = str(e) or type(e).__name__
            else:
                if response.status_code == 404:
                    return None
                if 400 <= response.status_code < 500:
                    raise CatalogUnavailableError(
                        f"Recipe catalog {self.endpoint} refused {path}: HTTP {response.status_code}"
                    )
                if response.status_code < 500:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise ValidationError(f"Invalid JSON from {response.url}: {e}") from e
                last_error = f"HTTP {response.status_code}"

            logger.debug("GET %s failed (attempt %d/%d): %s", path, attempt, self.retries, last_error)
            if attempt < self.retries and self.backoff:
                time.sleep(self.backoff * attempt)

        raise CatalogUnavailableError(
            f"Recipe catalog {self.endpoint} unavailable after {self.retries} attempt(s): {last_error}"
        )
