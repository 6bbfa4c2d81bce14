"""Run options: directory layout and policy flags for one engine run.

Options are resolved once (defaults, then the project's ``flexo.yaml``, then
explicit overrides) and are read-only afterwards.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from flexo.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE = "flexo.yaml"

DEFAULT_OPTIONS: dict[str, Any] = {
    "root-dir": ".",
    "config-dir": "config",
    "var-dir": "var",
    "bin-dir": "bin",
    "src-dir": "src",
    "public-dir": "public",
    "allow-contrib": False,
    "strict": False,
    "catalog-authoritative": False,
}

BOOLEAN_OPTIONS = {"allow-contrib", "strict", "catalog-authoritative"}

_PLACEHOLDER_RE = re.compile(r"%([A-Za-z][A-Za-z0-9_-]*)%")


class Options:
    """Immutable mapping of option name to resolved value."""

    def __init__(self, values: Mapping[str, Any] | None = None):
        merged = dict(DEFAULT_OPTIONS)
        merged.update(values or {})
        self._values = MappingProxyType(merged)

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def flag(self, name: str) -> bool:
        return bool(self._values.get(name, False))

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    @property
    def root_dir(self) -> Path:
        return Path(self._values["root-dir"])

    def expand(self, text: str) -> str:
        """Replace ``%CONFIG_DIR%``-style tokens with option values.

        ``%CONFIG_DIR%`` maps to the ``config-dir`` option. Unknown tokens and
        flag options are left as they are.
        """

        def _substitute(match: re.Match) -> str:
            name = match.group(1).lower().replace("_", "-")
            value = self._values.get(name)
            if value is None or isinstance(value, bool):
                return match.group(0)
            return str(value)

        return _PLACEHOLDER_RE.sub(_substitute, text)

    def expand_target(self, target: str) -> str:
        """Like ``expand`` for a path, without a trailing ``/``."""
        expanded = self.expand(target)
        if len(expanded) > 1:
            expanded = expanded.rstrip("/")
        return expanded

    def __repr__(self) -> str:
        return f"Options({dict(self._values)!r})"


def load_options(
    project_dir: str | Path,
    overrides: Mapping[str, Any] | None = None,
) -> Options:
    """Resolve options for a project directory.

    Resolution order:
    1. Built-in defaults
    2. ``options:`` mapping in ``<project_dir>/flexo.yaml``
    3. ``overrides`` (typically CLI flags; ``None`` values are ignored)

    ``root-dir`` always points at ``project_dir``.
    """
    project = Path(project_dir)
    values: dict[str, Any] = {}

    config_path = project / CONFIG_FILE
    if config_path.exists():
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{config_path}: top-level value must be a mapping")
        file_options = data.get("options", {}) or {}
        if not isinstance(file_options, dict):
            raise ConfigError(f"{config_path}: 'options' must be a mapping")
        values.update(file_options)
        logger.debug("Loaded %d option(s) from %s", len(file_options), config_path)

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    unknown = sorted(set(values) - set(DEFAULT_OPTIONS))
    if unknown:
        logger.warning("Ignoring unknown option(s): %s", ", ".join(unknown))
        for key in unknown:
            values.pop(key)

    for key in BOOLEAN_OPTIONS & set(values):
        if not isinstance(values[key], bool):
            raise ConfigError(f"Option '{key}' must be true or false, got {values[key]!r}")

    values["root-dir"] = str(project)
    return Options(values)
