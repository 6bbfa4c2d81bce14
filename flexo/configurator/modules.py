"""register-modules: keep ``<config-dir>/modules.yaml`` in sync with recipes."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from flexo.configurator.base import ActionHandler
from flexo.models.manifest import Manifest, RegisterModulesAction
from flexo.utils.fs import atomic_write

logger = logging.getLogger(__name__)

MODULES_FILE = "%CONFIG_DIR%/modules.yaml"


class RegisterModulesHandler(ActionHandler):
    def configure(self, manifest: Manifest, action: RegisterModulesAction) -> None:
        path = self.project_path(MODULES_FILE)
        registered = self.load(path)

        added = [cls for cls in action.modules if cls not in registered]
        if not added:
            return
        for cls in added:
            registered[cls] = list(action.modules[cls])
        self.dump(path, registered)
        logger.info("[%s] Registered %s", manifest.package_name, ", ".join(added))

    def unconfigure(self, manifest: Manifest, action: RegisterModulesAction) -> None:
        path = self.project_path(MODULES_FILE)
        if not path.exists():
            return
        registered = self.load(path)

        removed = [cls for cls in action.modules if cls in registered]
        if not removed:
            return
        for cls in removed:
            del registered[cls]
        self.dump(path, registered)
        logger.info("[%s] Unregistered %s", manifest.package_name, ", ".join(removed))

    @staticmethod
    def load(path: Path) -> dict[str, list[str]]:
        if not path.exists():
            return {}
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Cannot parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping of module class to environments")
        return data

    @staticmethod
    def dump(path: Path, registered: dict[str, list[str]]) -> None:
        atomic_write(path, yaml.safe_dump(registered, default_flow_style=None, sort_keys=False))
