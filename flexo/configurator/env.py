"""set-env-vars: a marked block per package in the project's ``.env``."""

from __future__ import annotations

import logging

from flexo.configurator.base import ActionHandler, remove_block, write_block
from flexo.models.manifest import Manifest, SetEnvVarsAction

logger = logging.getLogger(__name__)

ENV_FILE = ".env"


class SetEnvVarsHandler(ActionHandler):
    def configure(self, manifest: Manifest, action: SetEnvVarsAction) -> None:
        lines = [f"{name}={self.options.expand(value)}" for name, value in action.variables.items()]
        if write_block(self.project_path(ENV_FILE), manifest.package_name, lines):
            logger.info("[%s] Updated %s", manifest.package_name, ENV_FILE)

    def unconfigure(self, manifest: Manifest, action: SetEnvVarsAction) -> None:
        if remove_block(self.project_path(ENV_FILE), manifest.package_name):
            logger.info("[%s] Removed variables from %s", manifest.package_name, ENV_FILE)
