"""gitignore: a marked block per package in the project's ``.gitignore``."""

from __future__ import annotations

import logging

from flexo.configurator.base import ActionHandler, remove_block, write_block
from flexo.models.manifest import GitignoreAction, Manifest

logger = logging.getLogger(__name__)

GITIGNORE_FILE = ".gitignore"


class GitignoreHandler(ActionHandler):
    def configure(self, manifest: Manifest, action: GitignoreAction) -> None:
        lines = [self.options.expand(entry) for entry in action.entries]
        if write_block(self.project_path(GITIGNORE_FILE), manifest.package_name, lines):
            logger.info("[%s] Updated %s", manifest.package_name, GITIGNORE_FILE)

    def unconfigure(self, manifest: Manifest, action: GitignoreAction) -> None:
        if remove_block(self.project_path(GITIGNORE_FILE), manifest.package_name):
            logger.info("[%s] Removed entries from %s", manifest.package_name, GITIGNORE_FILE)
