"""write-files: create project files from recipe content."""

from __future__ import annotations

import logging

from flexo.configurator.base import ActionHandler
from flexo.models.manifest import Manifest, WriteFilesAction
from flexo.utils.fs import atomic_write, remove_file

logger = logging.getLogger(__name__)


class WriteFilesHandler(ActionHandler):
    """Files are created once and then belong to the project.

    An existing file is never overwritten, so local edits survive a
    re-applied or updated recipe.
    """

    def configure(self, manifest: Manifest, action: WriteFilesAction) -> None:
        for target, content in action.files.items():
            path = self.project_path(target)
            if path.exists():
                logger.debug("[%s] Keeping existing %s", manifest.package_name, self.relative(path))
                continue
            atomic_write(path, self.options.expand(content))
            logger.info("[%s] Created %s", manifest.package_name, self.relative(path))

    def unconfigure(self, manifest: Manifest, action: WriteFilesAction) -> None:
        for target in action.files:
            path = self.project_path(target)
            if remove_file(path):
                logger.info("[%s] Removed %s", manifest.package_name, self.relative(path))
