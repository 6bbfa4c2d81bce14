"""post-install-message: queue operator lines until the run is over."""

from __future__ import annotations

from flexo.configurator.base import ActionHandler
from flexo.models.manifest import Manifest, PostInstallMessageAction


class PostInstallMessageHandler(ActionHandler):
    def configure(self, manifest: Manifest, action: PostInstallMessageAction) -> None:
        self.messages.add(
            manifest.package_name,
            [self.options.expand(line) for line in action.lines],
        )

    def unconfigure(self, manifest: Manifest, action: PostInstallMessageAction) -> None:
        pass
