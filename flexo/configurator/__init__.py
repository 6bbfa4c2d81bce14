"""Configurator: applies and reverses recipe actions against a project.

Every action type in ``flexo.models.manifest.ACTION_TYPES`` has exactly one
handler here. The table is checked when the configurator is built, so an
action type without a handler fails immediately instead of being skipped.
"""

from __future__ import annotations

import logging

from flexo.configurator.base import ActionHandler
from flexo.configurator.env import SetEnvVarsHandler
from flexo.configurator.files import WriteFilesHandler
from flexo.configurator.gitignore import GitignoreHandler
from flexo.configurator.messages import PostInstallMessageHandler
from flexo.configurator.modules import RegisterModulesHandler
from flexo.errors import ActionExecutionError
from flexo.models.manifest import (
    ACTION_TYPES,
    Action,
    GitignoreAction,
    Manifest,
    PostInstallMessageAction,
    RegisterModulesAction,
    SetEnvVarsAction,
    WriteFilesAction,
)
from flexo.options import Options
from flexo.report import DeferredMessageQueue

logger = logging.getLogger(__name__)

HANDLERS: dict[type, type[ActionHandler]] = {
    WriteFilesAction: WriteFilesHandler,
    RegisterModulesAction: RegisterModulesHandler,
    SetEnvVarsAction: SetEnvVarsHandler,
    GitignoreAction: GitignoreHandler,
    PostInstallMessageAction: PostInstallMessageHandler,
}


class Configurator:
    """Runs a manifest's actions in order through their handlers.

    Messages queued while a manifest is applied are staged and only reach
    ``messages`` once every action of that manifest has succeeded.
    """

    def __init__(self, options: Options, messages: DeferredMessageQueue):
        missing = [t.kind for t in ACTION_TYPES if t not in HANDLERS]
        if missing:
            raise TypeError(f"No handler for action kind(s): {', '.join(missing)}")
        self.options = options
        self.messages = messages
        self._staged = DeferredMessageQueue()
        self._handlers = {t: HANDLERS[t](options, self._staged) for t in ACTION_TYPES}

    def install(self, manifest: Manifest) -> None:
        """Apply every action. Stops at the first failing action.

        Raises:
            ActionExecutionError: If a handler fails. Actions that already
                succeeded are left in place and the manifest's messages are
                dropped.
        """
        logger.debug("Configuring %s (%s)", manifest.package_name, ", ".join(manifest.kinds))
        try:
            for action in manifest.actions:
                self._run(manifest, action, unapply=False)
            self.messages.extend(self._staged)
        finally:
            self._staged.clear()

    def uninstall(self, manifest: Manifest) -> None:
        """Reverse every action, last one first."""
        logger.debug("Unconfiguring %s (%s)", manifest.package_name, ", ".join(manifest.kinds))
        for action in reversed(manifest.actions):
            self._run(manifest, action, unapply=True)

    def handler_for(self, action: Action) -> ActionHandler:
        handler = self._handlers.get(type(action))
        if handler is None:
            raise TypeError(f"Unsupported action type {type(action).__name__}")
        return handler

    def _run(self, manifest: Manifest, action: Action, unapply: bool) -> None:
        handler = self.handler_for(action)
        try:
            if unapply:
                handler.unconfigure(manifest, action)
            else:
                handler.configure(manifest, action)
        except (OSError, ValueError) as e:
            raise ActionExecutionError(manifest.package_name, action.kind, str(e)) from e
