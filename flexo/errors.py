"""Exception taxonomy for flexo.

Only ``StoreCorruptionError`` (and ``ConfigError`` raised while loading
options) is fatal to a run. The other errors are scoped to a single package
and end up as failure lines in the run report.
"""

from __future__ import annotations


class FlexoError(Exception):
    """Base class for all flexo errors."""


class ConfigError(FlexoError):
    """The project configuration file could not be read or is malformed."""


class ValidationError(FlexoError):
    """A recipe or a package's module declaration has the wrong shape."""


class ActionExecutionError(FlexoError):
    """A configuration action failed while being applied or reversed."""

    def __init__(self, package_name: str, kind: str, reason: str):
        self.package_name = package_name
        self.kind = kind
        self.reason = reason
        super().__init__(f'{kind} action for "{package_name}" failed: {reason}')


class StoreCorruptionError(FlexoError):
    """The lock file exists but cannot be parsed."""


class CatalogUnavailableError(FlexoError):
    """The recipe catalog could not be reached after retrying."""
