"""Package metadata and the operations the host package manager reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from flexo.errors import ValidationError


class OperationKind(Enum):
    """What the host did to a package."""

    INSTALL = "install"
    UPDATE = "update"
    UNINSTALL = "uninstall"

    @property
    def removes(self) -> bool:
        return self is OperationKind.UNINSTALL


@dataclass
class Package:
    """A package as declared by the host package manager."""

    name: str
    version: str
    autoload: dict[str, Any] = field(default_factory=dict)  # {"psr-4": {namespace: path(s)}}
    extra: dict[str, Any] = field(default_factory=dict)  # Free-form package metadata
    install_path: str = ""  # Where the package's files live, if known

    @property
    def psr4_namespaces(self) -> dict[str, list[str]]:
        """PSR-4 namespaces mapped to a list of relative source paths."""
        namespaces = {}
        for namespace, paths in (self.autoload.get("psr-4") or {}).items():
            if isinstance(paths, str):
                paths = [paths]
            namespaces[namespace] = list(paths)
        return namespaces


@dataclass
class PackageOperation:
    """A single entry in the host's operation feed."""

    kind: OperationKind
    package: Package

    @property
    def package_name(self) -> str:
        return self.package.name

    @classmethod
    def from_dict(cls, data: dict) -> PackageOperation:
        """Build an operation from a feed record.

        Expected keys: ``operation``, ``name``, ``version`` and optionally
        ``autoload``, ``extra`` and ``install_path``.
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Operation record must be a mapping, got {type(data).__name__}")
        try:
            kind = OperationKind(data.get("operation", "install"))
        except ValueError:
            raise ValidationError(f"Unknown operation {data.get('operation')!r}") from None

        name = data.get("name")
        if not name or not isinstance(name, str):
            raise ValidationError("Operation record is missing a package 'name'")

        return cls(
            kind=kind,
            package=Package(
                name=name,
                version=str(data.get("version", "")),
                autoload=data.get("autoload") or {},
                extra=data.get("extra") or {},
                install_path=data.get("install_path", ""),
            ),
        )
