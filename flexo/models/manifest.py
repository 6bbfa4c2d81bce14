"""Recipe manifests — the closed set of configuration actions for a package.

A recipe document looks like::

    origin: "acme/mailer:1.2@github.com/acme/recipes:main"
    is_contrib: false
    manifest:
      register-modules:
        Acme\\MailerBundle\\AcmeMailerBundle: [all]
      set-env-vars:
        MAILER_DSN: "null://null"
      post-install-message:
        - "Configure the transport in %CONFIG_DIR%/packages/mailer.yaml"

Each manifest key maps to exactly one action type below. Unknown keys and
malformed payloads are rejected at parse time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from flexo.errors import ValidationError
from flexo.models.package import OperationKind

AUTO_GENERATED_SOURCE = "auto-generated recipe"
CONTRIB_MARKER = "recipes-contrib"

_PROVENANCE_RE = re.compile(r"^(?P<package>[^:]+):(?P<version>[^@]+)@(?P<source>.+)$")
_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


# --- Provenance ---


@dataclass(frozen=True)
class Provenance:
    """Where a recipe came from: ``<package>:<version>@<source>``."""

    package: str
    version: str
    source: str

    @classmethod
    def parse(cls, text: str) -> Provenance:
        match = _PROVENANCE_RE.match(text or "")
        if not match:
            raise ValidationError(
                f"Invalid recipe origin {text!r}, expected '<package>:<version>@<source>'"
            )
        return cls(**match.groupdict())

    @property
    def is_auto_generated(self) -> bool:
        return self.source == AUTO_GENERATED_SOURCE

    def describe(self) -> str:
        return f"{self.package} (>={self.version}): From {self.source}"

    def __str__(self) -> str:
        return f"{self.package}:{self.version}@{self.source}"


# --- Actions ---
#
# Every action can list the project resources it claims, as (kind, key)
# pairs, and can release the part of itself that nobody else claims. Files
# and module classes may be shared between packages; marker blocks belong to
# a single package.

Claim = tuple[str, str]


@dataclass(frozen=True)
class WriteFilesAction:
    """Create files in the project. Keys are target paths, values contents."""

    kind: ClassVar[str] = "write-files"
    files: dict[str, str] = field(default_factory=dict)

    def payload(self) -> Any:
        return dict(self.files)

    def claims(self, package_name: str) -> set[Claim]:
        return {(self.kind, target) for target in self.files}

    def release(self, package_name: str, kept: set[Claim]) -> WriteFilesAction | None:
        files = {t: c for t, c in self.files.items() if (self.kind, t) not in kept}
        return WriteFilesAction(files=files) if files else None


@dataclass(frozen=True)
class RegisterModulesAction:
    """Register module classes for a set of environments."""

    kind: ClassVar[str] = "register-modules"
    modules: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def payload(self) -> Any:
        return {cls: list(envs) for cls, envs in self.modules.items()}

    def claims(self, package_name: str) -> set[Claim]:
        return {(self.kind, cls) for cls in self.modules}

    def release(self, package_name: str, kept: set[Claim]) -> RegisterModulesAction | None:
        modules = {c: envs for c, envs in self.modules.items() if (self.kind, c) not in kept}
        return RegisterModulesAction(modules=modules) if modules else None


@dataclass(frozen=True)
class SetEnvVarsAction:
    """Add environment variables to the project's ``.env`` file."""

    kind: ClassVar[str] = "set-env-vars"
    variables: dict[str, str] = field(default_factory=dict)

    def payload(self) -> Any:
        return dict(self.variables)

    def claims(self, package_name: str) -> set[Claim]:
        return {(self.kind, package_name)}

    def release(self, package_name: str, kept: set[Claim]) -> SetEnvVarsAction | None:
        return None if (self.kind, package_name) in kept else self


@dataclass(frozen=True)
class GitignoreAction:
    """Add ignore patterns to the project's ``.gitignore``."""

    kind: ClassVar[str] = "gitignore"
    entries: tuple[str, ...] = ()

    def payload(self) -> Any:
        return list(self.entries)

    def claims(self, package_name: str) -> set[Claim]:
        return {(self.kind, package_name)}

    def release(self, package_name: str, kept: set[Claim]) -> GitignoreAction | None:
        return None if (self.kind, package_name) in kept else self


@dataclass(frozen=True)
class PostInstallMessageAction:
    """Lines shown to the operator once the whole batch is done."""

    kind: ClassVar[str] = "post-install-message"
    lines: tuple[str, ...] = ()

    def payload(self) -> Any:
        return list(self.lines)

    def claims(self, package_name: str) -> set[Claim]:
        return set()

    def release(self, package_name: str, kept: set[Claim]) -> None:
        # Nothing to undo once the message has been shown.
        return None


Action = Union[
    WriteFilesAction,
    RegisterModulesAction,
    SetEnvVarsAction,
    GitignoreAction,
    PostInstallMessageAction,
]

ACTION_TYPES: tuple[type, ...] = (
    WriteFilesAction,
    RegisterModulesAction,
    SetEnvVarsAction,
    GitignoreAction,
    PostInstallMessageAction,
)


# --- Manifest ---


@dataclass
class Manifest:
    """A parsed recipe bound to one package."""

    package_name: str
    provenance: str
    actions: tuple[Action, ...] = ()
    operation: OperationKind = OperationKind.INSTALL
    contrib: bool = False

    def __post_init__(self):
        if not self.package_name:
            raise ValidationError("Manifest package name must not be empty")

    @property
    def origin(self) -> Provenance:
        return Provenance.parse(self.provenance)

    @property
    def is_contrib(self) -> bool:
        if self.contrib:
            return True
        try:
            return CONTRIB_MARKER in self.origin.source
        except ValidationError:
            return False

    @property
    def kinds(self) -> list[str]:
        return [a.kind for a in self.actions]

    def get(self, action_type: type) -> Action | None:
        for action in self.actions:
            if isinstance(action, action_type):
                return action
        return None

    def claims(self) -> set[Claim]:
        """Every project resource this manifest's actions create."""
        claimed: set[Claim] = set()
        for action in self.actions:
            claimed |= action.claims(self.package_name)
        return claimed

    def release(self, kept: set[Claim]) -> Manifest:
        """The part of this manifest that can be undone when ``kept`` stays applied.

        Used on removal (``kept`` is what other packages still claim) and on
        update (``kept`` also holds what the newer recipe claims).
        """
        released = []
        for action in self.actions:
            remainder = action.release(self.package_name, kept)
            if remainder is not None:
                released.append(remainder)
        return Manifest(
            package_name=self.package_name,
            provenance=self.provenance,
            actions=tuple(released),
            operation=self.operation,
            contrib=self.contrib,
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "origin": self.provenance,
            "manifest": {a.kind: a.payload() for a in self.actions},
        }
        if self.contrib:
            data["is_contrib"] = True
        return data


def parse_manifest(
    package_name: str,
    data: dict,
    operation: OperationKind = OperationKind.INSTALL,
) -> Manifest:
    """Parse a recipe document into a Manifest.

    Raises:
        ValidationError: On a missing origin, an unknown action kind or a
            payload that does not match its kind.
    """
    if not isinstance(data, dict):
        raise ValidationError(f'Recipe for "{package_name}" must be a mapping')

    origin = data.get("origin")
    if not isinstance(origin, str):
        raise ValidationError(f'Recipe for "{package_name}" has no origin')
    Provenance.parse(origin)

    body = data.get("manifest") or {}
    if not isinstance(body, dict):
        raise ValidationError(f'Recipe manifest for "{package_name}" must be a mapping')

    parsers = {t.kind: _PARSERS[t] for t in ACTION_TYPES}
    actions = []
    for kind, payload in body.items():
        parser = parsers.get(kind)
        if parser is None:
            raise ValidationError(f'Recipe for "{package_name}" uses unknown action "{kind}"')
        actions.append(parser(package_name, payload))

    return Manifest(
        package_name=package_name,
        provenance=origin,
        actions=tuple(actions),
        operation=operation,
        contrib=bool(data.get("is_contrib", False)),
    )


# --- Payload parsers ---


def normalize_modules(package_name: str, declared: Any) -> dict[str, tuple[str, ...]]:
    """Validate a ``class -> environments`` declaration.

    Environments must be a list of strings. A mapping whose keys are all
    integer indexes (``{0: "all", 1: "test"}``) is accepted as the same
    list, ordered by index.
    """
    if not isinstance(declared, dict):
        raise ValidationError(
            f'Modules declared by "{package_name}" must be a mapping of class name '
            f"to environments, got {type(declared).__name__}"
        )

    modules: dict[str, tuple[str, ...]] = {}
    for class_name, envs in declared.items():
        if not isinstance(class_name, str) or not class_name:
            raise ValidationError(
                f'Module class names declared by "{package_name}" must be non-empty strings'
            )
        envs = _indexed_to_list(envs)
        if not isinstance(envs, (list, tuple)):
            raise ValidationError(
                f'Environments of module "{class_name}" in "{package_name}" must be a list, '
                f"got {type(envs).__name__}"
            )
        for env in envs:
            if not isinstance(env, str):
                raise ValidationError(
                    f'Environments of module "{class_name}" in "{package_name}" must be strings, '
                    f"got {type(env).__name__}"
                )
        modules[class_name] = tuple(dict.fromkeys(envs))
    return modules


def _indexed_to_list(value: Any) -> Any:
    if isinstance(value, dict) and value and all(_is_index(k) for k in value):
        return [value[k] for k in sorted(value, key=int)]
    return value


def _is_index(key: Any) -> bool:
    if isinstance(key, bool):
        return False
    if isinstance(key, int):
        return key >= 0
    return isinstance(key, str) and key.isdigit()


def _string_list(package_name: str, kind: str, payload: Any) -> tuple[str, ...]:
    if not isinstance(payload, list) or not all(isinstance(i, str) for i in payload):
        raise ValidationError(f'"{kind}" in recipe for "{package_name}" must be a list of strings')
    return tuple(payload)


def _parse_write_files(package_name: str, payload: Any) -> WriteFilesAction:
    if not isinstance(payload, dict):
        raise ValidationError(f'"write-files" in recipe for "{package_name}" must be a mapping')
    for target, content in payload.items():
        if not isinstance(target, str) or not target:
            raise ValidationError(f'"write-files" targets for "{package_name}" must be non-empty strings')
        if not isinstance(content, str):
            raise ValidationError(f'"write-files" content for "{target}" must be a string')
    return WriteFilesAction(files=dict(payload))


def _parse_register_modules(package_name: str, payload: Any) -> RegisterModulesAction:
    return RegisterModulesAction(modules=normalize_modules(package_name, payload))


def _parse_set_env_vars(package_name: str, payload: Any) -> SetEnvVarsAction:
    if not isinstance(payload, dict):
        raise ValidationError(f'"set-env-vars" in recipe for "{package_name}" must be a mapping')
    variables = {}
    for name, value in payload.items():
        if not isinstance(name, str) or not _ENV_NAME_RE.match(name):
            raise ValidationError(f'Invalid environment variable name {name!r} for "{package_name}"')
        if isinstance(value, (dict, list)):
            raise ValidationError(f'Environment variable "{name}" must be a scalar')
        if isinstance(value, bool):
            value = "true" if value else "false"
        variables[name] = "" if value is None else str(value)
    return SetEnvVarsAction(variables=variables)


def _parse_gitignore(package_name: str, payload: Any) -> GitignoreAction:
    return GitignoreAction(entries=_string_list(package_name, GitignoreAction.kind, payload))


def _parse_post_install_message(package_name: str, payload: Any) -> PostInstallMessageAction:
    if isinstance(payload, str):
        payload = payload.splitlines()
    return PostInstallMessageAction(
        lines=_string_list(package_name, PostInstallMessageAction.kind, payload)
    )


_PARSERS = {
    WriteFilesAction: _parse_write_files,
    RegisterModulesAction: _parse_register_modules,
    SetEnvVarsAction: _parse_set_env_vars,
    GitignoreAction: _parse_gitignore,
    PostInstallMessageAction: _parse_post_install_message,
}
