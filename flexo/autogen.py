"""Auto-generated recipes — manifests derived from a package's own metadata.

When the catalog has no recipe for a package, the package can still ask for
its modules to be registered, either explicitly::

    extra:
      flexo:
        modules:
          Acme\\Mailer\\AcmeMailerBundle: [all]

or implicitly through a PSR-4 namespace whose last segment names a bundle
(``Acme\\MailerBundle\\`` → ``Acme\\MailerBundle\\MailerBundle``).
"""

from __future__ import annotations

import logging
from pathlib import Path

from flexo.models.manifest import (
    AUTO_GENERATED_SOURCE,
    Manifest,
    RegisterModulesAction,
    normalize_modules,
)
from flexo.models.package import OperationKind, Package

logger = logging.getLogger(__name__)

MODULE_SUFFIX = "Bundle"
DEFAULT_ENVIRONMENTS = ("all",)
CLASS_FILE_EXTENSION = ".php"

# Sections of ``extra`` that may declare modules. The first one found wins.
EXTRA_SECTIONS = (("flexo", "modules"), ("symfony", "bundles"))


def generate_manifest(
    package: Package,
    operation: OperationKind = OperationKind.INSTALL,
) -> Manifest | None:
    """Build a manifest from the package's declared modules.

    Returns None when there is nothing to register, including an explicitly
    empty declaration.

    Raises:
        ValidationError: If the explicit declaration is malformed.
    """
    declared = _declared_modules(package)
    if isinstance(declared, (list, dict)) and not declared:
        # JSON writers emit [] for an empty PHP array
        return None
    if declared is not None:
        modules = normalize_modules(package.name, declared)
    else:
        modules = {cls: DEFAULT_ENVIRONMENTS for cls in discover_module_classes(package)}

    if not modules:
        return None

    logger.debug("Auto-generated recipe for %s registers %s", package.name, ", ".join(modules))
    return Manifest(
        package_name=package.name,
        provenance=f"{package.name}:{package.version}@{AUTO_GENERATED_SOURCE}",
        actions=(RegisterModulesAction(modules=modules),),
        operation=operation,
    )


def discover_module_classes(package: Package) -> list[str]:
    """Find at most one module class per PSR-4 namespace of the package."""
    classes = []
    for namespace, paths in package.psr4_namespaces.items():
        candidates = candidate_class_names(namespace)
        if not candidates:
            continue
        if package.install_path:
            found = _first_existing(package, namespace, paths, candidates)
            if found:
                classes.append(found)
        elif namespace.strip("\\").endswith(MODULE_SUFFIX):
            classes.append(candidates[0])
    return classes[:1]


def candidate_class_names(namespace: str) -> list[str]:
    """Possible module class names for a namespace, most likely first.

    For ``Acme\\Mail\\MailerBundle\\``::

        Acme\\Mail\\MailerBundle\\MailerBundle
        Acme\\Mail\\MailerBundle\\AcmeMailerBundle
        Acme\\Mail\\MailerBundle\\AcmeMailMailerBundle
        ...
    """
    namespace = namespace.strip("\\")
    if not namespace:
        return []
    parts = namespace.split("\\")
    suffix = parts[-1]
    if not suffix.endswith(MODULE_SUFFIX):
        suffix += MODULE_SUFFIX

    prefix = namespace + "\\"
    classes = [prefix + suffix]
    acc = ""
    for part in parts[:-1]:
        if part == MODULE_SUFFIX:
            continue
        classes.append(prefix + part + suffix)
        acc += part
        classes.append(prefix + acc + suffix)
    return list(dict.fromkeys(classes))


def _declared_modules(package: Package):
    for section, key in EXTRA_SECTIONS:
        scope = package.extra.get(section)
        if isinstance(scope, dict) and key in scope:
            return scope[key]
    return None


def _first_existing(package: Package, namespace: str, paths: list[str], candidates: list[str]) -> str | None:
    root = Path(package.install_path)
    prefix_len = len(namespace.strip("\\")) + 1
    for class_name in candidates:
        relative = class_name[prefix_len:].replace("\\", "/") + CLASS_FILE_EXTENSION
        for path in paths:
            if (root / path / relative).is_file():
                return class_name
    return None
