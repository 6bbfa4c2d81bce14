"""Engine — turns a batch of package operations into configuration changes.

A run has three phases:

1. Recording: the host reports each installed, updated or removed package.
   Nothing is touched yet.
2. Applying: installs and updates, in the order they were recorded. Each
   package gets a manifest from the catalog (or an auto-generated one). An
   unchanged provenance in the lock means the recipe is already applied; a
   changed one first undoes what the previous recipe created and the new one
   no longer does.
3. Unapplying: removals, in the order they were recorded, reversing the
   manifest stored in the lock when the recipe was applied.

Files and module classes that another applied recipe also claims are never
undone. The lock is written once at the end, only if it changed, and recipe
messages are flushed into a single report.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from flexo.autogen import generate_manifest
from flexo.catalog.base import CatalogClient, NullCatalog
from flexo.configurator import Configurator
from flexo.errors import (
    ActionExecutionError,
    CatalogUnavailableError,
    FlexoError,
    ValidationError,
)
from flexo.lock import LockEntry, LockStore
from flexo.models.manifest import Manifest, Provenance, parse_manifest
from flexo.models.package import OperationKind, PackageOperation
from flexo.options import Options, load_options
from flexo.report import DeferredMessageQueue, RunReport

logger = logging.getLogger(__name__)


class Engine:
    """Orchestrates recipe resolution, application and removal for one project."""

    def __init__(
        self,
        lock: LockStore,
        configurator: Configurator,
        catalog: CatalogClient,
        options: Options,
        messages: DeferredMessageQueue,
    ):
        self.lock = lock
        self.configurator = configurator
        self.catalog = catalog
        self.options = options
        self._messages = messages
        self._operations: list[PackageOperation] = []

    @classmethod
    def for_project(
        cls,
        project_dir: str | Path,
        catalog: CatalogClient | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> Engine:
        """Wire an engine with the default collaborators for a project directory."""
        options = load_options(project_dir, overrides)
        messages = DeferredMessageQueue()
        return cls(
            lock=LockStore.for_project(project_dir),
            configurator=Configurator(options, messages),
            catalog=catalog or NullCatalog(),
            options=options,
            messages=messages,
        )

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(self, operation: PackageOperation) -> None:
        """Remember an operation for the next run. Has no side effects."""
        logger.debug("Recorded %s of %s", operation.kind.value, operation.package_name)
        self._operations.append(operation)

    @property
    def recorded(self) -> list[PackageOperation]:
        return list(self._operations)

    @property
    def messages(self) -> DeferredMessageQueue:
        return self._messages

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def run(self) -> RunReport:
        """Process every recorded operation and return the report.

        Raises:
            StoreCorruptionError: If the lock file cannot be read. Nothing is
                changed in that case.
            FlexoError: In strict mode, the first per-package error. The lock
                is still written for packages processed before it.
        """
        self.lock.load()
        catalog_enabled = self.catalog.is_enabled()
        if not catalog_enabled:
            logger.info("Recipe catalog disabled, only auto-generated recipes will be used")

        report = RunReport(session_id=self.catalog.session_id if catalog_enabled else "")
        installs = [op for op in self._operations if not op.kind.removes]
        removals = [op for op in self._operations if op.kind.removes]

        try:
            for operation in installs:
                self._apply(operation, catalog_enabled, report)
            for operation in removals:
                self._unapply(operation, report)
        finally:
            self.lock.persist()
            self._operations.clear()
            report.messages = self._messages.flush()

        logger.info(
            "Run finished: %d configured, %d unconfigured, %d failed",
            len(report.configured),
            len(report.unconfigured),
            len(report.failures),
        )
        return report

    def resolve(self, operation: PackageOperation, catalog_enabled: bool = True) -> Manifest | None:
        """Find the manifest for an install or update.

        The catalog wins; without a catalog recipe the package's own metadata
        may produce an auto-generated one. Contributed recipes are dropped
        unless ``allow-contrib`` is set.

        Raises:
            ValidationError: If the recipe or the package metadata is malformed.
            CatalogUnavailableError: If the catalog is down and
                ``catalog-authoritative`` is set.
        """
        package = operation.package
        manifest = None
        if catalog_enabled:
            try:
                manifest = self.catalog.resolve(package, operation.kind)
            except CatalogUnavailableError as e:
                if self.options.flag("catalog-authoritative"):
                    raise
                logger.warning("%s; trying an auto-generated recipe for %s", e, package.name)

        if manifest is not None and manifest.is_contrib and not self.options.flag("allow-contrib"):
            logger.warning(
                "Ignoring contributed recipe %s (set allow-contrib to apply it)", manifest.provenance
            )
            return None

        if manifest is None:
            manifest = generate_manifest(package, operation.kind)
        return manifest

    def _apply(self, operation: PackageOperation, catalog_enabled: bool, report: RunReport) -> None:
        package = operation.package
        try:
            manifest = self.resolve(operation, catalog_enabled)
        except (ValidationError, CatalogUnavailableError) as e:
            self._fail(report, package.name, e)
            return

        if manifest is None:
            logger.debug("No recipe for %s", package.name)
            report.add(package.name, "skipped", "no recipe")
            return

        entry = self.lock.get(package.name)
        if entry is not None and entry.recipe_provenance == manifest.provenance:
            logger.info("Recipe %s already applied", manifest.provenance)
            report.add(package.name, "skipped", "already configured")
            return

        stale = None
        if entry is not None and entry.manifest:
            try:
                previous = parse_manifest(package.name, entry.manifest, operation.kind)
                stale = previous.release(manifest.claims() | self._claimed_by_others(package.name))
            except ValidationError as e:
                self._fail(report, package.name, e)
                return

        try:
            if stale is not None and stale.actions:
                logger.info("Undoing %s from %s", ", ".join(stale.kinds), entry.recipe_provenance)
                self.configurator.uninstall(stale)
            self.configurator.install(manifest)
        except ActionExecutionError as e:
            self._fail(report, package.name, e)
            return

        self.lock.put(
            package.name,
            LockEntry(
                package_name=package.name,
                recipe_provenance=manifest.provenance,
                version=package.version,
                manifest=manifest.to_dict(),
            ),
        )
        report.add(package.name, "configured", manifest.origin.describe())

    def _unapply(self, operation: PackageOperation, report: RunReport) -> None:
        name = operation.package_name
        entry = self.lock.get(name)
        if entry is None:
            logger.debug("No applied recipe for %s", name)
            return

        try:
            manifest = None
            if entry.manifest:
                manifest = parse_manifest(name, entry.manifest, OperationKind.UNINSTALL)
                manifest = manifest.release(self._claimed_by_others(name))
            description = Provenance.parse(entry.recipe_provenance).describe()
        except ValidationError as e:
            self._fail(report, name, e)
            return

        if manifest is not None:
            try:
                self.configurator.uninstall(manifest)
            except ActionExecutionError as e:
                self._fail(report, name, e)
                return

        self.lock.remove(name)
        report.add(name, "unconfigured", description)

    def _claimed_by_others(self, package_name: str) -> set:
        """Resources still claimed by recipes applied to other packages.

        Raises:
            ValidationError: If another lock entry holds a malformed manifest.
        """
        claimed = set()
        for entry in self.lock.entries():
            if entry.package_name == package_name or not entry.manifest:
                continue
            claimed |= parse_manifest(entry.package_name, entry.manifest).claims()
        return claimed

    def _fail(self, report: RunReport, package_name: str, error: FlexoError) -> None:
        logger.error("%s: %s", package_name, error)
        report.add(package_name, "failed", str(error))
        if self.options.flag("strict"):
            raise error
