"""flexo CLI — run recipe operations for a project and inspect applied recipes."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import closing
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from flexo import __version__

console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__)
def main():
    """flexo — recipe-driven post-install configuration.

    Applies configuration recipes for packages your package manager just
    installed, updated or removed, and keeps track of what was applied.
    """


# ── Run ──────────────────────────────────────────────────────────────


@main.command()
@click.argument("operations_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--project", "-p", default=".", type=click.Path(file_okay=False), help="Project directory")
@click.option("--catalog", "-c", default=None, help="Recipe catalog directory or URL")
@click.option("--allow-contrib/--no-allow-contrib", default=None, help="Apply contributed recipes")
@click.option("--strict/--no-strict", default=None, help="Abort on the first package error")
@click.option("--verbose", "-v", is_flag=True, help="Log every decision")
def run(
    operations_file: str,
    project: str,
    catalog: str | None,
    allow_contrib: bool | None,
    strict: bool | None,
    verbose: bool,
):
    """Apply recipes for the operations listed in OPERATIONS_FILE.

    OPERATIONS_FILE is a YAML or JSON list of records such as
    {operation: install, name: acme/mailer, version: 1.2.0}.
    """
    from flexo.catalog import open_catalog
    from flexo.engine import Engine
    from flexo.errors import FlexoError
    from flexo.models.package import PackageOperation

    _configure_logging(verbose)

    try:
        records = _read_operations(operations_file)
        with closing(open_catalog(catalog)) as client:
            engine = Engine.for_project(
                project,
                catalog=client,
                overrides={"allow-contrib": allow_contrib, "strict": strict},
            )
            for record in records:
                engine.record(PackageOperation.from_dict(record))
            report = engine.run()
    except FlexoError as e:
        err_console.print(f"[red]Error:[/] {e}")
        sys.exit(2)

    for line in report.summary_lines():
        console.print(line, markup=False, highlight=False, soft_wrap=True)
    for line in report.messages:
        console.print(line, markup=False, highlight=False, soft_wrap=True)

    sys.exit(report.exit_code)


# ── Recipes ──────────────────────────────────────────────────────────


@main.command()
@click.option("--project", "-p", default=".", type=click.Path(file_okay=False), help="Project directory")
def recipes(project: str):
    """List the recipes currently applied to a project."""
    from flexo.errors import StoreCorruptionError
    from flexo.lock import LockStore

    try:
        entries = LockStore.for_project(project).load().entries()
    except StoreCorruptionError as e:
        err_console.print(f"[red]Error:[/] {e}")
        sys.exit(2)

    if not entries:
        console.print("[yellow]No recipes applied.[/]")
        return

    table = Table(title=f"Applied recipes ({len(entries)})")
    table.add_column("Package", style="cyan")
    table.add_column("Version")
    table.add_column("Recipe")

    for entry in entries:
        table.add_row(entry.package_name, entry.version, entry.recipe_provenance)

    console.print(table)


def _read_operations(path: str) -> list[dict]:
    from flexo.errors import ValidationError

    try:
        with open(path) as f:
            if Path(path).suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValidationError(f"Cannot parse {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("operations", [])
    if not isinstance(data, list):
        raise ValidationError(f"{path} must contain a list of operations")
    return data


if __name__ == "__main__":
    main()
