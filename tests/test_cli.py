"""Tests for the flexo command line."""

import json
import tempfile
from pathlib import Path

import yaml
from click.testing import CliRunner

from flexo.catalog import NullCatalog
from flexo.cli import main


def _catalog(root: Path) -> Path:
    catalog = root / "recipes"
    recipe = catalog / "dummy" / "dummy" / "1.0"
    recipe.mkdir(parents=True)
    (catalog / "index.yaml").write_text("source: github.com/symfony/recipes\nref: master\n")
    with open(recipe / "manifest.yaml", "w") as f:
        yaml.dump({
            "write-files": {"%CONFIG_DIR%/packages/dummy.yaml": "dummy: ~\n"},
            "post-install-message": ["line 1 %CONFIG_DIR%", "line 2 %VAR_DIR%"],
        }, f)
    return catalog


def _operations(root: Path, records: list) -> Path:
    path = root / "operations.yaml"
    with open(path, "w") as f:
        yaml.dump(records, f)
    return path


def test_run_applies_recipes_and_prints_report():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        project = root / "project"
        project.mkdir()
        catalog = _catalog(root)
        ops = _operations(root, [{"operation": "install", "name": "dummy/dummy", "version": "1.0.0"}])

        result = CliRunner().invoke(main, ["run", str(ops), "-p", str(project), "-c", str(catalog)])

        assert result.exit_code == 0, result.output
        assert "  - Configuring dummy/dummy (>=1.0): From github.com/symfony/recipes:master" in result.output
        assert "Please review, edit and commit them: these files are yours." in result.output
        assert result.output.rstrip().endswith("line 1 config\nline 2 var")
        assert (project / "config" / "packages" / "dummy.yaml").read_text() == "dummy: ~\n"

        lock = json.loads((project / "flexo.lock").read_text())
        assert lock["dummy/dummy"]["recipe_provenance"] == "dummy/dummy:1.0@github.com/symfony/recipes:master"


def test_run_reads_json_operations():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        ops = root / "operations.json"
        ops.write_text(json.dumps({"operations": [{
            "name": "symfony/debug-bundle",
            "version": "5.4.0",
            "extra": {"flexo": {"modules": {"Symfony\\Bundle\\DebugBundle\\DebugBundle": ["dev"]}}},
        }]}))

        result = CliRunner().invoke(main, ["run", str(ops), "-p", str(root)])

        assert result.exit_code == 0, result.output
        assert "From auto-generated recipe" in result.output
        with open(root / "config" / "modules.yaml") as f:
            assert yaml.safe_load(f) == {"Symfony\\Bundle\\DebugBundle\\DebugBundle": ["dev"]}


def test_run_with_invalid_package_exits_1():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        ops = _operations(root, [{"name": "dummy/dummy3", "version": "1.0", "extra": {"flexo": {"modules": "BundleName"}}}])

        result = CliRunner().invoke(main, ["run", str(ops), "-p", str(root)])

        assert result.exit_code == 1
        assert "  - Failed dummy/dummy3: " in result.output


def test_run_with_bad_operations_file_exits_2():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        ops = root / "operations.yaml"
        ops.write_text("name: [unclosed")

        result = CliRunner().invoke(main, ["run", str(ops), "-p", str(root)])
        assert result.exit_code == 2

        ops.write_text("- operation: purge\n  name: acme/mailer\n")
        result = CliRunner().invoke(main, ["run", str(ops), "-p", str(root)])
        assert result.exit_code == 2


def test_run_with_corrupt_lock_exits_2():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "flexo.lock").write_text("[]")
        ops = _operations(root, [{"name": "dummy/dummy", "version": "1.0"}])

        result = CliRunner().invoke(main, ["run", str(ops), "-p", str(root)])

        assert result.exit_code == 2
        assert (root / "flexo.lock").read_text() == "[]"


def test_run_with_malformed_catalog_index_exits_2():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        catalog = root / "recipes"
        catalog.mkdir()
        (catalog / "index.yaml").write_text("source: [unclosed")
        ops = _operations(root, [{"name": "dummy/dummy", "version": "1.0"}])

        result = CliRunner().invoke(main, ["run", str(ops), "-p", str(root), "-c", str(catalog)])

        assert result.exit_code == 2
        assert "Cannot read catalog index" in result.output


class RecordingCatalog(NullCatalog):
    closed = False

    def close(self):
        self.closed = True


def test_run_closes_the_catalog(monkeypatch):
    catalog = RecordingCatalog()
    monkeypatch.setattr("flexo.catalog.open_catalog", lambda location: catalog)
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        ops = _operations(root, [{"name": "dummy/dummy", "version": "1.0"}])

        result = CliRunner().invoke(main, ["run", str(ops), "-p", str(root), "-c", "https://recipes.example.com"])

        assert result.exit_code == 0, result.output
        assert catalog.closed


def test_recipes_lists_lock_entries():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        project = root / "project"
        project.mkdir()
        ops = _operations(root, [{"name": "dummy/dummy", "version": "1.0.0"}])
        CliRunner().invoke(main, ["run", str(ops), "-p", str(project), "-c", str(_catalog(root))])

        result = CliRunner().invoke(main, ["recipes", "-p", str(project)])

        assert result.exit_code == 0
        assert "dummy/dummy" in result.output
        assert "1.0.0" in result.output


def test_recipes_without_lock():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = CliRunner().invoke(main, ["recipes", "-p", tmpdir])
        assert result.exit_code == 0
        assert "No recipes applied." in result.output
