"""Tests for the configurator and its action handlers."""

import os
import tempfile
from pathlib import Path

import pytest
import yaml

from flexo.configurator import HANDLERS, Configurator
from flexo.errors import ActionExecutionError
from flexo.models.manifest import ACTION_TYPES, parse_manifest
from flexo.options import Options
from flexo.report import DeferredMessageQueue


def _configurator(root: str, **options) -> Configurator:
    values = {"root-dir": root, "config-dir": "config", "var-dir": "var"}
    values.update(options)
    return Configurator(Options(values), DeferredMessageQueue())


def _manifest(name: str = "acme/mailer", **actions):
    return parse_manifest(name, {"origin": f"{name}:1.0@github.com/acme/recipes:main", "manifest": actions})


def test_every_action_type_has_a_handler():
    assert set(HANDLERS) == set(ACTION_TYPES)


# --- write-files ---


def test_write_files_creates_and_removes():
    with tempfile.TemporaryDirectory() as tmpdir:
        configurator = _configurator(tmpdir)
        manifest = _manifest(**{
            "write-files": {"%CONFIG_DIR%/packages/mailer.yaml": "spool: '%VAR_DIR%/spool'\n"},
        })

        configurator.install(manifest)
        target = Path(tmpdir) / "config" / "packages" / "mailer.yaml"
        assert target.read_text() == "spool: 'var/spool'\n"

        configurator.uninstall(manifest)
        assert not target.exists()
        configurator.uninstall(manifest)  # already gone


def test_write_files_keeps_existing_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        target = Path(tmpdir) / "config" / "mailer.yaml"
        target.parent.mkdir()
        target.write_text("edited by hand\n")

        _configurator(tmpdir).install(_manifest(**{"write-files": {"config/mailer.yaml": "default\n"}}))
        assert target.read_text() == "edited by hand\n"


def test_write_files_refuses_paths_outside_project():
    with tempfile.TemporaryDirectory() as tmpdir:
        project = Path(tmpdir) / "project"
        project.mkdir()
        manifest = _manifest(**{"write-files": {"../escape.txt": "x"}})

        with pytest.raises(ActionExecutionError) as exc_info:
            _configurator(str(project)).install(manifest)
        assert exc_info.value.kind == "write-files"
        assert exc_info.value.package_name == "acme/mailer"
        assert not (Path(tmpdir) / "escape.txt").exists()


# --- register-modules ---


def test_register_modules_adds_and_removes():
    with tempfile.TemporaryDirectory() as tmpdir:
        configurator = _configurator(tmpdir)
        mailer = _manifest(**{"register-modules": {"Acme\\MailerBundle\\AcmeMailerBundle": ["all"]}})
        debug = _manifest("acme/debug", **{"register-modules": {"Acme\\DebugBundle\\AcmeDebugBundle": ["dev", "test"]}})

        configurator.install(mailer)
        configurator.install(debug)
        configurator.install(mailer)

        path = Path(tmpdir) / "config" / "modules.yaml"
        with open(path) as f:
            assert yaml.safe_load(f) == {
                "Acme\\MailerBundle\\AcmeMailerBundle": ["all"],
                "Acme\\DebugBundle\\AcmeDebugBundle": ["dev", "test"],
            }

        configurator.uninstall(mailer)
        with open(path) as f:
            assert yaml.safe_load(f) == {"Acme\\DebugBundle\\AcmeDebugBundle": ["dev", "test"]}


def test_register_modules_rejects_corrupt_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "config" / "modules.yaml"
        path.parent.mkdir()
        path.write_text("- not\n- a mapping\n")

        with pytest.raises(ActionExecutionError):
            _configurator(tmpdir).install(_manifest(**{"register-modules": {"A\\ABundle": ["all"]}}))
        assert path.read_text() == "- not\n- a mapping\n"


# --- set-env-vars ---


def test_env_block_is_written_once():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = Path(tmpdir) / ".env"
        env.write_text("APP_ENV=dev\n")
        configurator = _configurator(tmpdir)
        manifest = _manifest(**{"set-env-vars": {"MAILER_DSN": "null://null", "SPOOL": "%VAR_DIR%/spool"}})

        configurator.install(manifest)
        configurator.install(manifest)

        assert env.read_text() == (
            "APP_ENV=dev\n"
            "\n"
            "###> acme/mailer ###\n"
            "MAILER_DSN=null://null\n"
            "SPOOL=var/spool\n"
            "###< acme/mailer ###\n"
        )


def test_env_block_is_replaced_in_place():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = Path(tmpdir) / ".env"
        configurator = _configurator(tmpdir)
        configurator.install(_manifest(**{"set-env-vars": {"MAILER_DSN": "null://null"}}))
        configurator.install(_manifest("acme/queue", **{"set-env-vars": {"QUEUE_DSN": "sync://"}}))
        configurator.install(_manifest(**{"set-env-vars": {"MAILER_DSN": "smtp://localhost"}}))

        assert env.read_text() == (
            "###> acme/mailer ###\n"
            "MAILER_DSN=smtp://localhost\n"
            "###< acme/mailer ###\n"
            "\n"
            "###> acme/queue ###\n"
            "QUEUE_DSN=sync://\n"
            "###< acme/queue ###\n"
        )


def test_env_block_removal_keeps_other_content():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = Path(tmpdir) / ".env"
        env.write_text("APP_ENV=dev\n")
        configurator = _configurator(tmpdir)
        manifest = _manifest(**{"set-env-vars": {"MAILER_DSN": "null://null"}})

        configurator.install(manifest)
        configurator.uninstall(manifest)
        assert env.read_text() == "APP_ENV=dev\n"

        configurator.uninstall(manifest)
        assert env.read_text() == "APP_ENV=dev\n"


# --- gitignore ---


def test_gitignore_block():
    with tempfile.TemporaryDirectory() as tmpdir:
        configurator = _configurator(tmpdir)
        manifest = _manifest(**{"gitignore": ["/%VAR_DIR%/", "/.env.local"]})

        configurator.install(manifest)
        gitignore = Path(tmpdir) / ".gitignore"
        assert gitignore.read_text() == (
            "###> acme/mailer ###\n"
            "/var/\n"
            "/.env.local\n"
            "###< acme/mailer ###\n"
        )

        configurator.uninstall(manifest)
        assert gitignore.read_text() == ""


# --- post-install-message ---


def test_messages_are_queued_not_printed(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        configurator = _configurator(tmpdir)
        configurator.install(_manifest(**{"post-install-message": ["line 1 %CONFIG_DIR%", "line 2 %VAR_DIR%"]}))

        assert capsys.readouterr().out == ""
        blocks = configurator.messages.blocks
        assert len(blocks) == 1
        assert blocks[0].package_name == "acme/mailer"
        assert blocks[0].lines == ["line 1 config", "line 2 var"]

        configurator.uninstall(_manifest(**{"post-install-message": ["bye"]}))
        assert len(configurator.messages) == 1


# --- Failure handling ---


@pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
def test_failure_stops_remaining_actions():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_dir = Path(tmpdir) / "config"
        config_dir.mkdir()
        config_dir.chmod(0o500)
        try:
            configurator = _configurator(tmpdir)
            manifest = _manifest(**{
                "gitignore": ["/var/"],
                "write-files": {"config/mailer.yaml": "x"},
                "post-install-message": ["never queued"],
            })
            with pytest.raises(ActionExecutionError) as exc_info:
                configurator.install(manifest)
        finally:
            config_dir.chmod(0o700)

        assert exc_info.value.kind == "write-files"
        assert (Path(tmpdir) / ".gitignore").exists()
        assert len(configurator.messages) == 0


def test_failure_drops_messages_queued_earlier():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "config").write_text("a file where a directory should be")
        configurator = _configurator(tmpdir)
        manifest = _manifest(**{
            "post-install-message": ["configure me"],
            "write-files": {"config/mailer.yaml": "x"},
        })

        with pytest.raises(ActionExecutionError):
            configurator.install(manifest)
        assert len(configurator.messages) == 0

        configurator.install(_manifest("acme/queue", **{"post-install-message": ["queue ready"]}))
        assert [b.package_name for b in configurator.messages.blocks] == ["acme/queue"]


def test_failure_on_unwritable_target():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "config").write_text("a file where a directory should be")
        configurator = _configurator(tmpdir)

        with pytest.raises(ActionExecutionError):
            configurator.install(_manifest(**{"write-files": {"config/mailer.yaml": "x"}}))
