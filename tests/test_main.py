"""End-to-end tests for command execution.

Each test drives LingoMirrorMain through parsed arguments against a YAML
store and host inventory in a temporary directory.
"""

import argparse
import threading
from unittest.mock import patch

import pytest

from lingomirror.cli import build_config_manager, parse_arguments
from lingomirror.main import LingoMirrorMain, run_lingomirror


@pytest.fixture
def run(temp_dir, quiet_logger, capsys):
    """Run one command and return (exit code, stdout, stderr)."""

    def runner(*argv, cancelled=False):
        args = parse_arguments(
            ["--store", str(temp_dir / "mirrors.yaml"), "--host", str(temp_dir / "host.yaml"), *argv]
        )
        config = build_config_manager(args)
        with patch.object(LingoMirrorMain, "setup_signal_handlers"):
            if cancelled:
                main = LingoMirrorMain(args, config, quiet_logger)
                main.cancel.set()
                code = main.run()
            else:
                code = run_lingomirror(args, config, quiet_logger)
        out, err = capsys.readouterr()
        return code, out, err

    return runner


@pytest.fixture
def configured(run, source_dir, mirror_base):
    """A Movies library mirrored into Portuguese, with one assigned user."""
    assert run("libraries", "add", "Movies", str(source_dir), "--type", "movies")[0] == 0
    assert run("alternatives", "add", "Portuguese", "pt-BR", str(mirror_base))[0] == 0
    assert run("mirrors", "add", "Portuguese", "Movies")[0] == 0
    assert run("users", "add", "alice")[0] == 0
    assert run("users", "assign", "alice", "Portuguese")[0] == 0
    return mirror_base / "movies"


class TestWorkflow:
    """Test a full management session."""

    def test_mirror_created_on_disk(self, configured):
        assert (configured / "Film (2020)" / "film.mkv").is_file()
        assert not (configured / "Film (2020)" / "poster.jpg").exists()

    def test_state_persisted(self, configured, temp_dir):
        assert (temp_dir / "mirrors.yaml").is_file()
        assert (temp_dir / "host.yaml").is_file()

    def test_listings(self, run, configured):
        code, out, _ = run("alternatives", "list")
        assert code == 0
        assert "Portuguese  pt-BR" in out
        assert "Movies -> Movies (Portuguese)  [synced]  3 files" in out

        _, out, _ = run("libraries", "list")
        assert "Movies  [source]" in out
        assert "Movies (Portuguese)  [mirror of" in out

        _, out, _ = run("users", "list")
        assert "alice  Portuguese  [managed]" in out

    def test_sync_all_and_one_alternative(self, run, configured, source_dir):
        (source_dir / "new.mkv").write_text("new")

        assert run("sync")[0] == 0
        assert (configured / "new.mkv").is_file()

        code, out, _ = run("sync", "Portuguese")
        assert code == 0
        assert "completed: 1/1 synced" in out

    def test_cancelled_sync(self, run, configured):
        assert run("sync", "Portuguese", cancelled=True)[0] == 130

    def test_validate(self, run, configured, mirror_base):
        code, out, _ = run("validate", "Movies", str(configured))
        assert code == 1
        assert "Target directory must be empty" in out

        code, out, _ = run("validate", "Movies", str(mirror_base / "other"))
        assert code == 0
        assert out.strip() == "valid"

    def test_assign_default_and_clear(self, run, configured):
        assert run("users", "assign", "ALICE", "default", "--manual")[0] == 0
        _, out, _ = run("users", "list")
        assert "alice  default  [managed]" in out
        assert run("users", "clear", "alice")[0] == 0

    def test_remove_source_library_cleans_mirror(self, run, configured):
        code, out, _ = run("libraries", "remove", "Movies")

        assert code == 0
        assert "cleaned 1 mirrors" in out
        assert not configured.exists()

    def test_cleanup_without_orphans(self, run, configured):
        code, out, _ = run("cleanup")
        assert code == 0
        assert out == ""

    def test_remove_mirror_and_alternative(self, run, configured):
        assert run("mirrors", "remove", "Portuguese", "Movies", "--delete-library", "--delete-files")[0] == 0
        assert not configured.exists()

        code, out, _ = run("alternatives", "remove", "Portuguese")
        assert code == 0
        assert "Deleted Portuguese and 0 mirrors" in out

    def test_user_management(self, run, configured):
        assert run("users", "reconcile")[0] == 0
        code, out, _ = run("users", "enable-all")
        assert code == 0
        assert "Enabled 0 users" in out
        assert run("users", "disable", "alice", "--restore-full-access")[0] == 0
        assert run("users", "remove", "alice")[0] == 0
        _, out, _ = run("users", "list")
        assert "alice" not in out


class TestErrors:
    """Test error exit codes."""

    def test_unknown_user(self, run, configured):
        code, _, err = run("users", "assign", "bob", "Portuguese")
        assert code == 1
        assert "User not found: bob" in err

    def test_unknown_mirror(self, run):
        code, _, err = run("mirrors", "sync", "missing")
        assert code == 1
        assert "not found" in err

    def test_duplicate_alternative(self, run, mirror_base):
        assert run("alternatives", "add", "Portuguese", "pt", str(mirror_base))[0] == 0
        code, _, err = run("alternatives", "add", "portuguese", "pt", str(mirror_base))
        assert code == 1
        assert "already exists" in err

    def test_invalid_language_code(self, run, mirror_base):
        assert run("alternatives", "add", "Portuguese", "not a code", str(mirror_base))[0] == 1

    def test_corrupt_host_inventory(self, run, temp_dir):
        (temp_dir / "host.yaml").write_text("libraries: [")
        code, _, err = run("libraries", "list")
        assert code == 1
        assert "Error:" in err

    def test_unknown_command(self, temp_dir, quiet_logger):
        config = build_config_manager(parse_arguments(["--store", str(temp_dir / "m.yaml"), "sync"]))
        main = LingoMirrorMain(argparse.Namespace(command="bogus", action=None), config, quiet_logger)
        assert main.execute() == 1


class TestSignals:
    def test_signal_sets_cancel(self, temp_dir, quiet_logger):
        args = parse_arguments(["sync"])
        main = LingoMirrorMain(args, build_config_manager(args), quiet_logger)

        with patch("lingomirror.main.signal.signal") as register:
            main.setup_signal_handlers()

        handler = register.call_args_list[0].args[1]
        handler(15, None)
        assert main.cancel.is_set()


class TestComponents:
    def _main(self, temp_dir, quiet_logger):
        args = parse_arguments(["--store", str(temp_dir / "m.yaml"), "--host", str(temp_dir / "h.yaml"), "sync"])
        main = LingoMirrorMain(args, build_config_manager(args), quiet_logger)
        main.initialize_components()
        return main

    def test_ghost_threshold_defaults_to_stored_setting(self, temp_dir, quiet_logger):
        assert self._main(temp_dir, quiet_logger).orphans.ghost_threshold_minutes is None

    def test_ghost_threshold_from_environment(self, temp_dir, quiet_logger, monkeypatch):
        monkeypatch.setenv("LINGOMIRROR_MIRROR__GHOST_THRESHOLD_MINUTES", "5")
        assert self._main(temp_dir, quiet_logger).orphans.ghost_threshold_minutes == 5

    def test_run_leaves_no_background_threads(self, run, configured):
        before = threading.active_count()
        assert run("sync")[0] == 0
        assert threading.active_count() == before
