"""Tests for the command-line interface."""
import pytest

from cutler import cli
from cutler.config import default_config_text, parse_config
from cutler.config_engine import ConfigEngine
from cutler.snapshot.store import SnapshotStore

from conftest import FakePreferenceStore, RecordingRestarter, RecordingRunner

CONFIG = """\
[set.dock]
tilesize = 50
autohide = true

[command.hello]
run = "echo hello"
"""


@pytest.fixture
def restarter():
    return RecordingRestarter()


@pytest.fixture
def cli_env(tmp_path, monkeypatch, restarter):
    """Run the CLI against a fake store and a temp config file."""
    config_path = tmp_path / "cutler.toml"
    config_path.write_text(CONFIG)

    store = FakePreferenceStore(domains={"com.apple.dock"})
    snapshots = SnapshotStore(tmp_path / "snapshot.json")
    runner = RecordingRunner()

    monkeypatch.setattr(
        cli, "build_engine",
        lambda args: ConfigEngine(store=store, snapshot_store=snapshots, runner=runner),
    )
    monkeypatch.setattr(cli, "ExternalRunner", lambda: runner)
    monkeypatch.setattr(cli, "build_restarter", lambda args: restarter)
    monkeypatch.setattr(cli, "setup_logging", lambda verbose=False: None)
    monkeypatch.setattr(cli, "setup_audit_logging", lambda: None)

    return config_path, store, snapshots, runner


def run(config_path, *argv) -> int:
    return cli.main(["--config", str(config_path), *argv])


class TestParser:
    """Tests for argument parsing."""

    def test_apply_flags(self):
        args = cli.build_parser().parse_args(["--dry-run", "apply", "--all-exec", "--no-check"])

        assert args.dry_run
        assert args.all_exec
        assert args.no_check
        assert cli.exec_mode_from(args).value == "all"

    def test_exec_flags_are_exclusive(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["apply", "--no-exec", "--flagged"])

    def test_no_exec_mode(self):
        args = cli.build_parser().parse_args(["apply", "--no-exec"])

        assert cli.exec_mode_from(args) is None

    def test_exec_subcommand(self):
        args = cli.build_parser().parse_args(["exec", "hello", "--flagged"])

        assert args.name == "hello"
        assert cli.exec_mode_from(args).value == "flagged"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestCommands:
    """End-to-end subcommand runs."""

    def test_apply_then_unapply(self, cli_env, capsys):
        config_path, store, snapshots, runner = cli_env

        assert run(config_path, "apply") == 0
        assert store.values[("com.apple.dock", "tilesize")] == "50"
        assert snapshots.exists()
        assert runner.spawned == [["sh", "-c", "echo hello"]]

        assert run(config_path, "unapply") == 0
        assert ("com.apple.dock", "tilesize") not in store.values
        assert not snapshots.exists()
        assert "Reverted" in capsys.readouterr().out

    def test_dry_run_apply(self, cli_env):
        config_path, store, snapshots, _ = cli_env

        assert run(config_path, "--dry-run", "apply") == 0
        assert store.mutations == []
        assert not snapshots.exists()

    def test_unapply_without_snapshot_fails(self, cli_env, capsys):
        config_path, *_ = cli_env

        assert run(config_path, "unapply") == 1
        assert "cutler reset" in capsys.readouterr().err

    def test_status(self, cli_env, capsys):
        config_path, store, *_ = cli_env
        store.values[("com.apple.dock", "autohide")] = "1"

        assert run(config_path, "status") == 0
        out = capsys.readouterr().out
        assert "ok    com.apple.dock | autohide" in out
        assert "1 of 2 settings differ" in out

    def test_reset_needs_confirmation(self, cli_env, monkeypatch):
        config_path, store, *_ = cli_env
        store.values[("com.apple.dock", "tilesize")] = "50"
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        assert run(config_path, "reset") == 1
        assert store.values[("com.apple.dock", "tilesize")] == "50"

    def test_reset_with_yes(self, cli_env):
        config_path, store, *_ = cli_env
        store.values[("com.apple.dock", "tilesize")] = "50"

        assert run(config_path, "--yes", "reset") == 0
        assert ("com.apple.dock", "tilesize") not in store.values

    def test_lock_blocks_apply(self, cli_env, capsys):
        config_path, store, *_ = cli_env

        assert run(config_path, "config", "lock") == 0
        assert run(config_path, "apply") == 1
        assert "locked" in capsys.readouterr().err
        assert store.mutations == []

        assert run(config_path, "config", "unlock") == 0
        assert run(config_path, "apply") == 0

    def test_config_show(self, cli_env, capsys):
        config_path, *_ = cli_env

        assert run(config_path, "config", "show") == 0
        assert "[set.dock]" in capsys.readouterr().out

    def test_exec_one(self, cli_env):
        config_path, _, _, runner = cli_env

        assert run(config_path, "exec", "hello") == 0
        assert runner.spawned == [["sh", "-c", "echo hello"]]

    def test_exec_unknown(self, cli_env, capsys):
        config_path, *_ = cli_env

        assert run(config_path, "exec", "nope") == 1
        assert "No such command" in capsys.readouterr().err

    def test_missing_domain_exit_code(self, cli_env, capsys):
        config_path, *_ = cli_env
        config_path.write_text("[set.notanapp]\nx = 1\n")

        assert run(config_path, "apply") == 1
        assert "com.apple.notanapp" in capsys.readouterr().err

    def test_locked_config_not_replaced_by_url(self, cli_env, mock_transport, capsys):
        """--url never overwrites a locked local config."""
        config_path, store, snapshots, _ = cli_env
        locked = "lock = true\n" + CONFIG
        config_path.write_text(locked)
        mock_transport["http://example.com/c.toml"] = (200, "[set.dock]\ntilesize = 10\n")

        code = run(config_path, "--yes", "apply", "--url", "http://example.com/c.toml", "--no-check")

        assert code == 1
        assert "locked" in capsys.readouterr().err
        assert config_path.read_text() == locked
        assert store.mutations == []
        assert not snapshots.exists()

    def test_url_replaces_unlocked_config(self, cli_env, mock_transport):
        config_path, store, *_ = cli_env
        mock_transport["http://example.com/c.toml"] = (200, "[set.dock]\ntilesize = 10\n")

        assert run(config_path, "--yes", "apply", "--url", "http://example.com/c.toml") == 0
        assert config_path.read_text() == "[set.dock]\ntilesize = 10\n"
        assert store.values[("com.apple.dock", "tilesize")] == "10"


class TestServiceRestart:
    """Dock, Finder and SystemUIServer are restarted after changes."""

    def test_apply_restarts_services(self, cli_env, restarter):
        config_path, *_ = cli_env

        assert run(config_path, "apply") == 0
        assert restarter.spawned == [
            ["killall", "SystemUIServer"],
            ["killall", "Dock"],
            ["killall", "Finder"],
        ]

    def test_no_change_no_restart(self, cli_env, restarter):
        config_path, *_ = cli_env
        run(config_path, "apply")
        restarter.spawned.clear()

        assert run(config_path, "apply") == 0
        assert restarter.spawned == []

    def test_opt_out(self, cli_env, restarter):
        config_path, store, *_ = cli_env

        assert run(config_path, "--no-restart-services", "apply") == 0
        assert store.values[("com.apple.dock", "tilesize")] == "50"
        assert restarter.spawned == []

    def test_dry_run_only_logs(self, cli_env, restarter):
        config_path, *_ = cli_env

        assert run(config_path, "--dry-run", "apply") == 0
        assert restarter.spawned == []

    def test_unapply_and_reset_restart(self, cli_env, restarter):
        config_path, store, *_ = cli_env
        run(config_path, "apply")
        restarter.spawned.clear()

        assert run(config_path, "unapply") == 0
        assert len(restarter.spawned) == 3

        store.values[("com.apple.dock", "tilesize")] = "50"
        restarter.spawned.clear()
        assert run(config_path, "--yes", "reset") == 0
        assert len(restarter.spawned) == 3


class TestInit:
    """Tests for creating a config from the bundled template."""

    def test_creates_template(self, cli_env, tmp_path):
        path = tmp_path / "fresh" / "config.toml"

        assert run(path, "init") == 0
        assert path.read_text() == default_config_text()
        assert parse_config(path.read_text()).lock is True

    def test_existing_config_kept_without_confirmation(self, cli_env, monkeypatch):
        config_path, *_ = cli_env
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        assert run(config_path, "init") == 1
        assert config_path.read_text() == CONFIG

    def test_overwrite_with_yes(self, cli_env):
        config_path, *_ = cli_env

        assert run(config_path, "--yes", "init") == 0
        assert config_path.read_text() == default_config_text()

    def test_apply_offers_init(self, cli_env, tmp_path, monkeypatch):
        """apply without a config offers to create one and applies nothing."""
        _, store, *_ = cli_env
        path = tmp_path / "missing.toml"
        monkeypatch.setattr("builtins.input", lambda prompt: "y")

        assert run(path, "apply") == 0
        assert path.read_text() == default_config_text()
        assert store.mutations == []

    def test_apply_without_config_declined(self, cli_env, tmp_path, monkeypatch):
        path = tmp_path / "missing.toml"
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        assert run(path, "apply") == 1
        assert not path.exists()


class TestConfigDelete:
    """Tests for `cutler config delete`."""

    def test_nothing_to_delete(self, cli_env, tmp_path, capsys):
        assert run(tmp_path / "none.toml", "config", "delete") == 0
        assert "No config file to delete" in capsys.readouterr().out

    def test_unapplies_then_deletes(self, cli_env):
        config_path, store, snapshots, _ = cli_env
        run(config_path, "apply")

        assert run(config_path, "--yes", "config", "delete") == 0
        assert ("com.apple.dock", "tilesize") not in store.values
        assert not config_path.exists()
        assert not snapshots.exists()

    def test_declined_unapply_keeps_preferences(self, cli_env, monkeypatch):
        config_path, store, snapshots, _ = cli_env
        run(config_path, "apply")
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        assert run(config_path, "config", "delete") == 0
        assert store.values[("com.apple.dock", "tilesize")] == "50"
        assert not config_path.exists()
        assert not snapshots.exists()

    def test_dry_run_deletes_nothing(self, cli_env, capsys):
        config_path, store, snapshots, _ = cli_env
        run(config_path, "apply")
        capsys.readouterr()

        assert run(config_path, "--yes", "--dry-run", "config", "delete") == 0
        assert config_path.exists()
        assert snapshots.exists()
        assert store.values[("com.apple.dock", "tilesize")] == "50"
        assert f"Would delete {config_path}" in capsys.readouterr().out
