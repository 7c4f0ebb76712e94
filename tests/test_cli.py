"""Tests for the command surface."""

import sys

import pytest
import yaml
from typer.testing import CliRunner

from binsync.cli import app, load_settings
from binsync.errors import ConfigError

runner = CliRunner()

WRITE_OUTPUT = (
    "import os, pathlib; "
    "pathlib.Path(os.environ['BINSYNC_OUTPUT_DIR'], 'geph4-client').write_text(os.environ['BINSYNC_TARGET'])"
)


@pytest.fixture
def project(tmp_path):
    """A project whose 'toolchain' is a Python one-liner; target 'broken' always fails."""
    config = {
        "project": {"work_dir": str(tmp_path), "output_root": "OUTPUT"},
        "targets": [
            {"id": "linux-x64", "build_args": [sys.executable, "-c", WRITE_OUTPUT], "output_subdir": "linux"},
            {"id": "macos-arm64", "build_args": [sys.executable, "-c", WRITE_OUTPUT], "output_subdir": "macos"},
            {"id": "broken", "build_args": [sys.executable, "-c", "raise SystemExit(2)"], "output_subdir": "broken"},
        ],
        "sync": {"backoff_base": 0.0},
    }
    path = tmp_path / "binsync.yaml"
    path.write_text(yaml.safe_dump(config))
    return tmp_path, path


class TestCliApp:
    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("init", "targets", "build", "plan", "sync", "release"):
            assert command in result.output

    def test_targets(self, project):
        _, config_path = project
        result = runner.invoke(app, ["targets", "--config", str(config_path)])
        assert result.exit_code == 0
        assert "macos-arm64" in result.output

    def test_init_writes_template(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0
        assert (tmp_path / "binsync.yaml").exists()


class TestRelease:
    def test_release_success(self, project):
        root, config_path = project
        dest = root / "mirror"
        result = runner.invoke(
            app,
            ["release", "-t", "linux-x64,macos-arm64", "-d", f"file://{dest}", "-c", str(config_path)],
        )
        assert result.exit_code == 0, result.output
        assert (dest / "linux" / "geph4-client").read_text() == "linux-x64"
        assert (dest / "macos" / "geph4-client").read_text() == "macos-arm64"

    def test_release_partial_build_failure(self, project):
        root, config_path = project
        dest = root / "mirror"
        result = runner.invoke(app, ["release", "-t", "all", "-d", f"file://{dest}", "-c", str(config_path)])
        assert result.exit_code == 3, result.output
        assert (dest / "linux" / "geph4-client").exists()

    def test_release_unknown_target(self, project):
        root, config_path = project
        result = runner.invoke(app, ["release", "-t", "sparc", "-d", f"file://{root}/m", "-c", str(config_path)])
        assert result.exit_code == 1
        assert "Unknown target" in result.output

    def test_release_without_destination(self, project):
        _, config_path = project
        result = runner.invoke(app, ["release", "-t", "linux-x64", "-c", str(config_path)])
        assert result.exit_code == 1
        assert "bucket" in result.output


class TestSyncAndPlan:
    def test_sync_then_plan_is_clean(self, project):
        root, config_path = project
        dest = f"file://{root / 'mirror'}"
        runner.invoke(app, ["build", "-t", "linux-x64", "-c", str(config_path)])

        synced = runner.invoke(app, ["sync", "-d", dest, "-c", str(config_path)])
        assert synced.exit_code == 0, synced.output

        planned = runner.invoke(app, ["plan", "-d", dest, "-c", str(config_path)])
        assert planned.exit_code == 0
        assert "0 upload(s)" in planned.output

    def test_mass_delete_refused(self, project):
        root, config_path = project
        mirror = root / "mirror"
        mirror.mkdir()
        (mirror / "old.bin").write_bytes(b"x")

        result = runner.invoke(app, ["sync", "-d", f"file://{mirror}", "--delete-stale", "-c", str(config_path)])

        assert result.exit_code == 1
        assert (mirror / "old.bin").exists()

    def test_build_exit_code_for_failed_target(self, project):
        _, config_path = project
        result = runner.invoke(app, ["build", "-t", "broken", "-c", str(config_path)])
        assert result.exit_code == 3


class TestLoadSettings:
    def test_overrides(self, project):
        _, config_path = project
        config = load_settings(
            config_path, dest="s3://geph-dl/bins/", delete_stale=True, concurrency=2, fail_fast=True
        )
        assert config.remote.type == "s3"
        assert config.remote.bucket == "geph-dl"
        assert config.remote.prefix == "bins/"
        assert config.sync.delete_stale is True
        assert config.sync.concurrency == 2
        assert config.sync.fail_fast is True

    def test_defaults_kept_without_overrides(self, project):
        _, config_path = project
        config = load_settings(config_path)
        assert config.sync.delete_stale is False
        assert config.sync.concurrency == 8

    def test_bad_concurrency(self, project):
        _, config_path = project
        with pytest.raises(ConfigError):
            load_settings(config_path, concurrency=0)
