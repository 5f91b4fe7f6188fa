"""
Tests for CLI commands — install, run-step, config, modules, state and global options.
"""

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from devduck.main import cli

TOKEN = "DEVDUCK_TEST_TOKEN"


@pytest.fixture(autouse=True)
def _restore_logging(monkeypatch):
    """The CLI reconfigures the root logger; put it back afterwards."""
    monkeypatch.delenv(TOKEN, raising=False)
    monkeypatch.delenv("DEVDUCK_LOG_LEVEL", raising=False)
    monkeypatch.delenv("DEVDUCK_LOG_FILE", raising=False)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _invoke(workspace: Path, *args: str):
    return CliRunner().invoke(cli, ["-w", str(workspace), *args])


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "DevDuck" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestRunStepCommand:
    def test_needs_input_exit_code(self, workspace: Path, write_config):
        write_config(f"env:\n  - name: {TOKEN}\n")
        result = _invoke(workspace, "run-step", "check-env")
        assert result.exit_code == 2
        assert "needs_input" in result.output
        assert TOKEN in result.output

    def test_ok_exit_code(self, workspace: Path, write_config):
        write_config(f"env:\n  - name: {TOKEN}\n")
        (workspace / ".env").write_text(f"{TOKEN}=abc\n")
        result = _invoke(workspace, "run-step", "check-env")
        assert result.exit_code == 0

    def test_failed_exit_code(self, workspace: Path, write_config):
        write_config("""\
            checks:
              - name: broken
                test: "false"
        """)
        result = _invoke(workspace, "run-step", "verify-installation")
        assert result.exit_code == 1
        assert "Verification failed" in result.output

    def test_unknown_step(self, workspace: Path, write_config):
        write_config("modules: []\n")
        result = _invoke(workspace, "run-step", "bogus")
        assert result.exit_code == 1
        assert "Unknown step" in result.output

    def test_config_error(self, workspace: Path, write_config):
        write_config("extends: [missing.yml]\n")
        result = _invoke(workspace, "run-step", "check-env")
        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_roots_after_subcommand(self, workspace: Path, write_config, tmp_path: Path):
        write_config(f"env:\n  - name: {TOKEN}\n")
        (workspace / ".env").write_text(f"{TOKEN}=abc\n")
        builtin = tmp_path / "builtin"
        builtin.mkdir()
        result = CliRunner().invoke(cli, [
            "run-step", "check-env",
            "--workspace-root", str(workspace),
            "--project-root", str(builtin),
            "--yes",
        ])
        assert result.exit_code == 0
        assert (workspace / ".cache" / "install-state.json").exists()

    def test_subcommand_root_overrides_global(self, workspace: Path, write_config, tmp_path: Path):
        write_config("modules: []\n")
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        result = CliRunner().invoke(cli, [
            "-w", str(elsewhere), "run-step", "download-repos", "-w", str(workspace),
        ])
        assert result.exit_code == 0
        assert not (elsewhere / ".cache").exists()

    def test_config_error_leaves_no_cache(self, workspace: Path, write_config):
        write_config("extends: [missing.yml]\n")
        result = _invoke(workspace, "run-step", "check-env")
        assert result.exit_code == 1
        assert not (workspace / ".cache").exists()

    def test_json_output(self, workspace: Path, write_config):
        write_config("modules: []\n")
        result = _invoke(workspace, "-q", "run-step", "download-repos", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["step"] == "download-repos"
        assert data["status"] == "ok"

    def test_writes_install_log(self, workspace: Path, write_config):
        write_config("modules: []\n")
        _invoke(workspace, "run-step", "download-repos")
        assert "download-repos" in (workspace / ".cache" / "install.log").read_text()


class TestInstallCommand:
    def test_completed(self, workspace: Path, write_config):
        write_config("modules: []\n")
        result = _invoke(workspace, "install", "--yes")
        assert result.exit_code == 0
        assert "Installation completed" in result.output

    def test_paused(self, workspace: Path, write_config):
        write_config(f"env:\n  - name: {TOKEN}\n")
        result = _invoke(workspace, "install")
        assert result.exit_code == 2
        assert "Paused at check-env" in result.output

    def test_workspace_root_after_subcommand(self, workspace: Path, write_config):
        write_config("modules: []\n")
        result = CliRunner().invoke(cli, ["install", "--workspace-root", str(workspace), "--yes"])
        assert result.exit_code == 0
        assert "Installation completed" in result.output

    def test_missing_config_leaves_no_cache(self, workspace: Path):
        result = _invoke(workspace, "install", "--yes")
        assert result.exit_code == 1
        assert not (workspace / ".cache").exists()

    def test_json(self, workspace: Path, write_config):
        write_config("modules: []\n")
        result = _invoke(workspace, "-q", "install", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["status"] == "completed"
        assert len(data["steps"]) == 7


class TestConfigCommands:
    def test_check_valid(self, workspace: Path, write_config, write_file):
        write_file(workspace / "base.yml", "repos: []\n")
        write_config("extends: [base.yml]\nmodules: []\n")
        result = _invoke(workspace, "config", "check")
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "Layers: 2" in result.output

    def test_check_missing_config(self, workspace: Path):
        result = _invoke(workspace, "config", "check")
        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_check_duplicate_projects(self, workspace: Path, write_config):
        write_config("""\
            projects:
              - src: github.com/acme/api
              - src: github.com/other/api
        """)
        result = _invoke(workspace, "config", "check", "--json")
        assert result.exit_code == 1
        assert "Duplicate project names: api" in json.loads(result.output)["errors"]

    def test_check_warns_on_unknown_tier(self, workspace: Path, write_config):
        write_config("""\
            modules: []
            checks:
              - name: x
                tier: someday
                test: "true"
        """)
        result = _invoke(workspace, "config", "check", "--json")
        assert any("unknown tier" in w for w in json.loads(result.output)["warnings"])

    def test_show(self, workspace: Path, write_config, write_file):
        write_file(workspace / "base.yml", "repos: [github.com/acme/tools]\n")
        write_config("extends: [base.yml]\nmodules: [git]\n")
        result = _invoke(workspace, "config", "show")
        assert result.exit_code == 0
        assert "github.com/acme/tools" in result.output
        assert "extends" not in result.output.replace("# ", "")

    def test_show_json(self, workspace: Path, write_config):
        write_config("modules: [git]\n")
        result = _invoke(workspace, "config", "show", "--json")
        data = json.loads(result.output)
        assert data["config"]["modules"] == ["git"]


class TestModulesCommand:
    def test_list(self, workspace: Path, write_config, make_module):
        write_config("modules: [app]\n")
        make_module("app", "dependencies: [core]\n")
        make_module("core")
        make_module("unused")

        result = _invoke(workspace, "modules", "list", "--json")
        assert result.exit_code == 0
        names = [m["name"] for m in json.loads(result.output)["modules"]]
        assert names == ["core", "app"]

    def test_list_all(self, workspace: Path, write_config, make_module):
        write_config("modules: [app]\n")
        make_module("app")
        make_module("unused")
        result = _invoke(workspace, "modules", "list", "--all")
        assert "unused" in result.output


class TestStateCommands:
    def test_show_and_clean(self, workspace: Path, write_config):
        write_config("modules: []\n")
        _invoke(workspace, "run-step", "download-repos")

        shown = _invoke(workspace, "state", "show", "--json")
        assert json.loads(shown.output)["steps"]["download-repos"]["status"] == "ok"

        cleaned = _invoke(workspace, "state", "clean")
        assert cleaned.exit_code == 0
        assert "removed" in cleaned.output
        assert not (workspace / ".cache" / "install-state.json").exists()

    def test_clean_nothing(self, workspace: Path):
        result = _invoke(workspace, "state", "clean")
        assert result.exit_code == 0
        assert "No install state" in result.output
