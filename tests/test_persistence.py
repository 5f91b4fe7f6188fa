"""
Tests for persistence — install state file and workspace lock.
"""

import json
from pathlib import Path

import pytest

from devduck.core.errors import StateLockedError
from devduck.core.models.state import InstallState
from devduck.core.persistence.state_file import (
    InstallStateStore,
    clean_state,
    default_state_path,
    install_lock,
    load_state,
    save_state,
)


class TestStateFile:
    def test_save_and_load(self, tmp_path: Path):
        path = tmp_path / ".cache" / "install-state.json"
        state = InstallState()
        state.record_check("module:git:git-installed", "setup-modules", passed=True)
        state.mark_step("setup-modules", "ok", result={"installedModules": {"git": "/x"}})

        save_state(state, path)
        loaded = load_state(path)
        assert loaded.is_check_executed("module:git:git-installed")
        assert loaded.steps["setup-modules"].result == {"installedModules": {"git": "/x"}}

    def test_load_missing_returns_fresh(self, tmp_path: Path):
        state = load_state(tmp_path / "nonexistent.json")
        assert state.steps == {}
        assert state.executed_checks == []

    def test_load_corrupt_returns_fresh(self, tmp_path: Path):
        path = tmp_path / "corrupt.json"
        path.write_text("not json at all {{{")
        assert load_state(path).executed_checks == []

    def test_load_wrong_shape_returns_fresh(self, tmp_path: Path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"executedChecks": "nope"}))
        assert load_state(path).executed_checks == []

    def test_saved_json_is_camel_case(self, tmp_path: Path):
        path = tmp_path / "state.json"
        state = InstallState()
        state.installed_modules = {"git": "/mods/git"}
        save_state(state, path)

        data = json.loads(path.read_text())
        assert data["installedModules"] == {"git": "/mods/git"}
        assert "executedChecks" in data

    def test_save_atomic_no_partial(self, tmp_path: Path):
        path = tmp_path / "state.json"
        save_state(InstallState(), path)
        assert list(tmp_path.glob(".install-state_*.tmp")) == []

    def test_failed_write_keeps_previous(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "state.json"
        state = InstallState()
        state.record_check("module:a:x", "setup-modules", passed=True)
        save_state(state, path)
        before = path.read_text()

        def broken_replace(self, target):
            raise OSError("disk full")

        monkeypatch.setattr(Path, "replace", broken_replace)
        state.record_check("module:a:y", "setup-modules", passed=True)
        with pytest.raises(OSError):
            save_state(state, path)

        assert path.read_text() == before
        assert list(tmp_path.glob(".install-state_*.tmp")) == []

    def test_clean_state(self, tmp_path: Path):
        save_state(InstallState(), default_state_path(tmp_path))
        assert clean_state(tmp_path) is True
        assert not default_state_path(tmp_path).exists()
        assert clean_state(tmp_path) is False


class TestInstallStateStore:
    def test_track_check_persists(self, tmp_path: Path):
        store = InstallStateStore.for_workspace(tmp_path)
        store.track_check("module:a:x", "setup-modules", passed=True, check_name="x")

        reopened = InstallStateStore.for_workspace(tmp_path)
        assert reopened.is_check_executed("module:a:x")
        assert reopened.state.find_check("module:a:x").check_name == "x"

    def test_mark_step_persists(self, tmp_path: Path):
        store = InstallStateStore.for_workspace(tmp_path)
        store.mark_step("check-env", "needs_input")
        assert load_state(store.path).steps["check-env"].status == "needs_input"

    def test_reload(self, tmp_path: Path):
        store = InstallStateStore.for_workspace(tmp_path)
        other = InstallStateStore.for_workspace(tmp_path)
        other.track_check("module:a:x", "setup-modules", passed=True)
        assert not store.is_check_executed("module:a:x")
        store.reload()
        assert store.is_check_executed("module:a:x")


class TestInstallLock:
    def test_exclusive(self, tmp_path: Path):
        with install_lock(tmp_path) as lock_path:
            assert lock_path.exists()
            with pytest.raises(StateLockedError, match="Another install is running"):
                with install_lock(tmp_path):
                    pass

    def test_released_after_block(self, tmp_path: Path):
        with install_lock(tmp_path):
            pass
        with install_lock(tmp_path):
            pass
