"""
Install state persistence — atomic read/write of InstallState.

State lives in ``<workspace>/.cache/install-state.json``. Writes go to a
temp file in the same directory and are renamed over the target, so a
crash mid-write leaves the previous state intact.

One orchestrator process per workspace is assumed. ``install_lock``
makes that explicit: it takes a non-blocking exclusive flock on
``.cache/install.lock`` and fails fast if another run holds it.
"""

from __future__ import annotations

import fcntl
import json
import logging
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from devduck.core.errors import StateLockedError
from devduck.core.models.state import InstallState

logger = logging.getLogger(__name__)

CACHE_DIR = ".cache"
STATE_FILE = "install-state.json"
LOCK_FILE = "install.lock"
LOG_FILE = "install.log"


def cache_dir(workspace_root: Path) -> Path:
    return workspace_root / CACHE_DIR


def default_state_path(workspace_root: Path) -> Path:
    return cache_dir(workspace_root) / STATE_FILE


def default_log_path(workspace_root: Path) -> Path:
    return cache_dir(workspace_root) / LOG_FILE


def load_state(path: Path) -> InstallState:
    """Load install state. A missing or unreadable file yields a fresh state."""
    if not path.is_file():
        logger.info("No install state at %s, starting fresh", path)
        return InstallState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        state = InstallState.model_validate(data)
        logger.debug("Loaded install state from %s (%d checks)", path, len(state.executed_checks))
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt install state %s: %s, starting fresh", path, e)
        return InstallState()
    except Exception as e:
        logger.warning("Cannot load install state from %s: %s, starting fresh", path, e)
        return InstallState()


def save_state(state: InstallState, path: Path) -> None:
    """Save install state (atomic write)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(state.to_json_dict(), indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".install-state_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        tmp.replace(path)
        logger.debug("Install state saved to %s", path)
    except Exception as e:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save install state to %s: %s", path, e)
        raise


def clean_state(workspace_root: Path) -> bool:
    """Delete the state file. Returns whether one existed."""
    path = default_state_path(workspace_root)
    if not path.exists():
        return False
    path.unlink()
    logger.info("Removed %s", path)
    return True


class InstallStateStore:
    """Install state bound to its file; every mutation is persisted."""

    def __init__(self, path: Path):
        self.path = path
        self.state = load_state(path)

    @classmethod
    def for_workspace(cls, workspace_root: Path) -> InstallStateStore:
        return cls(default_state_path(workspace_root))

    def reload(self) -> None:
        self.state = load_state(self.path)

    def save(self) -> None:
        save_state(self.state, self.path)

    def is_check_executed(self, check_id: str) -> bool:
        return self.state.is_check_executed(check_id)

    def track_check(
        self,
        check_id: str,
        step: str,
        passed: bool | None,
        check_name: str | None = None,
        error: str | None = None,
    ) -> None:
        self.state.record_check(check_id, step, passed, check_name=check_name, error=error)
        self.save()

    def mark_step(self, step_id: str, status: str, result: dict | None = None, error: str | None = None) -> None:
        self.state.mark_step(step_id, status, result=result, error=error)
        self.save()


@contextmanager
def install_lock(workspace_root: Path) -> Iterator[Path]:
    """Hold the workspace install lock for the duration of the block.

    Raises:
        StateLockedError: If another process holds it.
    """
    path = cache_dir(workspace_root) / LOCK_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as lock_file:
        try:
            fcntl.flock(lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            raise StateLockedError(
                f"Another install is running in {workspace_root} (lock: {path})"
            ) from e
        try:
            yield path
        finally:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
