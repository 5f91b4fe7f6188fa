"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from devduck.adapters.mock import MockAdapter
from devduck.adapters.registry import AdapterRegistry


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """An empty workspace directory."""
    ws = tmp_path / "ws"
    ws.mkdir()
    return ws


@pytest.fixture
def write_file():
    """Write dedented text to a path, creating parent directories."""

    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content))
        return path

    return _write


@pytest.fixture
def write_config(workspace: Path, write_file):
    """Write the workspace's workspace.config.yml."""

    def _write(content: str) -> Path:
        return write_file(workspace / "workspace.config.yml", content)

    return _write


@pytest.fixture
def make_module(workspace: Path, write_file):
    """Create a module directory with a module.yml under ``<root>/extensions``."""

    def _make(name: str, content: str = "", root: Path | None = None) -> Path:
        module_dir = (root or workspace) / "extensions" / name
        module_dir.mkdir(parents=True, exist_ok=True)
        write_file(module_dir / "module.yml", content or f"name: {name}\n")
        return module_dir

    return _make


@pytest.fixture
def mock_adapters() -> dict[str, MockAdapter]:
    """Mock adapters under the standard adapter names."""
    return {name: MockAdapter(adapter_name=name) for name in ("shell", "filesystem", "http", "git")}


@pytest.fixture
def mock_registry(workspace: Path, mock_adapters: dict[str, MockAdapter]) -> AdapterRegistry:
    registry = AdapterRegistry(workspace_root=str(workspace))
    for adapter in mock_adapters.values():
        registry.register(adapter)
    return registry
