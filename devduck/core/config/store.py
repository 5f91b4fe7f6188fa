"""
Config store — find, read, write and normalize a single config layer.

No merge logic lives here. A layer is whatever one YAML file holds;
the resolver combines layers.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from devduck.core.errors import ConfigError, ConfigNotFound, MultipleConfigCandidates

logger = logging.getLogger(__name__)

# Accepted workspace config filenames, in lookup order
WORKSPACE_CONFIG_FILES = ("workspace.config.yml", "workspace.config.yaml")

DEFAULT_VERSION = "0.1.0"


def find_config_file(workspace_root: Path) -> Path | None:
    """Locate the workspace config file directly under ``workspace_root``.

    Raises:
        MultipleConfigCandidates: If more than one accepted filename exists.
    """
    found = [workspace_root / name for name in WORKSPACE_CONFIG_FILES]
    found = [p for p in found if p.is_file()]
    if len(found) > 1:
        raise MultipleConfigCandidates(found)
    return found[0] if found else None


def config_file_path(workspace_root: Path) -> Path:
    """Existing config file, or the default location for a new one."""
    return find_config_file(workspace_root) or workspace_root / WORKSPACE_CONFIG_FILES[0]


def find_workspace_root(start_dir: Path | None = None) -> Path | None:
    """Walk upward from ``start_dir`` until a workspace config is found."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        if any((current / name).is_file() for name in WORKSPACE_CONFIG_FILES):
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def normalize_layer(raw: Any) -> dict[str, Any] | None:
    """Return a mapping with defaults filled, or None if ``raw`` is not a mapping."""
    if not isinstance(raw, dict):
        return None
    layer = dict(raw)
    if not layer.get("version"):
        layer["version"] = DEFAULT_VERSION
    return layer


def read_layer(path: Path) -> dict[str, Any]:
    """Read one config layer.

    Raises:
        ConfigNotFound: If the file does not exist.
        ConfigError: If it is not valid YAML or not a mapping.
    """
    if not path.is_file():
        raise ConfigNotFound(path)

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config layer must be a mapping, got {type(raw).__name__}: {path}")

    logger.debug("Read config layer %s", path)
    return raw


def write_layer(path: Path, data: dict[str, Any]) -> None:
    """Write a layer as YAML, creating parent directories."""
    layer = normalize_layer(data)
    if layer is None:
        raise ConfigError(f"Refusing to write non-mapping config to {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(layer, sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )
    logger.debug("Wrote config layer %s", path)
