"""
Config resolver — follow ``extends`` and merge layers into one config.

Resolution is a depth-first walk from the entry layer. Each layer's
bases are resolved left to right and folded together, then the layer
itself is merged on top. Two pieces of walk state keep this finite:

    visiting  — layers on the current path; meeting one again is a cycle
    visited   — layers already merged; meeting one again is a no-op

so a base shared by two branches (a diamond) is applied exactly once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from devduck.core.config.merge import IDENTITY_KEYS, deep_merge, item_identity
from devduck.core.config.store import find_config_file, normalize_layer, read_layer
from devduck.core.errors import ConfigError, ConfigNotFound, ExtendsCycle

logger = logging.getLogger(__name__)

NAMESPACE_PREFIX = "devduck:"
DEFAULT_DEVDUCK_PATH = "./projects/devduck"
MAX_EXTENDS_DEPTH = 20


@dataclass
class ResolvedConfig:
    """Effective configuration plus where its identity-keyed items came from."""

    data: dict[str, Any] = field(default_factory=dict)
    entry: Path | None = None
    layers: list[Path] = field(default_factory=list)
    provenance: dict[str, dict[str, Path]] = field(default_factory=dict)

    def source_of(self, field_name: str, identity: str) -> Path | None:
        """Layer that contributed the surviving ``field_name`` item ``identity``."""
        return self.provenance.get(field_name, {}).get(identity)

    def to_dict(self) -> dict:
        return {
            "entry": str(self.entry) if self.entry else None,
            "layers": [str(p) for p in self.layers],
            "config": self.data,
        }


def resolve_reference(ref: str, from_file: Path, devduck_root: Path) -> Path:
    """Turn an extends entry into an absolute layer path."""
    ref = ref.strip()
    if ref.startswith(NAMESPACE_PREFIX):
        rel = ref[len(NAMESPACE_PREFIX):].lstrip("/")
        return (devduck_root / rel).resolve()
    candidate = Path(ref).expanduser()
    if candidate.is_absolute():
        return candidate.resolve()
    return (from_file.parent / candidate).resolve()


def devduck_root_for(entry_layer: dict[str, Any], workspace_root: Path) -> Path:
    """Namespace root, taken from the entry layer's ``devduck_path``."""
    raw = entry_layer.get("devduck_path")
    rel = raw.strip() if isinstance(raw, str) and raw.strip() else DEFAULT_DEVDUCK_PATH
    return (workspace_root / rel).resolve()


def _extends_list(layer: dict[str, Any]) -> list[str]:
    value = layer.get("extends")
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str) and v.strip()]


class _Walk:
    """One resolution's walk state."""

    def __init__(self, devduck_root: Path, max_depth: int):
        self.devduck_root = devduck_root
        self.max_depth = max_depth
        self.visiting: list[Path] = []
        self.visited: set[Path] = set()
        self.order: list[Path] = []
        self.provenance: dict[str, dict[str, Path]] = {}

    def load(self, path: Path, depth: int, referenced_from: Path | None = None) -> dict[str, Any]:
        path = path.resolve()

        if path in self.visiting:
            raise ExtendsCycle([*self.visiting, path])
        if path in self.visited:
            logger.debug("Layer %s already merged, skipping repeat", path)
            return {}
        if depth > self.max_depth:
            chain = "\n".join(str(p) for p in self.visiting)
            raise ConfigError(f"Workspace config extends is too deep (>{self.max_depth}):\n{chain}")

        try:
            raw = read_layer(path)
        except ConfigNotFound:
            raise ConfigNotFound(path, referenced_from) from None

        self.visiting.append(path)
        acc: dict[str, Any] = {}
        for ref in _extends_list(raw):
            base_path = resolve_reference(ref, path, self.devduck_root)
            acc = deep_merge(acc, self.load(base_path, depth + 1, path))
        self.visiting.pop()

        own = {k: v for k, v in raw.items() if k != "extends"}
        self._record(path, own)
        self.visited.add(path)
        self.order.append(path)
        return deep_merge(acc, own)

    def _record(self, path: Path, layer: dict[str, Any]) -> None:
        for field_name in IDENTITY_KEYS:
            items = layer.get(field_name)
            if not isinstance(items, list):
                continue
            for item in items:
                ident = item_identity(field_name, item)
                if ident is not None:
                    self.provenance.setdefault(field_name, {})[ident] = path


def resolve(
    entry: Path,
    devduck_root: Path | None = None,
    max_depth: int = MAX_EXTENDS_DEPTH,
) -> ResolvedConfig:
    """Resolve one entry layer's ``extends`` graph into an effective config.

    Args:
        entry: Path to the entry layer.
        devduck_root: Root for ``devduck:`` references. Defaults to the
            entry layer's ``devduck_path`` relative to its directory.
        max_depth: Maximum extends nesting.

    Raises:
        ConfigNotFound: If the entry or any referenced layer is missing.
        ExtendsCycle: If the extends graph contains a cycle.
        ConfigError: On unreadable layers or excessive depth.
    """
    entry = entry.resolve()
    if devduck_root is None:
        devduck_root = devduck_root_for(read_layer(entry), entry.parent)

    walk = _Walk(devduck_root, max_depth)
    data = walk.load(entry, 0)
    data = normalize_layer(data) or {}

    logger.debug("Resolved %s through %d layer(s)", entry, len(walk.order))
    return ResolvedConfig(
        data=data,
        entry=entry,
        layers=walk.order,
        provenance=walk.provenance,
    )


def resolve_workspace(workspace_root: Path) -> ResolvedConfig:
    """Resolve the workspace config found at ``workspace_root``.

    Raises:
        ConfigNotFound: If the workspace has no config file.
        MultipleConfigCandidates: If it has more than one.
    """
    workspace_root = workspace_root.resolve()
    entry = find_config_file(workspace_root)
    if entry is None:
        raise ConfigNotFound(workspace_root / "workspace.config.yml")
    root = devduck_root_for(read_layer(entry), workspace_root)
    return resolve(entry, devduck_root=root)
