"""
Module catalog — discover modules in each provenance tier.

A module is a directory holding a descriptor: ``module.yml`` (or
``module.yaml``), or a ``MODULE.md`` whose YAML front matter carries
the same fields. Discovery only reads descriptors; it never imports or
executes anything from a module directory.

Tier locations (each may use ``extensions/`` or ``modules/``):

    workspace  <workspace>/extensions/<module>
    project    <workspace>/projects/<project>/extensions/<module>
    external   <workspace>/devduck/<repo>/extensions/<module>
    builtin    <project-root>/extensions/<module>
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from devduck.core.models.module import ModuleDescriptor, ModuleTier

logger = logging.getLogger(__name__)

MODULE_DIR_NAMES = ("extensions", "modules")
DESCRIPTOR_FILES = ("module.yml", "module.yaml")
FRONTMATTER_FILE = "MODULE.md"

# Where download-repos puts external repositories
EXTERNAL_REPOS_DIR = "devduck"
PROJECTS_DIR = "projects"

_FRONTMATTER = re.compile(r"\A---\s*\n(.*?)\n---", re.DOTALL)


def _read_descriptor(module_dir: Path) -> dict[str, Any] | None:
    """Raw descriptor mapping for ``module_dir``, or None if it has none."""
    for name in DESCRIPTOR_FILES:
        path = module_dir / name
        if path.is_file():
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}

    md = module_dir / FRONTMATTER_FILE
    if md.is_file():
        match = _FRONTMATTER.match(md.read_text(encoding="utf-8"))
        if not match:
            return None
        data = yaml.safe_load(match.group(1))
        return data if isinstance(data, dict) else {}

    return None


def load_module(module_dir: Path, tier: ModuleTier) -> ModuleDescriptor | None:
    """Load one module directory. Unreadable descriptors are logged and skipped."""
    try:
        raw = _read_descriptor(module_dir)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.warning("Cannot read module descriptor in %s: %s", module_dir, e)
        return None
    if raw is None:
        return None

    raw.setdefault("name", module_dir.name)
    if raw.get("version") is not None:
        raw["version"] = str(raw["version"])
    for key in ("tags", "dependencies", "checks"):
        if not isinstance(raw.get(key), list):
            raw.pop(key, None)
    # Unnamed checks are named after their module and type
    raw["checks"] = [
        {**c, "name": c.get("name") or f"{raw['name']}-{c.get('type') or 'check'}"}
        for c in raw.get("checks", [])
        if isinstance(c, dict)
    ]
    if not isinstance(raw.get("hooks"), dict):
        raw.pop("hooks", None)

    try:
        return ModuleDescriptor.model_validate(
            {**raw, "path": str(module_dir), "tier": tier}
        )
    except ValidationError as e:
        logger.warning("Invalid module descriptor in %s: %s", module_dir, e)
        return None


def scan_directory(modules_dir: Path, tier: ModuleTier) -> list[ModuleDescriptor]:
    """All modules directly under ``modules_dir``, sorted by directory name."""
    if not modules_dir.is_dir():
        return []
    found = []
    for entry in sorted(modules_dir.iterdir()):
        if not entry.is_dir() or entry.name.startswith("."):
            continue
        module = load_module(entry, tier)
        if module is not None:
            found.append(module)
    return found


def _scan_root(root: Path, tier: ModuleTier) -> list[ModuleDescriptor]:
    found: list[ModuleDescriptor] = []
    for dir_name in MODULE_DIR_NAMES:
        found.extend(scan_directory(root / dir_name, tier))
    return found


def _subdirs(path: Path) -> list[Path]:
    if not path.is_dir():
        return []
    return [p for p in sorted(path.iterdir()) if p.is_dir() and not p.name.startswith(".")]


@dataclass
class ModuleCatalog:
    """Modules grouped by provenance tier."""

    tiers: dict[ModuleTier, list[ModuleDescriptor]] = field(default_factory=dict)

    @classmethod
    def from_modules(cls, modules: list[ModuleDescriptor]) -> ModuleCatalog:
        catalog = cls()
        for module in modules:
            catalog.tiers.setdefault(module.tier, []).append(module)
        return catalog

    def all_modules(self) -> list[ModuleDescriptor]:
        """Every descriptor, highest-priority tier first."""
        out: list[ModuleDescriptor] = []
        for tier in ModuleTier:
            out.extend(self.tiers.get(tier, []))
        return out

    def unique(self) -> dict[str, ModuleDescriptor]:
        """Name → descriptor, first (highest-priority) occurrence wins."""
        out: dict[str, ModuleDescriptor] = {}
        for module in self.all_modules():
            if module.name in out:
                logger.debug(
                    "Module %s from %s shadowed by %s tier",
                    module.name, module.tier.value, out[module.name].tier.value,
                )
                continue
            out[module.name] = module
        return out

    def get(self, name: str) -> ModuleDescriptor | None:
        return self.unique().get(name)

    def names(self) -> list[str]:
        return list(self.unique().keys())

    def __len__(self) -> int:
        return len(self.unique())


def discover_catalog(
    workspace_root: Path,
    project_root: Path | None = None,
    include_projects: bool = True,
    include_external: bool = True,
) -> ModuleCatalog:
    """Scan all four tiers.

    Args:
        workspace_root: The workspace directory.
        project_root: Directory holding built-in modules (None = none).
        include_projects: Scan project-local modules.
        include_external: Scan downloaded external repositories.
    """
    catalog = ModuleCatalog()
    catalog.tiers[ModuleTier.WORKSPACE] = _scan_root(workspace_root, ModuleTier.WORKSPACE)
    builtin_root = project_root.resolve() if project_root is not None else None

    if include_projects:
        # The built-in root may itself sit under projects/; it stays built-in
        catalog.tiers[ModuleTier.PROJECT] = [
            m
            for project_dir in _subdirs(workspace_root / PROJECTS_DIR)
            if project_dir.resolve() != builtin_root
            for m in _scan_root(project_dir, ModuleTier.PROJECT)
        ]

    if include_external:
        catalog.tiers[ModuleTier.EXTERNAL] = [
            m
            for repo_dir in _subdirs(workspace_root / EXTERNAL_REPOS_DIR)
            for m in _scan_root(repo_dir, ModuleTier.EXTERNAL)
        ]

    if builtin_root is not None and builtin_root != workspace_root.resolve():
        catalog.tiers[ModuleTier.BUILTIN] = _scan_root(builtin_root, ModuleTier.BUILTIN)

    logger.debug(
        "Discovered modules: %s",
        {tier.value: len(mods) for tier, mods in catalog.tiers.items()},
    )
    return catalog
