"""
Module resolver — from selection patterns to an ordered module set.

    patterns ──expand──▶ requested names ──closure──▶ ordered descriptors

Expansion: ``*`` means every known module; a token with ``*`` or ``?``
is a glob (may match nothing); any other token must name a module.
Closure adds dependencies until nothing new appears. The result lists
dependencies before their dependents, otherwise in request order.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from devduck.core.config.merge import merge_module_settings
from devduck.core.errors import UnknownModuleSelection
from devduck.core.models.config import WorkspaceConfig
from devduck.core.models.module import ModuleDescriptor
from devduck.core.modules.catalog import ModuleCatalog

logger = logging.getLogger(__name__)

WILDCARD = "*"


@dataclass
class ResolvedModuleSet:
    """Dependency-closed, de-duplicated, dependency-ordered modules."""

    modules: list[ModuleDescriptor] = field(default_factory=list)
    requested: list[str] = field(default_factory=list)
    missing_dependencies: list[tuple[str, str]] = field(default_factory=list)

    def names(self) -> list[str]:
        return [m.name for m in self.modules]

    def get(self, name: str) -> ModuleDescriptor | None:
        for module in self.modules:
            if module.name == name:
                return module
        return None

    def __iter__(self) -> Iterator[ModuleDescriptor]:
        return iter(self.modules)

    def __len__(self) -> int:
        return len(self.modules)

    def to_dict(self) -> dict:
        return {
            "requested": self.requested,
            "modules": [m.summary() for m in self.modules],
            "missing_dependencies": [
                {"module": mod, "dependency": dep} for mod, dep in self.missing_dependencies
            ],
        }


def _is_glob(token: str) -> bool:
    return "*" in token or "?" in token


def expand_patterns(patterns: list[str], known: list[str], strict: bool = True) -> list[str]:
    """Expand selection patterns into module names, preserving first mention order.

    Raises:
        UnknownModuleSelection: If ``strict`` and an exact name is unknown.
    """
    out: list[str] = []

    def add(name: str) -> None:
        if name not in out:
            out.append(name)

    for raw in patterns:
        token = str(raw).strip()
        if not token:
            continue
        if token == WILDCARD:
            for name in known:
                add(name)
        elif _is_glob(token):
            matched = [n for n in known if fnmatch.fnmatchcase(n, token)]
            if not matched:
                logger.warning("Module pattern %r matched nothing", token)
            for name in matched:
                add(name)
        elif token in known:
            add(token)
        elif strict:
            raise UnknownModuleSelection(token, known)
        else:
            logger.warning("Module %r not found, skipping", token)
    return out


def resolve_modules(
    patterns: list[str],
    catalog: ModuleCatalog,
    strict: bool = True,
) -> ResolvedModuleSet:
    """Resolve selection patterns against a catalog.

    Args:
        patterns: Selection patterns, e.g. ``["*"]`` or ``["git", "ci-*"]``.
        catalog: Discovered modules, all tiers.
        strict: Fail on exact names no tier provides.

    Raises:
        UnknownModuleSelection: See ``expand_patterns``.
    """
    unique = catalog.unique()
    requested = expand_patterns(patterns, list(unique.keys()), strict=strict)

    result = ResolvedModuleSet(requested=requested)
    done: set[str] = set()
    in_progress: list[str] = []

    def visit(name: str, parent: str | None) -> None:
        if name in done:
            return
        if name in in_progress:
            logger.warning(
                "Dependency cycle: %s", " -> ".join([*in_progress[in_progress.index(name):], name])
            )
            return
        module = unique.get(name)
        if module is None:
            logger.warning("Module %s depends on unknown module %s, skipping", parent, name)
            result.missing_dependencies.append((parent or "", name))
            return
        in_progress.append(name)
        for dep in module.dependencies:
            visit(dep, name)
        in_progress.pop()
        done.add(name)
        result.modules.append(module)

    for name in requested:
        visit(name, None)

    logger.debug("Resolved modules: %s", ", ".join(result.names()) or "(none)")
    return result


def module_settings(module: ModuleDescriptor, config: WorkspaceConfig) -> dict[str, Any]:
    """A module's default settings with the workspace's overrides applied."""
    return merge_module_settings(module.default_settings, config.settings_for(module.name))
