"""Module discovery, selection and lifecycle hooks."""

from devduck.core.modules.catalog import ModuleCatalog, discover_catalog
from devduck.core.modules.hooks import HookRegistry, run_hooks
from devduck.core.modules.resolver import ResolvedModuleSet, resolve_modules

__all__ = [
    "HookRegistry",
    "ModuleCatalog",
    "ResolvedModuleSet",
    "discover_catalog",
    "resolve_modules",
    "run_hooks",
]
