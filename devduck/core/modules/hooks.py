"""
Module lifecycle hooks.

Phases run in fixed order: pre-install, install, post-install. Within a
phase every module runs; once the phase is done, any failure fails the
whole hook run and later phases are not started.

A hook is either a Python callable registered on a HookRegistry under
(module, phase), or a shell command the module's descriptor declares
under ``hooks:``. A registered callable takes precedence. Nothing is
imported from module directories.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from devduck.adapters.registry import AdapterRegistry
from devduck.core.errors import HookFailed
from devduck.core.models.action import Action
from devduck.core.models.config import WorkspaceConfig
from devduck.core.models.module import HOOK_PHASES, ModuleDescriptor
from devduck.core.modules.resolver import module_settings

logger = logging.getLogger(__name__)

HOOK_TIMEOUT = 600


@dataclass
class HookContext:
    """What a hook callable receives."""

    module: ModuleDescriptor
    phase: str
    workspace_root: Path
    settings: dict[str, Any] = field(default_factory=dict)
    all_modules: list[ModuleDescriptor] = field(default_factory=list)


@dataclass
class HookResult:
    module: str
    phase: str
    success: bool = True
    message: str = ""
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "module": self.module,
            "phase": self.phase,
            "success": self.success,
            "message": self.message,
            "error": self.error,
        }


HookFn = Callable[[HookContext], "HookResult | bool | None"]


class HookRegistry:
    """Hook callables keyed by (module name, phase)."""

    def __init__(self) -> None:
        self._hooks: dict[tuple[str, str], HookFn] = {}

    def register(self, module: str, phase: str, fn: HookFn) -> None:
        if phase not in HOOK_PHASES:
            raise ValueError(f"Unknown hook phase {phase!r}; expected one of {HOOK_PHASES}")
        if (module, phase) in self._hooks:
            logger.warning("Overwriting %s hook for module %s", phase, module)
        self._hooks[(module, phase)] = fn

    def get(self, module: str, phase: str) -> HookFn | None:
        return self._hooks.get((module, phase))

    def keys(self) -> list[tuple[str, str]]:
        return list(self._hooks.keys())

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._hooks


@dataclass
class HookRun:
    """Results of running hooks over a module set."""

    results: list[HookResult] = field(default_factory=list)
    failed_phase: str | None = None

    @property
    def ok(self) -> bool:
        return self.failed_phase is None

    @property
    def failures(self) -> list[HookResult]:
        return [r for r in self.results if not r.success]

    def errors(self) -> list[str]:
        return [str(HookFailed(r.module, r.phase, r.error or "")) for r in self.failures]

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "failed_phase": self.failed_phase,
            "results": [r.to_dict() for r in self.results],
        }


def _coerce(module: str, phase: str, value: Any) -> HookResult:
    if isinstance(value, HookResult):
        return value
    if value is False:
        return HookResult(module, phase, success=False, error="hook returned False")
    return HookResult(module, phase, success=True)


def _run_one(
    module: ModuleDescriptor,
    phase: str,
    registry: HookRegistry,
    adapters: AdapterRegistry,
    ctx: HookContext,
) -> HookResult | None:
    fn = registry.get(module.name, phase)
    if fn is not None:
        try:
            return _coerce(module.name, phase, fn(ctx))
        except Exception as e:
            logger.error("Hook %s/%s raised: %s", module.name, phase, e)
            return HookResult(module.name, phase, success=False, error=str(e))

    command = module.hook_command(phase)
    if not command:
        return None

    receipt = adapters.execute_action(Action(
        id=f"hook:{module.name}:{phase}",
        adapter="shell",
        name=f"{module.name} {phase}",
        params={
            "command": command,
            "timeout": HOOK_TIMEOUT,
            "env": {
                "DEVDUCK_WORKSPACE_ROOT": str(ctx.workspace_root),
                "DEVDUCK_MODULE": module.name,
                "DEVDUCK_MODULE_PATH": module.path,
                "DEVDUCK_MODULE_SETTINGS": json.dumps(ctx.settings),
                "DEVDUCK_HOOK_PHASE": phase,
            },
        },
        cwd=module.path or None,
    ))
    if receipt.ok:
        return HookResult(module.name, phase, success=True, message=receipt.output)
    return HookResult(module.name, phase, success=False, error=receipt.error)


def run_phase(
    phase: str,
    modules: list[ModuleDescriptor],
    registry: HookRegistry,
    adapters: AdapterRegistry,
    workspace_root: Path,
    config: WorkspaceConfig,
) -> list[HookResult]:
    """Run one phase for every module that has a hook for it."""
    results = []
    for module in modules:
        ctx = HookContext(
            module=module,
            phase=phase,
            workspace_root=workspace_root,
            settings=module_settings(module, config),
            all_modules=modules,
        )
        result = _run_one(module, phase, registry, adapters, ctx)
        if result is None:
            continue
        if result.success:
            logger.info("Hook %s/%s ok", module.name, phase)
        else:
            logger.warning("Hook %s/%s failed: %s", module.name, phase, result.error)
        results.append(result)
    return results


def run_hooks(
    modules: list[ModuleDescriptor],
    registry: HookRegistry,
    adapters: AdapterRegistry,
    workspace_root: Path,
    config: WorkspaceConfig,
) -> HookRun:
    """Run all phases in order, stopping after the first phase with a failure."""
    run = HookRun()
    for phase in HOOK_PHASES:
        results = run_phase(phase, modules, registry, adapters, workspace_root, config)
        run.results.extend(results)
        if any(not r.success for r in results):
            run.failed_phase = phase
            break
    return run
