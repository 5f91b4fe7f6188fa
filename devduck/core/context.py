"""
Install context — everything one orchestrator run needs, passed explicitly.

Steps receive an InstallContext instead of reaching for module-level
singletons, so two contexts (two workspaces, or a test and its fixture)
never share adapters, hooks or state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from devduck.adapters.registry import AdapterRegistry, default_registry
from devduck.core.checks.env import ENV_FILE, EnvView
from devduck.core.checks.runner import CheckRunner, CheckTarget
from devduck.core.config.resolver import ResolvedConfig, devduck_root_for, resolve_workspace
from devduck.core.models.check import CheckResult
from devduck.core.models.config import WorkspaceConfig
from devduck.core.modules.hooks import HookRegistry
from devduck.core.persistence.state_file import InstallStateStore

logger = logging.getLogger(__name__)


@dataclass
class InstallContext:
    """Per-run dependencies for the install pipeline."""

    workspace_root: Path
    adapters: AdapterRegistry
    store: InstallStateStore
    env: EnvView
    runner: CheckRunner
    hooks: HookRegistry = field(default_factory=HookRegistry)
    project_root: Path | None = None
    assume_yes: bool = False
    on_check: Callable[[CheckResult], None] | None = None

    resolved: ResolvedConfig | None = None
    config: WorkspaceConfig | None = None

    @classmethod
    def create(
        cls,
        workspace_root: Path,
        project_root: Path | None = None,
        assume_yes: bool = False,
        adapters: AdapterRegistry | None = None,
        hooks: HookRegistry | None = None,
        process_env: Mapping[str, str] | None = None,
        confirm: Callable[[CheckTarget], bool] | None = None,
        on_check: Callable[[CheckResult], None] | None = None,
    ) -> InstallContext:
        """Wire a context with the standard adapters unless given others."""
        workspace_root = workspace_root.resolve()
        adapters = adapters or default_registry(workspace_root=str(workspace_root))
        env = EnvView(workspace_root / ENV_FILE, process_env)
        runner = CheckRunner(
            adapters,
            env,
            workspace_root,
            assume_yes=assume_yes,
            confirm=confirm,
        )
        return cls(
            workspace_root=workspace_root,
            adapters=adapters,
            store=InstallStateStore.for_workspace(workspace_root),
            env=env,
            runner=runner,
            hooks=hooks or HookRegistry(),
            project_root=project_root.resolve() if project_root else None,
            assume_yes=assume_yes,
            on_check=on_check,
        )

    def load_config(self) -> WorkspaceConfig:
        """Resolve the workspace config once per context.

        Raises:
            ConfigError: Any resolution failure; nothing has been written yet.
        """
        if self.config is None:
            self.resolved = resolve_workspace(self.workspace_root)
            self.config = WorkspaceConfig.from_dict(self.resolved.data)
            logger.debug("Config resolved through %d layer(s)", len(self.resolved.layers))
        return self.config

    @property
    def builtin_root(self) -> Path | None:
        """Directory holding built-in modules."""
        if self.project_root is not None:
            return self.project_root
        config = self.load_config()
        root = devduck_root_for({"devduck_path": config.devduck_path}, self.workspace_root)
        return root if root.is_dir() else None

    @property
    def projects_dir(self) -> Path:
        return self.workspace_root / "projects"

    def report(self, result: CheckResult) -> None:
        if self.on_check is not None:
            self.on_check(result)
