"""
Config check use case — resolve the workspace config and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from devduck.core.config.resolver import ResolvedConfig, devduck_root_for, resolve_workspace
from devduck.core.errors import ConfigError
from devduck.core.models.config import TIER_ORDER, CheckSpec, WorkspaceConfig
from devduck.core.modules.catalog import discover_catalog
from devduck.core.modules.resolver import expand_patterns


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: WorkspaceConfig | None = None
    resolved: ResolvedConfig | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.resolved.entry) if self.resolved and self.resolved.entry else None,
            "layers": [str(p) for p in self.resolved.layers] if self.resolved else [],
            "errors": self.errors,
            "warnings": self.warnings,
            "module_patterns": self.config.modules if self.config else [],
            "project_count": len(self.config.projects) if self.config else 0,
            "check_count": len(self.config.checks) if self.config else 0,
        }


def _tier_warnings(owner: str, checks: list[CheckSpec]) -> list[str]:
    return [
        f"Check '{c.name}' in {owner} has unknown tier '{c.tier}' (runs in pre-install)"
        for c in checks
        if c.tier and c.tier not in TIER_ORDER
    ]


def check_config(workspace_root: Path, project_root: Path | None = None) -> ConfigCheckResult:
    """Validate the workspace configuration and report issues.

    Args:
        workspace_root: Workspace directory holding workspace.config.yml.
        project_root: Optional directory of built-in modules.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    try:
        resolved = resolve_workspace(workspace_root)
        result.resolved = resolved
        config = WorkspaceConfig.from_dict(resolved.data)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Duplicate project names would share a directory under projects/
    names = [p.project_name for p in config.projects]
    dupes = {n for n in names if names.count(n) > 1}
    if dupes:
        result.errors.append(f"Duplicate project names: {', '.join(sorted(dupes))}")

    env_names = [e.name for e in config.env]
    env_dupes = {n for n in env_names if env_names.count(n) > 1}
    if env_dupes:
        result.warnings.append(f"Duplicate env entries: {', '.join(sorted(env_dupes))}")

    result.warnings += _tier_warnings("workspace", config.checks)
    for project in config.projects:
        result.warnings += _tier_warnings(f"project {project.project_name}", project.checks)

    # Module selection against what is on disk right now
    builtin = project_root
    if builtin is None:
        candidate = devduck_root_for({"devduck_path": config.devduck_path}, workspace_root)
        builtin = candidate if candidate.is_dir() else None
    catalog = discover_catalog(workspace_root.resolve(), builtin)
    known = catalog.names()
    for token in config.modules:
        token = str(token).strip()
        if token and "*" not in token and "?" not in token and token not in known:
            result.warnings.append(
                f"Module '{token}' is not available yet (external repos and projects may provide it)"
            )
    if not expand_patterns(config.modules, known, strict=False):
        result.warnings.append("Module selection matches no modules.")

    if not config.projects:
        result.warnings.append("No projects defined.")

    result.valid = len(result.errors) == 0
    return result
