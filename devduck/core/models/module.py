"""
Module descriptor — an installable unit discovered in one provenance tier.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from devduck.core.models.config import CheckSpec

HOOK_PHASES = ("pre-install", "install", "post-install")


class ModuleTier(str, Enum):
    """Where a module came from. Declaration order is override priority."""

    WORKSPACE = "workspace"
    PROJECT = "project"
    EXTERNAL = "external"
    BUILTIN = "builtin"

    @property
    def priority(self) -> int:
        """Lower wins."""
        return list(ModuleTier).index(self)


class ModuleDescriptor(BaseModel):
    """A named installable unit.

    When two tiers define the same name, the higher-priority descriptor
    is used as-is; fields are never blended across tiers.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    path: str = ""
    tier: ModuleTier = ModuleTier.BUILTIN
    version: str = "0.1.0"
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    checks: list[CheckSpec] = Field(default_factory=list)
    hooks: dict[str, str] = Field(default_factory=dict)  # phase → shell command
    default_settings: dict[str, Any] = Field(default_factory=dict, alias="defaultSettings")
    mcp_settings: dict[str, Any] | None = Field(default=None, alias="mcpSettings")

    def hook_command(self, phase: str) -> str | None:
        return self.hooks.get(phase) or None

    def summary(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tier": self.tier.value,
            "path": self.path,
            "version": self.version,
            "dependencies": self.dependencies,
            "checks": len(self.checks),
        }
