"""
Workspace configuration models.

The effective config is a free-form YAML tree. Fields the orchestrator
acts on are typed here; everything else is kept verbatim in
``WorkspaceConfig.extra`` so nothing a newer layer adds is lost.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from devduck.core.errors import ConfigError

# Check scheduling tiers, in execution order
TIER_ORDER = ("pre-install", "install", "live", "pre-test", "tests")
DEFAULT_TIER = "pre-install"

REQUIRED = "required"
RECOMMENDED = "recommended"
OPTIONAL = "optional"


class CheckSpec(BaseModel):
    """A declared check on the workspace, a module or a project."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    type: str | None = None         # auth, test, or None (generic)
    description: str = ""
    var: str | None = None          # env var an auth check depends on
    test: str | None = None         # command, "HTTP GET url", or a path
    install: str | None = None      # remediation command
    tier: str | None = None
    optional: bool = False
    requirement: str | None = None  # required | recommended | optional
    docs: str | None = None
    when: str | None = None         # shell guard; non-zero exit skips
    skip: bool = False
    timeout: float | None = None    # seconds; overrides the runner default
    mcp_settings: dict[str, Any] | None = Field(default=None, alias="mcpSettings")

    @property
    def is_auth(self) -> bool:
        return (self.type or "").lower() == "auth"

    @property
    def effective_requirement(self) -> str:
        req = (self.requirement or "").strip().lower()
        if req == OPTIONAL or (not req and self.optional):
            return OPTIONAL
        if req in (RECOMMENDED, "recomended"):
            return RECOMMENDED
        return REQUIRED

    @property
    def is_required(self) -> bool:
        return self.effective_requirement == REQUIRED

    @property
    def effective_tier(self) -> str:
        """Scheduling tier; unknown or unset tiers run first."""
        if self.tier in TIER_ORDER:
            return self.tier
        return DEFAULT_TIER


class EnvVarSpec(BaseModel):
    """A declared environment variable."""

    model_config = ConfigDict(extra="ignore")

    name: str
    default: str | None = None
    description: str = ""
    optional: bool = False

    @field_validator("default", mode="before")
    @classmethod
    def _stringify_default(cls, v: Any) -> Any:
        """YAML scalars (`8080`, `true`) land in .env as text."""
        if isinstance(v, bool):
            return "true" if v else "false"
        if isinstance(v, (int, float)):
            return str(v)
        return v


_GIT_SUFFIX = re.compile(r"\.git$")


def source_basename(src: str) -> str:
    """Last path segment of a path or git URL, without ``.git``.

    >>> source_basename("git@github.com:acme/api.git")
    'api'
    """
    tail = src.rstrip("/").replace(":", "/").rsplit("/", 1)[-1]
    return _GIT_SUFFIX.sub("", tail)


class ProjectSpec(BaseModel):
    """A workspace project: a local directory or a git source."""

    model_config = ConfigDict(extra="ignore")

    src: str
    name: str | None = None
    checks: list[CheckSpec] = Field(default_factory=list)

    @property
    def project_name(self) -> str:
        return self.name or source_basename(self.src)

    @property
    def is_git(self) -> bool:
        src = self.src
        return (
            src.startswith(("git@", "https://", "http://", "ssh://"))
            or src.startswith("github.com/")
            or src.endswith(".git")
        )

    @property
    def clone_url(self) -> str:
        if self.src.startswith("github.com/"):
            return f"https://{self.src}"
        return self.src


# Keys read into typed fields; anything else lands in WorkspaceConfig.extra
_KNOWN_KEYS = {
    "version",
    "devduck_path",
    "modules",
    "extensions",
    "moduleSettings",
    "repos",
    "projects",
    "checks",
    "env",
}


class WorkspaceConfig(BaseModel):
    """Typed view over an effective workspace configuration."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = "0.1.0"
    devduck_path: str | None = None
    modules: list[str] = Field(default_factory=lambda: ["*"])
    module_settings: dict[str, dict[str, Any]] = Field(
        default_factory=dict, alias="moduleSettings"
    )
    repos: list[str] = Field(default_factory=list)
    projects: list[ProjectSpec] = Field(default_factory=list)
    checks: list[CheckSpec] = Field(default_factory=list)
    env: list[EnvVarSpec] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkspaceConfig:
        """Build from a merged config tree.

        Raises:
            ConfigError: If a known field has the wrong shape.
        """
        known = {k: v for k, v in data.items() if k in _KNOWN_KEYS}
        extra = {k: v for k, v in data.items() if k not in _KNOWN_KEYS}

        # "extensions" is the older spelling of "modules"
        selection = known.pop("extensions", None)
        if "modules" not in known and selection is not None:
            known["modules"] = selection
        if isinstance(known.get("modules"), str):
            known["modules"] = [known["modules"]]
        if known.get("modules") is None:
            known.pop("modules", None)
        if "version" in known:
            known["version"] = str(known["version"])
        for key in ("repos", "projects", "checks", "env", "moduleSettings"):
            if known.get(key) is None:
                known.pop(key, None)

        try:
            return cls.model_validate({**known, "extra": extra})
        except ValidationError as e:
            raise ConfigError(f"Invalid workspace config: {e}") from e

    def settings_for(self, module_name: str) -> dict[str, Any]:
        return dict(self.module_settings.get(module_name) or {})
