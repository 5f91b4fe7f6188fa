"""
Check identity and check results.

A CheckIdentity names "the same check" across steps and across runs.
The install state records identities, and the pipeline skips any check
whose identity is already recorded as executed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field

ScopeKind = Literal["module", "project", "workspace"]


@dataclass(frozen=True)
class CheckIdentity:
    """Stable key: (scope kind, scope name, check name)."""

    scope_kind: str
    scope_name: str
    check_name: str

    @property
    def key(self) -> str:
        return f"{self.scope_kind}:{self.scope_name}:{self.check_name}"

    @classmethod
    def parse(cls, key: str) -> CheckIdentity:
        kind, scope, name = key.split(":", 2)
        return cls(kind, scope, name)

    @classmethod
    def for_module(cls, module: str, check: str) -> CheckIdentity:
        return cls("module", module, check)

    @classmethod
    def for_project(cls, project: str, check: str) -> CheckIdentity:
        return cls("project", project, check)

    @classmethod
    def for_workspace(cls, check: str, workspace: str = "workspace") -> CheckIdentity:
        return cls("workspace", workspace, check)

    def __str__(self) -> str:
        return self.key


class CheckResult(BaseModel):
    """Outcome of running (or deliberately not running) one check."""

    check_id: str
    name: str
    status: Literal["passed", "failed", "skipped"] = "passed"
    requirement: str = "required"
    tier: str = "pre-install"
    description: str = ""
    docs: str | None = None
    output: str = ""
    error: str | None = None
    skip_reason: str | None = None
    remediated: bool = False
    duration_ms: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @property
    def blocking(self) -> bool:
        """A required check that failed. Halts its step."""
        return self.failed and self.requirement == "required"

    @property
    def optional_missing(self) -> bool:
        """A non-required check that failed. Reported, never a failure."""
        return self.failed and self.requirement != "required"
