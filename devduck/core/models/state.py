"""
InstallState — the persisted record of an installation.

Serialized to ``.cache/install-state.json`` with camelCase keys. The
pipeline only adds to it; removing it is an explicit "clean" action.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepRecord(BaseModel):
    """Completion record for one pipeline step."""

    model_config = ConfigDict(populate_by_name=True)

    completed: bool = False
    completed_at: str | None = Field(default=None, alias="completedAt")
    status: str | None = None  # ok, needs_input, failed
    result: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


class ExecutedCheck(BaseModel):
    """One executed check and its last outcome."""

    model_config = ConfigDict(populate_by_name=True)

    check_id: str = Field(alias="checkId")
    step: str
    passed: bool | None = None
    executed_at: str = Field(default_factory=_now_iso, alias="executedAt")
    check_name: str | None = Field(default=None, alias="checkName")
    error: str | None = None


class InstallState(BaseModel):
    """Root install state document."""

    model_config = ConfigDict(populate_by_name=True)

    steps: dict[str, StepRecord] = Field(default_factory=dict)
    installed_modules: dict[str, str] = Field(default_factory=dict, alias="installedModules")
    executed_checks: list[ExecutedCheck] = Field(default_factory=list, alias="executedChecks")
    mcp_servers: list[dict[str, Any]] = Field(default_factory=list, alias="mcpServers")
    checks: list[dict[str, Any]] = Field(default_factory=list)
    installed_at: str | None = Field(default=None, alias="installedAt")

    # ── Checks ───────────────────────────────────────────────────

    def find_check(self, check_id: str) -> ExecutedCheck | None:
        for entry in self.executed_checks:
            if entry.check_id == check_id:
                return entry
        return None

    def is_check_executed(self, check_id: str) -> bool:
        """Whether ``check_id`` has any record, passed or failed.

        Recorded checks are never re-run; ``devduck state clean`` forgets
        them so the next run starts over.
        """
        return self.find_check(check_id) is not None

    def record_check(
        self,
        check_id: str,
        step: str,
        passed: bool | None,
        check_name: str | None = None,
        error: str | None = None,
    ) -> ExecutedCheck:
        """Insert or update the record for ``check_id``."""
        entry = self.find_check(check_id)
        if entry is None:
            entry = ExecutedCheck(check_id=check_id, step=step)
            self.executed_checks.append(entry)
        entry.step = step
        entry.passed = passed
        entry.check_name = check_name
        entry.error = error
        entry.executed_at = _now_iso()
        return entry

    # ── Steps ────────────────────────────────────────────────────

    def mark_step(
        self,
        step_id: str,
        status: str,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> StepRecord:
        """Record a step's outcome. Completed unless it failed."""
        record = StepRecord(
            completed=status != "failed",
            completed_at=_now_iso(),
            status=status,
            result=result or {},
            error=error,
        )
        self.steps[step_id] = record
        return record

    def is_step_completed(self, step_id: str) -> bool:
        record = self.steps.get(step_id)
        return bool(record and record.completed)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
