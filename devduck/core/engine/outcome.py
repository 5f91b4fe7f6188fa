"""
Step and run outcomes.

Every step ends in ``ok``, ``needs_input`` or ``failed``; a run ends in
``completed``, ``paused`` (a step needs input) or ``failed``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from devduck.core.models.check import CheckResult

StepStatus = Literal["ok", "needs_input", "failed"]
RunStatus = Literal["completed", "paused", "failed"]

EXIT_CODES = {"ok": 0, "completed": 0, "needs_input": 2, "paused": 2, "failed": 1}


@dataclass
class StepOutcome:
    """Result of one pipeline step."""

    step_id: str
    status: StepStatus = "ok"
    message: str = ""
    error: str | None = None
    result: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    checks: list[CheckResult] = field(default_factory=list)
    already_executed: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]

    @property
    def passed(self) -> int:
        return sum(1 for c in self.checks if c.passed)

    @property
    def failed(self) -> int:
        return sum(1 for c in self.checks if c.blocking)

    @property
    def optional_missing(self) -> int:
        return sum(1 for c in self.checks if c.optional_missing)

    @property
    def skipped(self) -> int:
        return sum(1 for c in self.checks if c.skipped)

    def counts(self) -> dict[str, int]:
        return {
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "optional_missing": self.optional_missing,
            "already_executed": self.already_executed,
        }

    def to_dict(self) -> dict:
        return {
            "step": self.step_id,
            "status": self.status,
            "message": self.message,
            "error": self.error,
            "warnings": self.warnings,
            "counts": self.counts(),
            "checks": [c.model_dump(mode="json") for c in self.checks],
            "result": self.result,
        }


@dataclass
class RunResult:
    """Result of a full install run."""

    status: RunStatus = "completed"
    outcomes: list[StepOutcome] = field(default_factory=list)
    halted_at: str | None = None
    message: str = ""

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]

    def counts(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for outcome in self.outcomes:
            for key, value in outcome.counts().items():
                totals[key] = totals.get(key, 0) + value
        return totals

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "halted_at": self.halted_at,
            "message": self.message,
            "counts": self.counts(),
            "steps": [o.to_dict() for o in self.outcomes],
        }
