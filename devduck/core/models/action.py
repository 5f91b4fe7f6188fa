"""
Action and Receipt — the I/O contract between checks and adapters.

Every probe, command, clone or link the pipeline performs is an Action
dispatched through the adapter registry. Adapters answer with a Receipt;
they do not raise. Whether a failed Receipt is a warning or fatal is
decided by the step that asked.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """One requested side effect."""

    id: str                         # e.g. "module:git:git-installed:test"
    adapter: str                    # which adapter handles this
    name: str = ""                  # human-readable label
    params: dict[str, Any] = Field(default_factory=dict)
    cwd: str | None = None          # working directory (None = workspace root)


class Receipt(BaseModel):
    """Outcome of an Action."""

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    timed_out: bool = False

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        """Create a success receipt."""
        return cls(adapter=adapter, action_id=action_id, status="ok", output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        """Create a failure receipt."""
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)

    @classmethod
    def skip(cls, adapter: str, action_id: str, reason: str = "", **kwargs: Any) -> Receipt:
        """Create a skip receipt."""
        return cls(adapter=adapter, action_id=action_id, status="skipped", output=reason, **kwargs)
