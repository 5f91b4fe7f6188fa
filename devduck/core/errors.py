"""
Error taxonomy for workspace resolution and installation.

Configuration and resolution errors abort a run before any state is
written. Check and hook failures are normally captured into results;
the exception types exist so callers that want to escalate can.
"""

from __future__ import annotations

from pathlib import Path


class DevduckError(Exception):
    """Base class for all orchestrator errors."""


# ── Configuration ───────────────────────────────────────────────


class ConfigError(DevduckError):
    """Raised when workspace configuration is invalid or unreadable."""


class ConfigNotFound(ConfigError):
    """A configuration layer (entry or extends target) does not exist."""

    def __init__(self, path: Path | str, referenced_from: Path | str | None = None):
        self.path = Path(path)
        self.referenced_from = Path(referenced_from) if referenced_from else None
        msg = f"Config file not found: {self.path}"
        if self.referenced_from:
            msg += f" (referenced from {self.referenced_from})"
        super().__init__(msg)


class ExtendsCycle(ConfigError):
    """The extends graph loops back onto a layer still being resolved."""

    def __init__(self, chain: list[Path]):
        self.chain = list(chain)
        lines = "\n".join(f"- {p}" for p in self.chain)
        super().__init__(f"Workspace config extends cycle detected:\n{lines}")


class MultipleConfigCandidates(ConfigError):
    """More than one workspace config filename exists at the root."""

    def __init__(self, candidates: list[Path]):
        self.candidates = list(candidates)
        names = ", ".join(p.name for p in self.candidates)
        super().__init__(
            f"Multiple workspace config files found in {self.candidates[0].parent}: {names}"
        )


# ── Modules ─────────────────────────────────────────────────────


class UnknownModuleSelection(DevduckError):
    """A selection pattern names a module no tier provides."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = sorted(available or [])
        msg = f"Unknown module: {name!r}"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)


# ── Installation ────────────────────────────────────────────────


class MissingRequiredEnv(DevduckError):
    """Required environment variables are unset. Maps to needs_input."""

    def __init__(self, missing: list[tuple[str, str]]):
        self.missing = list(missing)
        names = ", ".join(f"{name} (from {source})" for name, source in self.missing)
        super().__init__(f"Missing required environment variables: {names}")


class CheckFailed(DevduckError):
    """A required check failed."""

    def __init__(self, check_id: str, error: str = ""):
        self.check_id = check_id
        self.error = error
        super().__init__(f"Check {check_id} failed" + (f": {error}" if error else ""))


class HookFailed(DevduckError):
    """A module lifecycle hook failed."""

    def __init__(self, module: str, phase: str, error: str = ""):
        self.module = module
        self.phase = phase
        self.error = error
        super().__init__(f"Hook {phase} failed for module {module}" + (f": {error}" if error else ""))


class ProbeTimeout(DevduckError):
    """A probe exceeded its time budget. Treated as a failed check."""

    def __init__(self, target: str, timeout: float):
        self.target = target
        self.timeout = timeout
        super().__init__(f"Probe timed out after {timeout:g}s: {target}")


class StateLockedError(DevduckError):
    """Another orchestrator process holds the workspace install lock."""
