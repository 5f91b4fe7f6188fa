"""
Install pipeline — the fixed step sequence and its state machine.

    check-env → download-repos → download-projects → check-env-again
        → setup-modules → setup-projects → verify-installation

Configuration is resolved before the first step; a config error aborts
with no state written. Each step's outcome is then persisted. The run
halts at the first step that is not ``ok``: ``needs_input`` pauses it
(fix the input, re-run, and already-passed checks are skipped),
``failed`` fails it.

Flow:
    lock → resolve config → for each step: run → persist → halt or continue
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from devduck.core.context import InstallContext
from devduck.core.engine import steps
from devduck.core.engine.outcome import RunResult, StepOutcome
from devduck.core.errors import DevduckError
from devduck.core.persistence.state_file import install_lock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    id: str
    description: str
    run: Callable[[InstallContext], StepOutcome]


STEPS: tuple[Step, ...] = (
    Step("check-env", "Verify required environment variables", steps.check_env),
    Step("download-repos", "Download external extension repositories", steps.download_repos),
    Step("download-projects", "Clone/link workspace projects", steps.download_projects),
    Step("check-env-again", "Re-check environment variables", steps.check_env_again),
    Step("setup-modules", "Setup all extensions", steps.setup_modules),
    Step("setup-projects", "Setup all workspace projects", steps.setup_projects),
    Step("verify-installation", "Verify installation correctness", steps.verify_installation),
)

STEP_IDS = tuple(s.id for s in STEPS)


def get_step(step_id: str) -> Step:
    for step in STEPS:
        if step.id == step_id:
            return step
    raise KeyError(f"Unknown step {step_id!r}; expected one of: {', '.join(STEP_IDS)}")


def _execute(ctx: InstallContext, step: Step) -> StepOutcome:
    """Run one step and persist its outcome. Never raises."""
    logger.info("Step %s: %s", step.id, step.description)
    try:
        outcome = step.run(ctx)
    except DevduckError as e:
        outcome = StepOutcome(step.id, status="failed", error=str(e))
    except Exception as e:
        logger.exception("Step %s crashed", step.id)
        outcome = StepOutcome(step.id, status="failed", error=f"Unexpected error: {e}")

    state = ctx.store.state
    if step.id == "setup-modules" and outcome.ok:
        state.installed_modules = dict(outcome.result.get("installedModules", {}))
    ctx.store.mark_step(
        step.id,
        outcome.status,
        result=outcome.to_dict(),
        error=outcome.error if outcome.status == "failed" else None,
    )

    for warning in outcome.warnings:
        logger.warning("%s: %s", step.id, warning)
    if outcome.status == "failed":
        logger.error("Step %s failed: %s", step.id, outcome.error)
    elif outcome.status == "needs_input":
        logger.warning("Step %s needs input: %s", step.id, outcome.message)
    else:
        logger.info("Step %s ok: %s", step.id, outcome.message)
    return outcome


def run_step(ctx: InstallContext, step_id: str) -> StepOutcome:
    """Run a single step.

    Raises:
        KeyError: Unknown step id.
        ConfigError: Workspace config cannot be resolved (nothing written).
        StateLockedError: Another run holds the workspace lock.
    """
    step = get_step(step_id)
    ctx.load_config()
    with install_lock(ctx.workspace_root):
        ctx.store.reload()
        return _execute(ctx, step)


def run_install(ctx: InstallContext) -> RunResult:
    """Run all steps in order, halting at the first non-ok outcome.

    Raises:
        ConfigError: Workspace config cannot be resolved (nothing written).
        StateLockedError: Another run holds the workspace lock.
    """
    ctx.load_config()
    result = RunResult()

    with install_lock(ctx.workspace_root):
        ctx.store.reload()
        logger.info("Install started in %s", ctx.workspace_root)

        for step in STEPS:
            outcome = _execute(ctx, step)
            result.outcomes.append(outcome)
            if outcome.ok:
                continue
            result.halted_at = step.id
            if outcome.status == "needs_input":
                result.status = "paused"
                result.message = outcome.message
            else:
                result.status = "failed"
                result.message = outcome.error or "Unknown error"
            return result

        ctx.store.state.installed_at = datetime.now(UTC).isoformat()
        ctx.store.save()

    logger.info("Install completed")
    return result
