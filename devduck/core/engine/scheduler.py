"""
Tiered check scheduling.

Checks are grouped by scheduling tier and run tier by tier across all
their owners (modules or projects); owner order is secondary. Each
result is committed to install state before the next check starts. A
required failure stops the run of checks at once, so no later check,
and in particular no later tier, begins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from devduck.core.checks.runner import CheckTarget
from devduck.core.context import InstallContext
from devduck.core.models.check import CheckResult
from devduck.core.models.config import TIER_ORDER

logger = logging.getLogger(__name__)


@dataclass
class TierRun:
    results: list[CheckResult] = field(default_factory=list)
    already_executed: list[str] = field(default_factory=list)
    halted_by: CheckResult | None = None

    @property
    def halted(self) -> bool:
        return self.halted_by is not None


def group_by_tier(targets: list[CheckTarget]) -> dict[str, list[CheckTarget]]:
    groups: dict[str, list[CheckTarget]] = {tier: [] for tier in TIER_ORDER}
    for target in targets:
        if target.spec.tier and target.spec.tier not in TIER_ORDER:
            logger.warning(
                "Check %s has unknown tier %r, running it in %s",
                target.label, target.spec.tier, target.spec.effective_tier,
            )
        groups[target.spec.effective_tier].append(target)
    return groups


def run_check(ctx: InstallContext, target: CheckTarget, step_id: str, allow_install: bool) -> CheckResult:
    """Run one check and record it. Skipped checks are not recorded."""
    result = ctx.runner.run(target, allow_install=allow_install)
    if not result.skipped:
        ctx.store.track_check(
            target.identity.key,
            step_id,
            passed=result.passed,
            check_name=target.spec.name,
            error=result.error,
        )
    ctx.report(result)
    return result


def run_tiered(
    ctx: InstallContext,
    targets: list[CheckTarget],
    step_id: str,
    allow_install: bool = True,
) -> TierRun:
    """Run ``targets`` tier by tier, skipping identities already executed."""
    run = TierRun()
    for tier, group in group_by_tier(targets).items():
        if not group:
            continue
        logger.info("[%s] running %d check(s)", tier, len(group))
        for target in group:
            key = target.identity.key
            if ctx.store.is_check_executed(key):
                logger.debug("Check %s already executed, skipping", key)
                run.already_executed.append(key)
                continue
            result = run_check(ctx, target, step_id, allow_install)
            run.results.append(result)
            if result.blocking:
                logger.error("Required check %s failed, halting %s", target.label, step_id)
                run.halted_by = result
                return run
    return run
