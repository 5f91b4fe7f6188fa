"""
The seven install steps.

Each step takes an InstallContext and returns a StepOutcome. Steps log
and carry on past recoverable problems (a repo that fails to clone is a
warning); only missing required variables (needs_input), hook failures
and required check failures stop the run.
"""

from __future__ import annotations

import logging
from pathlib import Path

from devduck.core.checks.env import (
    check_requirements,
    collect_requirements,
    write_env_defaults,
)
from devduck.core.checks.runner import CheckTarget
from devduck.core.context import InstallContext
from devduck.core.engine.outcome import StepOutcome
from devduck.core.engine.scheduler import run_check, run_tiered
from devduck.core.errors import CheckFailed, MissingRequiredEnv, UnknownModuleSelection
from devduck.core.models.action import Action
from devduck.core.models.check import CheckIdentity
from devduck.core.models.config import CheckSpec, ProjectSpec, source_basename
from devduck.core.models.module import ModuleDescriptor
from devduck.core.modules.catalog import EXTERNAL_REPOS_DIR, discover_catalog
from devduck.core.modules.hooks import run_hooks
from devduck.core.modules.resolver import ResolvedModuleSet, resolve_modules

logger = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────


def _resolve(ctx: InstallContext, include_downloaded: bool, strict: bool) -> ResolvedModuleSet:
    config = ctx.load_config()
    catalog = discover_catalog(
        ctx.workspace_root,
        ctx.builtin_root,
        include_projects=include_downloaded,
        include_external=include_downloaded,
    )
    return resolve_modules(config.modules, catalog, strict=strict)


def _is_setup_check(spec: CheckSpec) -> bool:
    """Auth checks without an install command are left to env and verify steps."""
    return not (spec.is_auth and not spec.install)


def _module_targets(modules: list[ModuleDescriptor], setup_only: bool) -> list[CheckTarget]:
    targets = []
    for module in modules:
        for spec in module.checks:
            if setup_only and not _is_setup_check(spec):
                continue
            targets.append(CheckTarget(CheckIdentity.for_module(module.name, spec.name), spec))
    return targets


def _project_targets(ctx: InstallContext, projects: list[ProjectSpec], setup_only: bool) -> list[CheckTarget]:
    targets = []
    for project in projects:
        name = project.project_name
        for spec in project.checks:
            if setup_only and not _is_setup_check(spec):
                continue
            targets.append(CheckTarget(
                CheckIdentity.for_project(name, spec.name),
                spec,
                cwd=ctx.projects_dir / name,
            ))
    return targets


# ── Steps 1 and 4: environment ──────────────────────────────────


def _check_env(ctx: InstallContext, step_id: str, include_downloaded: bool) -> StepOutcome:
    config = ctx.load_config()
    outcome = StepOutcome(step_id)

    written = write_env_defaults(ctx.env, config)
    modules = _resolve(ctx, include_downloaded, strict=False)
    requirements = collect_requirements(config, ctx.resolved, modules.modules, config.projects)
    report = check_requirements(requirements, ctx.env)

    outcome.result = {**report.to_dict(), "defaults_written": written}
    for req in report.missing_optional:
        outcome.warnings.append(f"Optional variable {req.name} not set (from {req.source})")

    if not report.ok:
        missing = [(r.name, r.source) for r in report.missing_required]
        outcome.status = "needs_input"
        outcome.message = str(MissingRequiredEnv(missing))
        logger.warning("%s; set them in %s and re-run", outcome.message, ctx.env.env_file)
        return outcome

    outcome.message = f"{len(report.present)} variable(s) present"
    return outcome


def check_env(ctx: InstallContext) -> StepOutcome:
    """Verify required environment variables (repos and projects not yet fetched)."""
    return _check_env(ctx, "check-env", include_downloaded=False)


def check_env_again(ctx: InstallContext) -> StepOutcome:
    """Re-check variables now that external and project modules are present."""
    return _check_env(ctx, "check-env-again", include_downloaded=True)


# ── Step 2: external repositories ───────────────────────────────


def download_repos(ctx: InstallContext) -> StepOutcome:
    """Clone external module repositories into ``<workspace>/devduck/``."""
    config = ctx.load_config()
    outcome = StepOutcome("download-repos")
    repos = []

    for url in config.repos:
        name = source_basename(url)
        dest = ctx.workspace_root / EXTERNAL_REPOS_DIR / name
        clone_url = f"https://{url}" if url.startswith("github.com/") else url
        receipt = ctx.adapters.execute_action(Action(
            id=f"repo:{name}:clone",
            adapter="git",
            name=name,
            params={"operation": "clone", "url": clone_url, "dest": str(dest)},
        ))
        entry = {"url": url, "name": name, "path": str(dest), "status": receipt.status}
        if receipt.failed:
            entry["error"] = receipt.error
            outcome.warnings.append(f"Failed to download {url}: {receipt.error}")
        repos.append(entry)

    outcome.result = {"repos": repos}
    outcome.message = f"{len(repos)} repo(s) processed" if repos else "No external repos configured"
    return outcome


# ── Step 3: projects ────────────────────────────────────────────


def _link_local(ctx: InstallContext, project: ProjectSpec, dest: Path) -> dict:
    source = Path(project.src).expanduser()
    if not source.is_absolute():
        source = ctx.workspace_root / source
    if not source.is_dir():
        return {"status": "failed", "error": f"Project source not found: {source}"}
    receipt = ctx.adapters.execute_action(Action(
        id=f"project:{project.project_name}:link",
        adapter="filesystem",
        name=project.project_name,
        params={"operation": "symlink", "path": str(dest), "target": str(source)},
    ))
    entry = {"status": receipt.status, "type": "link", "target": str(source)}
    if not receipt.ok:
        entry["error" if receipt.failed else "note"] = receipt.error or receipt.output
    return entry


def _fetch_git(ctx: InstallContext, project: ProjectSpec, dest: Path) -> dict:
    name = project.project_name
    if (dest / ".git").exists():
        receipt = ctx.adapters.execute_action(Action(
            id=f"project:{name}:pull",
            adapter="git",
            name=name,
            params={"operation": "pull", "dest": str(dest)},
        ))
        if receipt.failed:
            logger.warning("Failed to update %s, using existing version: %s", name, receipt.error)
        return {"status": "ok", "type": "git", "updated": receipt.ok}

    receipt = ctx.adapters.execute_action(Action(
        id=f"project:{name}:clone",
        adapter="git",
        name=name,
        params={"operation": "clone", "url": project.clone_url, "dest": str(dest)},
    ))
    entry = {"status": receipt.status, "type": "git"}
    if receipt.failed:
        entry["error"] = receipt.error
    return entry


def download_projects(ctx: InstallContext) -> StepOutcome:
    """Link local project directories and clone git projects into ``projects/``."""
    config = ctx.load_config()
    outcome = StepOutcome("download-projects")
    projects = []

    for project in config.projects:
        name = project.project_name
        dest = ctx.projects_dir / name
        if project.is_git:
            entry = _fetch_git(ctx, project, dest)
        else:
            entry = _link_local(ctx, project, dest)
        entry.update({"name": name, "src": project.src, "path": str(dest)})
        if entry["status"] == "failed":
            outcome.warnings.append(f"Project {name}: {entry.get('error')}")
        projects.append(entry)

    outcome.result = {"projects": projects}
    outcome.message = f"{len(projects)} project(s) processed" if projects else "No projects configured"
    return outcome


# ── Steps 5 and 6: setup ────────────────────────────────────────


def setup_modules(ctx: InstallContext) -> StepOutcome:
    """Run module hooks, then module checks tier by tier."""
    config = ctx.load_config()
    outcome = StepOutcome("setup-modules")

    try:
        modules = _resolve(ctx, include_downloaded=True, strict=True)
    except UnknownModuleSelection as e:
        outcome.status = "failed"
        outcome.error = str(e)
        return outcome

    installed = {m.name: m.path for m in modules}
    outcome.result = {"installedModules": installed}
    for mod, dep in modules.missing_dependencies:
        outcome.warnings.append(f"Module {mod} depends on missing module {dep}")

    hook_run = run_hooks(modules.modules, ctx.hooks, ctx.adapters, ctx.workspace_root, config)
    outcome.result["hooks"] = hook_run.to_dict()
    if not hook_run.ok:
        outcome.status = "failed"
        outcome.error = "; ".join(hook_run.errors())
        return outcome

    run = run_tiered(ctx, _module_targets(modules.modules, setup_only=True), "setup-modules")
    outcome.checks = run.results
    outcome.already_executed = len(run.already_executed)
    if run.halted:
        outcome.status = "failed"
        outcome.error = str(CheckFailed(run.halted_by.check_id, run.halted_by.error or ""))
        return outcome

    outcome.message = f"{len(installed)} module(s) set up"
    return outcome


def setup_projects(ctx: InstallContext) -> StepOutcome:
    """Run project checks tier by tier."""
    config = ctx.load_config()
    outcome = StepOutcome("setup-projects")

    run = run_tiered(ctx, _project_targets(ctx, config.projects, setup_only=True), "setup-projects")
    outcome.checks = run.results
    outcome.already_executed = len(run.already_executed)
    if run.halted:
        outcome.status = "failed"
        outcome.error = str(CheckFailed(run.halted_by.check_id, run.halted_by.error or ""))
        return outcome

    outcome.message = f"{len(config.projects)} project(s) checked"
    return outcome


# ── Step 7: verification ────────────────────────────────────────


def verify_installation(ctx: InstallContext) -> StepOutcome:
    """Probe every check that has a ``test``, without remediation."""
    config = ctx.load_config()
    outcome = StepOutcome("verify-installation")
    modules = _resolve(ctx, include_downloaded=True, strict=False)

    targets = [
        CheckTarget(CheckIdentity.for_workspace(spec.name), spec) for spec in config.checks
    ]
    targets += _module_targets(modules.modules, setup_only=False)
    targets += _project_targets(ctx, config.projects, setup_only=False)
    targets = [t for t in targets if (t.spec.test or "").strip()]

    mcp_modules = {m.name for m in modules if m.mcp_settings}
    mcp_servers = []
    for target in targets:
        key = target.identity.key
        if ctx.store.is_check_executed(key):
            outcome.already_executed += 1
            continue
        result = run_check(ctx, target, "verify-installation", allow_install=False)
        outcome.checks.append(result)
        if target.spec.mcp_settings is not None or (
            target.identity.scope_kind == "module" and target.identity.scope_name in mcp_modules
        ):
            mcp_servers.append({"name": target.spec.name, "passed": result.passed, "error": result.error})

    state = ctx.store.state
    state.checks = [c.model_dump(mode="json") for c in outcome.checks]
    state.mcp_servers = mcp_servers
    ctx.store.save()

    outcome.result = {"verified": len(outcome.checks), "mcpServers": mcp_servers}
    blocking = [c for c in outcome.checks if c.blocking]
    if blocking:
        outcome.status = "failed"
        outcome.error = "Verification failed: " + ", ".join(c.check_id for c in blocking)
        return outcome

    outcome.message = f"{outcome.passed} passed, {outcome.skipped} skipped, {outcome.optional_missing} optional missing"
    return outcome
