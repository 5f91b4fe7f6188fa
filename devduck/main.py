"""
DevDuck — CLI entrypoint.

Usage:
    devduck --help
    devduck install
    devduck run-step check-env
    devduck config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from devduck import __version__
from devduck.core.observability.logging_config import add_file_handler, setup_logging

_STATUS_STYLE = {
    "passed": ("✓", "green"),
    "failed": ("✗", "red"),
    "skipped": ("⊘", "yellow"),
}


@click.group()
@click.version_option(version=__version__, prog_name="devduck")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--workspace-root",
    "-w",
    type=click.Path(file_okay=False),
    default=None,
    help="Workspace directory (default: auto-detect from cwd).",
)
@click.option(
    "--project-root",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory of built-in modules (default: devduck_path).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    workspace_root: str | None,
    project_root: str | None,
) -> None:
    """DevDuck — provision a developer workspace from declarative config."""
    from devduck.core.config.store import find_workspace_root

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    root = Path(workspace_root) if workspace_root else find_workspace_root() or Path.cwd()
    ctx.obj["workspace_root"] = root.resolve()
    ctx.obj["project_root"] = Path(project_root).resolve() if project_root else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("DEVDUCK_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("DEVDUCK_LOG_FILE"),
        log_file_level=os.environ.get("DEVDUCK_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


def _root_options(f):
    """Accept --workspace-root / --project-root after the subcommand too."""
    f = click.option(
        "--project-root",
        "sub_project_root",
        type=click.Path(file_okay=False),
        default=None,
        help="Directory of built-in modules (overrides the global option).",
    )(f)
    f = click.option(
        "--workspace-root",
        "-w",
        "sub_workspace_root",
        type=click.Path(file_okay=False),
        default=None,
        help="Workspace directory (overrides the global option).",
    )(f)
    return f


def _apply_roots(ctx: click.Context, workspace_root: str | None, project_root: str | None) -> None:
    if workspace_root:
        ctx.obj["workspace_root"] = Path(workspace_root).resolve()
    if project_root:
        ctx.obj["project_root"] = Path(project_root).resolve()


def _echo_check(result) -> None:
    icon, color = _STATUS_STYLE.get(result.status, ("•", "white"))
    click.secho(f"   {icon} {result.name} ", fg=color, nl=False)
    tail = result.skip_reason if result.skipped else result.error
    label = f"[{result.check_id.split(':', 2)[1]}]"
    click.echo(f"{label}" + (f"  {tail}" if tail else ""))
    if result.failed and result.docs:
        click.echo(f"     │ docs: {result.docs}")


def _make_context(ctx: click.Context, yes: bool):
    from devduck.core.context import InstallContext

    return InstallContext.create(
        ctx.obj["workspace_root"],
        project_root=ctx.obj["project_root"],
        assume_yes=yes,
        on_check=None if ctx.obj["quiet"] else _echo_check,
    )


def _attach_install_log(ctx: click.Context) -> None:
    from devduck.core.persistence.state_file import default_log_path

    add_file_handler(default_log_path(ctx.obj["workspace_root"]), "DEBUG" if ctx.obj["debug"] else "INFO")


def _prepare_run(ctx: click.Context, yes: bool, as_json: bool):
    """Build the install context and resolve config before anything touches .cache/."""
    from devduck.core.errors import DevduckError

    install_ctx = _make_context(ctx, yes)
    if as_json:
        install_ctx.on_check = None
    try:
        install_ctx.load_config()
    except DevduckError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    _attach_install_log(ctx)
    return install_ctx


def _echo_outcome(outcome) -> None:
    color = {"ok": "green", "needs_input": "yellow", "failed": "red"}[outcome.status]
    click.secho(f"   [{outcome.step_id}] {outcome.status}", fg=color, bold=True, nl=False)
    detail = outcome.error if outcome.status == "failed" else outcome.message
    click.echo(f"  {detail}" if detail else "")
    for warning in outcome.warnings:
        click.secho(f"     ⚠️  {warning}", fg="yellow")


# ── Install ─────────────────────────────────────────────────────


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Run install commands without asking.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@_root_options
@click.pass_context
def install(
    ctx: click.Context,
    yes: bool,
    as_json: bool,
    sub_workspace_root: str | None,
    sub_project_root: str | None,
) -> None:
    """Run the full install pipeline.

    Exit code 0 when completed, 2 when paused for input, 1 on failure.
    """
    from devduck.core.engine.pipeline import run_install
    from devduck.core.errors import DevduckError

    _apply_roots(ctx, sub_workspace_root, sub_project_root)
    install_ctx = _prepare_run(ctx, yes, as_json)

    try:
        result = run_install(install_ctx)
    except DevduckError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    click.echo()
    for outcome in result.outcomes:
        _echo_outcome(outcome)

    click.echo()
    counts = result.counts()
    summary = (
        f"{counts.get('passed', 0)} passed, {counts.get('failed', 0)} failed, "
        f"{counts.get('optional_missing', 0)} optional missing, "
        f"{counts.get('already_executed', 0)} already done"
    )
    if result.status == "completed":
        click.secho(f"✅ Installation completed  ({summary})", fg="green", bold=True)
    elif result.status == "paused":
        click.secho(f"⏸  Paused at {result.halted_at}: {result.message}", fg="yellow", bold=True)
        click.echo("   Fix the input above and run `devduck install` again.")
    else:
        click.secho(f"❌ Failed at {result.halted_at}: {result.message}", fg="red", bold=True)

    sys.exit(result.exit_code)


@cli.command("run-step")
@click.argument("step_id", metavar="STEP")
@click.option("--yes", "-y", is_flag=True, help="Run install commands without asking.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@_root_options
@click.pass_context
def run_step_cmd(
    ctx: click.Context,
    step_id: str,
    yes: bool,
    as_json: bool,
    sub_workspace_root: str | None,
    sub_project_root: str | None,
) -> None:
    """Run a single install step.

    STEP is one of: check-env, download-repos, download-projects,
    check-env-again, setup-modules, setup-projects, verify-installation.
    """
    from devduck.core.engine.pipeline import STEP_IDS, run_step
    from devduck.core.errors import DevduckError

    if step_id not in STEP_IDS:
        click.secho(f"❌ Unknown step {step_id!r}. Steps: {', '.join(STEP_IDS)}", fg="red", err=True)
        sys.exit(1)

    _apply_roots(ctx, sub_workspace_root, sub_project_root)
    install_ctx = _prepare_run(ctx, yes, as_json)

    try:
        outcome = run_step(install_ctx, step_id)
    except DevduckError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        _echo_outcome(outcome)
    sys.exit(outcome.exit_code)


# ── Config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Workspace configuration commands."""


@config.command("show")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_show(ctx: click.Context, as_json: bool) -> None:
    """Print the effective (fully merged) workspace config."""
    import yaml

    from devduck.core.config.resolver import resolve_workspace
    from devduck.core.errors import ConfigError

    try:
        resolved = resolve_workspace(ctx.obj["workspace_root"])
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(resolved.to_dict(), indent=2, default=str))
        return

    if not ctx.obj["quiet"]:
        click.secho("# Layers (base first):", fg="cyan")
        for layer in resolved.layers:
            click.secho(f"#   {layer}", fg="cyan")
    click.echo(yaml.safe_dump(resolved.data, default_flow_style=False, sort_keys=False), nl=False)


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate workspace.config.yml and everything it extends."""
    from devduck.core.use_cases.config_check import check_config

    result = check_config(ctx.obj["workspace_root"], ctx.obj["project_root"])

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None and result.resolved is not None
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Config: {result.resolved.entry}")
        click.echo(f"   Layers: {len(result.resolved.layers)}")
        click.echo(f"   Modules: {', '.join(result.config.modules)}")
        click.echo(f"   Projects: {len(result.config.projects)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)


# ── Modules ─────────────────────────────────────────────────────


@cli.group()
def modules() -> None:
    """Module discovery commands."""


@modules.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--all", "show_all", is_flag=True, help="List every discovered module, not only the selection.")
@click.pass_context
def modules_list(ctx: click.Context, as_json: bool, show_all: bool) -> None:
    """Show the resolved module set in install order."""
    from devduck.core.context import InstallContext
    from devduck.core.errors import DevduckError
    from devduck.core.modules.catalog import discover_catalog
    from devduck.core.modules.resolver import resolve_modules

    install_ctx = InstallContext.create(ctx.obj["workspace_root"], project_root=ctx.obj["project_root"])
    try:
        cfg = install_ctx.load_config()
        catalog = discover_catalog(install_ctx.workspace_root, install_ctx.builtin_root)
        patterns = ["*"] if show_all else cfg.modules
        resolved = resolve_modules(patterns, catalog, strict=False)
    except DevduckError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(resolved.to_dict(), indent=2))
        return

    click.secho(f"\n📦 Modules: {len(resolved)}", fg="cyan", bold=True)
    for module in resolved:
        deps = f"  (needs {', '.join(module.dependencies)})" if module.dependencies else ""
        click.echo(f"   • {module.name} [{module.tier.value}]{deps}  → {module.path}")
    for mod, dep in resolved.missing_dependencies:
        click.secho(f"   ⚠️  {mod} depends on missing module {dep}", fg="yellow")
    click.echo()


# ── State ───────────────────────────────────────────────────────


@cli.group()
def state() -> None:
    """Install state commands."""


@state.command("show")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def state_show(ctx: click.Context, as_json: bool) -> None:
    """Show recorded steps and executed checks."""
    from devduck.core.persistence.state_file import default_state_path, load_state

    path = default_state_path(ctx.obj["workspace_root"])
    current = load_state(path)

    if as_json:
        click.echo(json.dumps(current.to_json_dict(), indent=2))
        return

    click.secho(f"\n💾 {path}", fg="cyan", bold=True)
    if current.installed_at:
        click.echo(f"   Installed at {current.installed_at}")
    click.secho("   Steps:", fg="white", bold=True)
    for step_id, record in current.steps.items():
        color = {"ok": "green", "needs_input": "yellow", "failed": "red"}.get(record.status or "", "white")
        click.echo(f"     • {step_id} ", nl=False)
        click.secho(record.status or "?", fg=color)
    click.secho(f"   Executed checks: {len(current.executed_checks)}", fg="white", bold=True)
    for entry in current.executed_checks:
        icon, color = ("✓", "green") if entry.passed else ("✗", "red")
        click.secho(f"     {icon} {entry.check_id}", fg=color)
    click.echo()


@state.command("clean")
@click.pass_context
def state_clean(ctx: click.Context) -> None:
    """Forget all recorded progress so the next install starts fresh."""
    from devduck.core.errors import StateLockedError
    from devduck.core.persistence.state_file import clean_state, install_lock

    root = ctx.obj["workspace_root"]
    try:
        with install_lock(root):
            removed = clean_state(root)
    except StateLockedError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if removed:
        click.secho("🧹 Install state removed", fg="green")
    else:
        click.echo("No install state to remove.")


if __name__ == "__main__":
    cli()
