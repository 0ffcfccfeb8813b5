"""
CarClaw Installer — CLI entrypoint.

Usage:
    carclaw-install                      # interactive bridge install
    carclaw-install --target agent       # agent daemon install
    carclaw-install --uninstall
    carclaw-install status
    carclaw-install plan --json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from carclaw_installer import __version__
from carclaw_installer.core.observability.logging_config import setup_from_environment


def _open_context(ctx: click.Context):
    """Load settings and build the InstallContext, or exit 1."""
    from carclaw_installer.core import context as install_context
    from carclaw_installer.core.config.loader import ConfigError, load_settings

    try:
        settings = load_settings(
            ctx.obj.get("config_path"),
            overrides={"target": ctx.obj.get("target")},
        )
        return install_context.build_context(settings)
    except ConfigError as e:
        if ctx.obj.get("as_json"):
            click.echo(json.dumps({"error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


def _make_prompt(ctx: click.Context):
    from carclaw_installer.core.services.prompts import ClickPrompt, DefaultsPrompt

    if ctx.obj.get("non_interactive"):
        return DefaultsPrompt(err=True, echo=not ctx.obj.get("quiet"))
    return ClickPrompt(err=bool(ctx.obj.get("as_json")))


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="carclaw-install")
@click.option(
    "--target",
    type=click.Choice(["bridge", "agent"]),
    default=None,
    help="What to install (default: bridge).",
)
@click.option("--uninstall", is_flag=True, help="Stop and remove the service.")
@click.option("--non-interactive", "-y", is_flag=True, help="Accept defaults; skip optional services.")
@click.option("--recreate-service", is_flag=True, help="Replace an existing service without asking.")
@click.option("--update", is_flag=True, help="Pull the latest code and reinstall dependencies.")
@click.option("--no-start", is_flag=True, help="Register the service but do not start it.")
@click.option("--dry-run", is_flag=True, help="Show what would change; change nothing.")
@click.option("--mock", is_flag=True, help="Use the mock adapter (no real execution).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to carclaw.yml (default: auto-detect).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(
    ctx: click.Context,
    target: str | None,
    uninstall: bool,
    non_interactive: bool,
    recreate_service: bool,
    update: bool,
    no_start: bool,
    dry_run: bool,
    mock: bool,
    as_json: bool,
    config_path: str | None,
    verbose: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """CarClaw Installer — set up the CarClaw bridge or agent daemon."""
    ctx.ensure_object(dict)
    ctx.obj.update(
        target=target,
        non_interactive=non_interactive,
        as_json=as_json,
        quiet=quiet,
        config_path=Path(config_path) if config_path else None,
    )

    setup_from_environment(debug=debug, verbose=verbose, quiet=quiet)

    if ctx.invoked_subcommand is not None:
        return

    if uninstall:
        _uninstall(ctx, dry_run=dry_run, mock=mock)
    else:
        _install(
            ctx,
            recreate_service=recreate_service,
            update=update,
            start_service=False if no_start else (True if non_interactive else None),
            dry_run=dry_run,
            mock=mock,
        )


# ── Install ─────────────────────────────────────────────────────────


def _install(
    ctx: click.Context,
    *,
    recreate_service: bool,
    update: bool,
    start_service: bool | None,
    dry_run: bool,
    mock: bool,
) -> None:
    from carclaw_installer.core.use_cases.install import run_install

    install_ctx = _open_context(ctx)
    as_json = ctx.obj["as_json"]
    quiet = ctx.obj["quiet"]

    if not as_json and not quiet:
        click.secho(f"\n🚗 {install_ctx.target.title} installer ({install_ctx.profile.label})", fg="cyan", bold=True)
        click.echo(f"   Install dir: {install_ctx.install_dir}\n")

    result = run_install(
        install_ctx,
        _make_prompt(ctx),
        recreate_service=recreate_service,
        start_service=start_service,
        update=update,
        dry_run=dry_run,
        mock=mock,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.plan is not None and result.report is not None:
        click.echo()
        if result.already_converged:
            click.secho("✅ Already up to date; nothing to do", fg="green", bold=True)
        else:
            label = "Planned actions" if dry_run else "Actions"
            click.secho(f"📋 {label}:", fg="white", bold=True)
            for action in result.plan.pending:
                receipt = result.report.receipt_for(action.id)
                _echo_action(action.name or action.kind.value, receipt)

    if result.report is not None and result.report.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warning in result.report.warnings:
            click.echo(f"   • {warning}")

    if result.validation_failures:
        click.echo()
        click.secho("⚠️  Not configured:", fg="yellow")
        for failure in result.validation_failures:
            click.echo(f"   • {failure.service}: {failure.message}")

    if result.health is not None:
        click.echo()
        click.secho("🩺 Health:", fg="white", bold=True)
        for component in result.health.components:
            _echo_health(component.name, component.status, component.message)

    if result.error:
        click.echo()
        click.secho(f"❌ {result.error}", fg="red", bold=True)
    elif result.health is not None and result.health.failed:
        click.echo()
        click.secho("❌ Installed, but the health check failed", fg="red", bold=True)
    elif not dry_run and not quiet:
        click.echo()
        click.secho(f"✅ {install_ctx.target.title} is set up", fg="green", bold=True)
        _echo_commands(result.commands)

    click.echo()
    sys.exit(result.exit_code)


# ── Uninstall ───────────────────────────────────────────────────────


def _uninstall(ctx: click.Context, *, dry_run: bool, mock: bool) -> None:
    from carclaw_installer.core.use_cases.uninstall import run_uninstall

    install_ctx = _open_context(ctx)
    result = run_uninstall(install_ctx, _make_prompt(ctx), dry_run=dry_run, mock=mock)

    if ctx.obj["as_json"]:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    click.secho(f"\n🧹 Uninstall {install_ctx.target.title}", fg="cyan", bold=True)
    if result.plan is not None and result.report is not None:
        for action in result.plan.actions:
            _echo_action(action.name or action.kind.value, result.report.receipt_for(action.id))
    for note in result.notes:
        click.echo(f"   {note}")

    if result.error:
        click.secho(f"❌ {result.error}", fg="red", bold=True)
    click.echo()
    sys.exit(result.exit_code)


# ── Subcommands ─────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Probe the host and show what is installed."""
    from carclaw_installer.core.use_cases.status import get_status

    as_json = as_json or ctx.obj.get("as_json", False)
    ctx.obj["as_json"] = as_json
    install_ctx = _open_context(ctx)
    result = get_status(install_ctx)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    host = result.host
    assert host is not None

    click.secho(f"\n📋 {install_ctx.target.title} on {install_ctx.profile.label}", fg="cyan", bold=True)
    click.echo(f"   Install dir: {result.install_dir}")
    click.echo(f"   Service:     {host.service.value}  ({result.unit_path})")
    click.echo()

    for name, state in host.resources.items():
        color = {"present": "green", "missing": "red", "misconfigured": "yellow"}.get(state.status.value, "white")
        click.echo(f"   {name:<13} ", nl=False)
        click.secho(f"{state.status.value:<14}", fg=color, nl=False)
        click.echo(state.detail or "")

    if host.config_values:
        click.echo()
        click.secho("   Configured keys:", fg="white", bold=True)
        click.echo(f"     {', '.join(sorted(host.config_values))}")

    if result.last_run is not None:
        run = result.last_run
        click.echo()
        click.secho("   Last run:", fg="white", bold=True)
        run_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(run.status, "white")
        click.echo(f"     {run.operation_type} — ", nl=False)
        click.secho(run.status, fg=run_color, nl=False)
        click.echo(f" at {run.timestamp}")

    _echo_commands(result.commands)
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--update", is_flag=True, help="Include a pull and dependency reinstall.")
@click.pass_context
def plan(ctx: click.Context, as_json: bool, update: bool) -> None:
    """Show the actions an install would run, with default answers."""
    from carclaw_installer.core.use_cases.status import preview_plan

    as_json = as_json or ctx.obj.get("as_json", False)
    ctx.obj["as_json"] = as_json
    install_ctx = _open_context(ctx)
    result = preview_plan(install_ctx, update=update)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    execution_plan = result.plan
    assert execution_plan is not None

    click.secho(f"\n📋 Plan for {install_ctx.target.title}", fg="cyan", bold=True)
    if execution_plan.is_empty:
        click.secho("   ✅ Nothing to do", fg="green")
    for action in execution_plan.actions:
        if action.is_noop:
            click.secho(f"   ⊘ {action.name}", dim=True)
        else:
            marker = " (best effort)" if action.best_effort else ""
            click.echo(f"   → {action.name}{marker}")
    click.echo()


# ── Rendering helpers ───────────────────────────────────────────────


def _echo_action(label: str, receipt) -> None:
    if receipt is None:
        click.echo(f"   → {label}")
    elif receipt.ok:
        click.secho(f"   ✓ {label}", fg="green")
    elif receipt.failed:
        click.secho(f"   ✗ {label}: {receipt.error}", fg="red")
    else:
        click.secho(f"   ⊘ {label}", fg="yellow", nl=False)
        click.echo(f" ({receipt.output})" if receipt.output else "")


def _echo_health(name: str, status: str, message: str) -> None:
    color = {"healthy": "green", "degraded": "yellow", "unhealthy": "red"}.get(status, "white")
    click.echo(f"   {name:<11} ", nl=False)
    click.secho(f"{status:<10}", fg=color, nl=False)
    click.echo(message)


def _echo_commands(commands: dict[str, str]) -> None:
    if not commands:
        return
    click.echo()
    click.secho("   Manage the service:", fg="white", bold=True)
    for label, command in commands.items():
        click.echo(f"     {label:<8} {command}")


if __name__ == "__main__":
    cli()
