"""
DriveGenie — CLI entrypoint.

Usage:
    drivegenie --help
    drivegenie config init
    drivegenie config check
    drivegenie generate --strategy script --out build/
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from drivegenie import __version__
from drivegenie.core.observability.logging_config import LoggingOptions, setup_from_options


@click.group()
@click.version_option(version=__version__, prog_name="drivegenie")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to installer.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """DriveGenie — configure and generate Synology Drive deployment installers."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        flag_level = "DEBUG"
    elif verbose:
        flag_level = "INFO"
    elif quiet:
        flag_level = "ERROR"
    else:
        flag_level = None

    setup_from_options(LoggingOptions.from_env(flag_level), quiet_third_party=not debug)


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Installer configuration commands."""


@config.command("init")
@click.argument("path", required=False, type=click.Path())
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
@click.pass_context
def config_init(ctx: click.Context, path: str | None, force: bool) -> None:
    """Write a default installer.yml (PATH defaults to ./installer.yml)."""
    from drivegenie.core.config.loader import (
        INSTALLER_CONFIG_FILE,
        ConfigError,
        write_default_config,
    )

    target = Path(path) if path else ctx.obj.get("config_path") or Path(INSTALLER_CONFIG_FILE)
    try:
        write_default_config(target, overwrite=force)
    except (ConfigError, OSError) as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    click.secho(f"✅ Wrote {target}", fg="green")


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate installer.yml configuration."""
    from drivegenie.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   App: {result.config.app_name} ({result.config.app_identifier})")
        mode = "download" if result.config.use_online_installer else "bundled"
        click.echo(f"   Package: {mode}")
        click.echo(f"   Backend: {'on' if result.config.backend.enabled else 'off'}")
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

    click.echo()


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set one field (use backend.FIELD for backend settings).

    Examples:

        drivegenie config set app_name "Drive 助手"

        drivegenie config set backend.server_address 10.0.0.5
    """
    from drivegenie.core.services.editor import SetBackendField, SetField

    if key.startswith("backend."):
        command = SetBackendField(key.removeprefix("backend."), value)
    else:
        command = SetField(key, value)
    _edit(ctx, command, f"{key} = {value}")


@config.command("toggle-backup")
@click.argument("root")
@click.pass_context
def config_toggle_backup(ctx: click.Context, root: str) -> None:
    """Toggle one backup root (Desktop, C:, D:, E:, F:, G:)."""
    from drivegenie.core.models.installer import BackupRoot
    from drivegenie.core.services.editor import ToggleBackupRoot

    try:
        parsed = BackupRoot(root)
    except ValueError:
        choices = ", ".join(r.value for r in BackupRoot)
        click.secho(f"❌ Unknown backup root '{root}' (choose from {choices})", fg="red")
        sys.exit(1)

    config = _edit(ctx, ToggleBackupRoot(parsed), f"toggled {parsed.value}")
    selected = ", ".join(r.value for r in config.ordered_backup_selection) or "(none)"
    click.echo(f"   Selection: {selected}")


def _edit(ctx: click.Context, command, summary: str):
    """Load the config, apply one edit through an EditorSession, save."""
    from drivegenie.core.config.loader import (
        ConfigError,
        find_config_file,
        load_installer_config,
        write_config,
    )
    from drivegenie.core.services.editor import EditorSession

    path = ctx.obj.get("config_path") or find_config_file()
    try:
        session = EditorSession(load_installer_config(path))
        config = session.apply(command)
        write_config(config, path)
    except (ConfigError, OSError) as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    click.secho(f"✅ {summary}", fg="green")
    return config


# ── departments ─────────────────────────────────────────────────


@cli.command()
@click.argument("project")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def departments(ctx: click.Context, project: str, as_json: bool) -> None:
    """Show the department options offered for PROJECT."""
    from drivegenie.core.config.loader import ConfigError, load_installer_config
    from drivegenie.core.services.departments import DepartmentResolver

    try:
        config = load_installer_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    options = DepartmentResolver.from_config(config).resolve(project)

    if as_json:
        click.echo(json.dumps({"project": project, "departments": options}, ensure_ascii=False))
        return

    if not options:
        click.secho(f"   No departments for '{project}'", fg="yellow")
        return
    click.secho(f"\n🏢 {project}", fg="cyan", bold=True)
    for name in options:
        click.echo(f"     • {name}")
    click.echo()


# ── generate ────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--strategy",
    "-s",
    type=click.Choice(["script", "bundle", "delegated"]),
    default="script",
    show_default=True,
    help="Artifact to produce.",
)
@click.option(
    "--out",
    "-o",
    "out_dir",
    type=click.Path(file_okay=False),
    default="build",
    show_default=True,
    help="Output directory.",
)
@click.option("--build-helper", is_flag=True, help="Also write build.bat (script strategies).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def generate(
    ctx: click.Context,
    strategy: str,
    out_dir: str,
    build_helper: bool,
    as_json: bool,
) -> None:
    """Generate an installer artifact from installer.yml.

    Examples:

        drivegenie generate --strategy script --build-helper

        drivegenie generate --strategy bundle --out dist/bundle
    """
    from drivegenie.core.use_cases.generate import run_generate

    result = run_generate(
        strategy,
        Path(out_dir),
        config_path=ctx.obj.get("config_path"),
        build_helper=build_helper,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        sys.exit(0 if result.ok else 1)

    if not result.ok:
        click.secho(f"❌ {result.error}", fg="red")
        for issue in result.issues:
            click.echo(f"   • {issue}")
        sys.exit(1)

    assert result.artifact is not None
    click.secho(
        f"\n📦 {result.artifact.kind.value} — {result.artifact.identifier}",
        fg="cyan",
        bold=True,
    )
    for path in result.written:
        click.echo(f"   ✓ {path}")
    click.echo()


# ── Sub-command groups ──────────────────────────────────────────

from drivegenie.ui.cli.agent import agent  # noqa: E402

cli.add_command(agent)


if __name__ == "__main__":
    cli()
