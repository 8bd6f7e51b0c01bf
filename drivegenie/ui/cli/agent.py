"""
CLI commands for the deployment agent.

Thin wrappers over ``drivegenie.agent``: ``plan`` exports what a bundle
would embed, ``run`` executes a plan on this machine (or rehearses it
against a mock host).
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click


def _load_config(ctx: click.Context):
    from drivegenie.core.config.loader import ConfigError, load_installer_config

    try:
        return load_installer_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _print_event(channel: str, value) -> None:
    from drivegenie.agent.channels import LOG

    if channel == LOG:
        click.echo(f"   {value}")


def _rehearsal_fetch(url: str, dest: Path, *, on_log, **_kwargs) -> Path:
    """Stand-in download for mock runs: writes an empty package."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(b"")
    on_log(f"(mock) skipped download of {url}")
    return dest


@click.group()
def agent() -> None:
    """Deployment agent — export and run deployment plans."""


@agent.command("plan")
@click.option(
    "--out",
    "-o",
    "out_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the plan to a file instead of stdout.",
)
@click.pass_context
def plan_cmd(ctx: click.Context, out_file: str | None) -> None:
    """Export the DeploymentPlan derived from installer.yml."""
    from drivegenie.agent.plan import DeploymentPlan
    from drivegenie.core.errors import ConfigError
    from drivegenie.core.services.validation import ensure_valid

    config = _load_config(ctx)
    try:
        ensure_valid(config)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    text = DeploymentPlan.from_config(config).model_dump_json(indent=2)
    if out_file is None:
        click.echo(text)
        return

    path = Path(out_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text + "\n", encoding="utf-8")
    click.secho(f"✅ Plan written: {path}", fg="green")


@agent.command("run")
@click.option(
    "--plan",
    "plan_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Plan JSON (default: derive from installer.yml).",
)
@click.option("--project", default="", help="Project the device belongs to.")
@click.option("--department", default="", help="Department the device belongs to.")
@click.option(
    "--backup",
    "backup_roots",
    multiple=True,
    help="Backup root to include (repeatable; default: the plan's selection).",
)
@click.option(
    "--entry-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory holding resources/ for bundled packages.",
)
@click.option("--mock", is_flag=True, help="Rehearse against a simulated host.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run_cmd(
    ctx: click.Context,
    plan_file: str | None,
    project: str,
    department: str,
    backup_roots: tuple[str, ...],
    entry_dir: str | None,
    mock: bool,
    as_json: bool,
) -> None:
    """Run a deployment plan.

    Examples:

        drivegenie agent run --mock --project 卖场 --department 卖场服务部

        drivegenie agent run --plan plan.json --backup C: --backup D:
    """
    from pydantic import ValidationError

    from drivegenie.agent.channels import RunChannels
    from drivegenie.agent.plan import DeploymentPlan

    if plan_file:
        try:
            plan = DeploymentPlan.model_validate_json(Path(plan_file).read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            click.secho(f"❌ Invalid plan {plan_file}: {e}", fg="red")
            sys.exit(1)
    else:
        plan = DeploymentPlan.from_config(_load_config(ctx))

    channels = RunChannels()
    if not as_json:
        channels.subscribe(_print_event)

    options: dict = {"channels": channels}
    if entry_dir:
        options["entry_dir"] = Path(entry_dir)

    if mock:
        import tempfile

        from drivegenie.agent.mock import MockHost
        from drivegenie.agent.plan import Timing

        scratch = Path(tempfile.mkdtemp(prefix="drivegenie-mock-"))
        host = MockHost(root=scratch)
        for path in (*plan.layout.connect_candidates, *plan.layout.launcher_candidates):
            host.make_available(path)
        plan = plan.model_copy(
            update={"timing": Timing(poll_interval=0, cleanup_delay=0)}
        )
        options["temp_dir"] = scratch
        options["fetch"] = _rehearsal_fetch
    else:
        from drivegenie.agent.host import WindowsHost

        host = WindowsHost()

    from drivegenie.agent.runtime import DeploymentAgent

    if not as_json:
        click.secho(f"\n🚀 {plan.app_name} ({host.name})", fg="cyan", bold=True)

    deployment = DeploymentAgent(plan, host, **options)
    result = deployment.run(
        project=project,
        department=department,
        backup_roots=list(backup_roots) or None,
    )
    if deployment.cleanup_timer is not None:
        deployment.cleanup_timer.join()

    if as_json:
        data = result.model_dump(mode="json")
        data["log"] = list(deployment.state.log) if deployment.state else []
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        sys.exit(0 if result.success else 1)

    click.echo()
    if not result.success:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)
    click.secho(f"✅ Deployment finished (run {result.run_token})", fg="green", bold=True)
