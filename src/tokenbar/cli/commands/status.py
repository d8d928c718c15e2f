"""Usage status command for tokenbar."""

from __future__ import annotations

import time

import typer
from rich.console import Console

from tokenbar.cli.app import ExitCode
from tokenbar.cli.app import app
from tokenbar.cli.app import build_manager
from tokenbar.cli.app import exit_code_for
from tokenbar.core.http import cleanup
from tokenbar.display.json import instance_status
from tokenbar.display.json import output_json_error
from tokenbar.display.json import output_json_pretty
from tokenbar.display.rich import render_compact
from tokenbar.display.rich import render_instances_table


@app.command("status")
async def status_command(
    ctx: typer.Context,
    instance: str | None = typer.Argument(None, help="Only fetch this instance"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output in JSON format"),
) -> None:
    """Fetch usage once for every enabled instance and show it."""
    code = await show_status(ctx, instance, json_output)
    if code != ExitCode.SUCCESS:
        raise typer.Exit(code)


async def show_status(
    ctx: typer.Context,
    instance: str | None,
    json_output: bool = False,
) -> ExitCode:
    """Run one poll cycle (or one refresh) and render the result."""
    console = Console()
    json_mode = json_output or ctx.meta.get("json", False)
    verbose = ctx.meta.get("verbose", False)
    quiet = ctx.meta.get("quiet", False)

    manager = build_manager()
    if instance is not None and manager.config_for(instance) is None:
        if json_mode:
            output_json_error(f"Unknown instance: {instance}", kind="config", instance=instance)
        else:
            console.print(f"[red]Unknown instance:[/red] {instance}")
        return ExitCode.CONFIG_ERROR

    manager.instantiate_providers()
    start_time = time.monotonic()
    try:
        if instance is not None:
            if (task := manager.refresh_provider(instance)) is not None:
                await task
        else:
            await manager.poll_all()
    finally:
        await cleanup()
    duration_ms = (time.monotonic() - start_time) * 1000

    if instance is not None:
        configs = [manager.config_for(instance)]
    else:
        configs = manager.sorted_enabled_configs()

    if json_mode:
        output_json_pretty(
            [
                instance_status(c, manager.snapshots, manager.errors, manager.error_kinds)
                for c in configs
            ]
        )
    elif quiet:
        for line in render_compact(configs, manager.snapshots, manager.errors):
            console.print(line, highlight=False)
    elif not configs:
        console.print("[dim]No enabled instances. Run 'tokenbar detect' to find installed tools.[/dim]")
    else:
        console.print(render_instances_table(configs, manager.snapshots, manager.errors))
        if verbose:
            console.print(f"\n[dim]Fetched in {duration_ms:.0f}ms[/dim]")

    return exit_code_for([c.id for c in configs], manager.error_kinds)
