"""Installed tool detection command."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from tokenbar.cli.app import app
from tokenbar.cli.app import build_manager
from tokenbar.detection import detect_all
from tokenbar.display.json import output_json_pretty
from tokenbar.providers import get_provider_type


@app.command("detect")
async def detect_command(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Report without saving"),
) -> None:
    """Detect installed AI tools and add them as instances."""
    console = Console()
    json_mode = ctx.meta.get("json", False)
    quiet = ctx.meta.get("quiet", False)

    manager = build_manager()
    detected = await asyncio.to_thread(detect_all, manager.probe)
    before = {c.id for c in manager.instance_configs}
    if not dry_run:
        manager.merge_auto_detected(detected)
    added = [c for c in manager.instance_configs if c.id not in before]

    if json_mode:
        output_json_pretty({"detected": sorted(detected), "added": [c.id for c in added]})
        return

    if quiet:
        for type_id in sorted(detected):
            console.print(type_id, highlight=False)
        return

    if not detected:
        console.print("[dim]No supported tools found.[/dim]")
        return

    table = Table(title="Detected Tools", show_header=True, header_style="bold")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Tracking")
    for type_id in sorted(detected):
        provider_type = get_provider_type(type_id)
        if provider_type is None:
            continue
        tracking = "[green]usage[/green]" if provider_type.is_trackable else "[dim]presence only[/dim]"
        table.add_row(type_id, provider_type.default_name, tracking)
    console.print(table)

    if added:
        console.print("\n[bold]Added instances:[/bold]")
        for config in added:
            state = "[green]enabled[/green]" if config.enabled else "[dim]disabled[/dim]"
            console.print(f"  {config.id} ({state})")
