"""Live-updating usage dashboard."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.live import Live

from tokenbar.cli.app import app
from tokenbar.cli.app import build_manager
from tokenbar.core.http import cleanup
from tokenbar.core.manager import ProviderManager
from tokenbar.display.rich import render_instances_table


def render_dashboard(manager: ProviderManager):
    title = f"Usage (every {manager.poll_interval:g}s, {manager.sort_mode.display_name})"
    return render_instances_table(
        manager.sorted_enabled_configs(),
        manager.snapshots,
        manager.errors,
        manager.loading_ids,
        title=title,
    )


@app.command("watch")
async def watch_command(
    ctx: typer.Context,
    interval: float | None = typer.Option(
        None, "--interval", "-i", min=1, help="Poll interval in seconds for this session"
    ),
) -> None:
    """Detect tools, then poll and redraw until interrupted."""
    console = Console()
    manager = build_manager()
    if interval is not None:
        manager.poll_interval = interval

    with Live(render_dashboard(manager), console=console, auto_refresh=False) as live:

        def redraw() -> None:
            live.update(render_dashboard(manager), refresh=True)

        manager.on_status_change = redraw
        await manager.startup()
        try:
            await asyncio.Event().wait()
        finally:
            manager.stop_polling()
            await cleanup()
