"""Provider type catalog command."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from tokenbar.cli.app import app
from tokenbar.display.json import output_json_pretty
from tokenbar.providers import get_all_provider_types


@app.command("types")
def types_command(ctx: typer.Context) -> None:
    """List every supported provider type."""
    console = Console()
    provider_types = list(get_all_provider_types().values())

    if ctx.meta.get("json", False):
        output_json_pretty(
            [
                {
                    "type_id": t.type_id,
                    "name": t.default_name,
                    "category": str(t.category),
                    "multiple_instances": t.supports_multiple_instances,
                    "data_source": t.data_source,
                    "dashboard_url": t.dashboard_url,
                    "config_fields": [f.id for f in t.config_fields],
                }
                for t in provider_types
            ]
        )
        return

    table = Table(title="Provider Types", show_header=True, header_style="bold")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Source", style="dim")
    table.add_column("Fields", style="dim")
    for t in provider_types:
        name = t.default_name if t.is_trackable else f"[dim]{t.default_name}[/dim]"
        if t.supports_multiple_instances:
            name += " [dim](multi)[/dim]"
        table.add_row(t.type_id, name, t.data_source or "", ", ".join(f.id for f in t.config_fields))
    console.print(table)
