"""Preference commands: sort order, poll interval and menu bar display."""

from __future__ import annotations

import typer
from rich.console import Console

from tokenbar.cli.app import ExitCode
from tokenbar.cli.app import app
from tokenbar.cli.app import build_manager
from tokenbar.models import SortMode


@app.command("sort")
def sort_command(
    mode: SortMode = typer.Argument(..., help="Sort mode for enabled instances"),
    descending: bool = typer.Option(False, "--descending", "-d", help="Reverse the order"),
) -> None:
    """Set how enabled instances are ordered."""
    console = Console()
    manager = build_manager()
    manager.set_sort_mode(mode, ascending=not descending)
    direction = "descending" if descending else "ascending"
    console.print(f"Sorting by [cyan]{mode.display_name}[/cyan] ({direction})")


@app.command("interval")
def interval_command(
    seconds: float = typer.Argument(..., help="Seconds between poll cycles"),
) -> None:
    """Set the poll interval used by 'tokenbar watch'."""
    console = Console()
    manager = build_manager()
    try:
        manager.set_poll_interval(seconds)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e
    console.print(f"Polling every [cyan]{seconds:g}s[/cyan]")


@app.command("menubar")
def menubar_command(
    ctx: typer.Context,
    icon: bool | None = typer.Option(None, "--icon/--no-icon", help="Show provider icons"),
    name: bool | None = typer.Option(None, "--name/--no-name", help="Show provider names"),
) -> None:
    """Show or change menu bar display options."""
    console = Console()
    manager = build_manager()
    if icon is not None or name is not None:
        manager.set_menu_bar_options(show_icon=icon, show_name=name)

    if ctx.meta.get("json", False):
        from tokenbar.display.json import output_json_pretty

        output_json_pretty({"show_icon": manager.show_icon, "show_name": manager.show_name})
        return
    console.print(f"Icon: {'on' if manager.show_icon else 'off'}")
    console.print(f"Name: {'on' if manager.show_name else 'off'}")
