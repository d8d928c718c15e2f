"""Config management commands for tokenbar."""

from __future__ import annotations

import msgspec
import tomli_w
import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from tokenbar.cli.atyper import ATyper
from tokenbar.config.paths import cache_dir
from tokenbar.config.paths import config_dir
from tokenbar.config.paths import config_file
from tokenbar.config.paths import preferences_file
from tokenbar.config.paths import workspace_cache_file
from tokenbar.config.settings import get_config
from tokenbar.display.json import output_json_pretty

config_app = ATyper(help="Manage configuration settings.")


@config_app.command("show")
def config_show_command(ctx: typer.Context) -> None:
    """Display current settings."""
    console = Console()
    config = get_config()
    config_path = config_file()

    if ctx.meta.get("json", False):
        output_json_pretty({**msgspec.to_builtins(config), "path": str(config_path)})
        return

    if ctx.meta.get("quiet", False):
        console.print(str(config_path))
        return

    # Show every value, including defaults omitted from the file
    data = {
        "fetch": msgspec.structs.asdict(config.fetch),
        "poll": msgspec.structs.asdict(config.poll),
        "credentials": msgspec.structs.asdict(config.credentials),
    }
    console.print(Panel(Syntax(tomli_w.dumps(data), "toml"), title=f"Config: {config_path}"))

    if ctx.meta.get("verbose", False) and not config_path.exists():
        console.print("[dim]Using default configuration (file not created yet)[/dim]")


@config_app.command("path")
def config_path_command(ctx: typer.Context) -> None:
    """Show file and directory paths used by tokenbar."""
    console = Console()
    paths = {
        "config_dir": str(config_dir()),
        "config_file": str(config_file()),
        "preferences_file": str(preferences_file()),
        "cache_dir": str(cache_dir()),
        "workspace_cache": str(workspace_cache_file()),
    }

    if ctx.meta.get("json", False):
        output_json_pretty(paths)
        return

    if ctx.meta.get("quiet", False):
        console.print(paths["config_dir"])
        return

    width = max(len(k) for k in paths) + 2
    for key, value in paths.items():
        console.print(f"{key + ':':<{width}} {value}", highlight=False)
