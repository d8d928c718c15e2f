"""Instance management commands for tokenbar."""

from __future__ import annotations

import msgspec
import typer
from rich.console import Console
from rich.table import Table

from tokenbar.cli.app import ExitCode
from tokenbar.cli.app import build_manager
from tokenbar.cli.atyper import ATyper
from tokenbar.config.instances import ConfigValue
from tokenbar.config.instances import ProviderInstanceConfig
from tokenbar.config.instances import parse_config_value
from tokenbar.core.http import cleanup
from tokenbar.core.manager import ProviderManager
from tokenbar.display.json import output_json_pretty
from tokenbar.display.rich import format_snapshot
from tokenbar.providers import get_provider_type
from tokenbar.providers.base import FieldType

instances_app = ATyper(help="Manage configured provider instances.")


def parse_assignments(assignments: list[str]) -> dict[str, ConfigValue]:
    """Parse ``key=value`` arguments into config values.

    Raises:
        typer.BadParameter: If an argument has no ``=``
    """
    values: dict[str, ConfigValue] = {}
    for assignment in assignments:
        key, sep, raw = assignment.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {assignment!r}")
        values[key.strip()] = parse_config_value(raw)
    return values


def _require(manager: ProviderManager, console: Console, instance_id: str) -> ProviderInstanceConfig:
    config = manager.config_for(instance_id)
    if config is None:
        console.print(f"[red]Unknown instance:[/red] {instance_id}")
        raise typer.Exit(ExitCode.CONFIG_ERROR)
    return config


@instances_app.command("list")
def list_command(ctx: typer.Context) -> None:
    """List configured instances in stored order."""
    console = Console()
    manager = build_manager()

    if ctx.meta.get("json", False):
        output_json_pretty(manager.instance_configs)
        return

    if not manager.instance_configs:
        console.print("[dim]No instances configured. Run 'tokenbar detect' first.[/dim]")
        return

    table = Table(title="Instances", show_header=True, header_style="bold")
    table.add_column("#", style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Label")
    table.add_column("Enabled")
    table.add_column("Config", style="dim")
    for position, config in enumerate(manager.instance_configs):
        enabled = "[green]yes[/green]" if config.enabled else "[dim]no[/dim]"
        if config.is_auto_detected:
            enabled += " [dim](detected)[/dim]"
        settings = ", ".join(f"{k}={v}" for k, v in config.provider_config.items())
        table.add_row(str(position), config.id, config.type_id, config.label, enabled, settings)
    console.print(table)


@instances_app.command("add")
async def add_command(
    ctx: typer.Context,
    type_id: str = typer.Argument(..., help="Provider type, see 'tokenbar types'"),
    instance_id: str | None = typer.Option(None, "--id", help="Instance id (defaults to the type id)"),
    label: str | None = typer.Option(None, "--label", "-l", help="Display name"),
    assignments: list[str] = typer.Option([], "--set", "-s", help="Config value as key=value"),
    disabled: bool = typer.Option(False, "--disabled", help="Add without enabling"),
) -> None:
    """Add a provider instance."""
    console = Console()
    provider_type = get_provider_type(type_id)
    if provider_type is None:
        console.print(f"[red]Unknown provider type:[/red] {type_id}")
        raise typer.Exit(ExitCode.CONFIG_ERROR)

    instance_id = instance_id or type_id
    values = {k: v for k, v in parse_assignments(assignments).items() if v is not None}
    for field in provider_type.config_fields:
        if field.field_type == FieldType.SECURE_TEXT and field.id not in values:
            values[field.id] = f"{instance_id}_{field.id}"
        elif field.is_required and field.id not in values:
            console.print(f"[red]Missing required field:[/red] {field.id} ({field.label})")
            raise typer.Exit(ExitCode.CONFIG_ERROR)

    config = ProviderInstanceConfig(
        id=instance_id,
        type_id=type_id,
        label=label or provider_type.default_name,
        enabled=not disabled,
        provider_config=values,
    )

    manager = build_manager()
    manager.instantiate_providers()
    try:
        manager.add_instance(config)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e

    console.print(f"Added [cyan]{instance_id}[/cyan] ({provider_type.default_name})")
    for field in provider_type.secret_fields():
        key = values[field.id]
        if manager.services.secrets.load(key) is None:
            console.print(
                f"[dim]Store the {field.label.lower()} with "
                f"'tokenbar instances secret {instance_id} {field.id}'[/dim]"
            )
    await _report_refresh(manager, console, instance_id)


@instances_app.command("remove")
def remove_command(
    instance_id: str = typer.Argument(..., help="Instance to remove"),
) -> None:
    """Remove an instance and any secrets only it referenced."""
    console = Console()
    manager = build_manager()
    if not manager.remove_instance(instance_id):
        console.print(f"[red]Unknown instance:[/red] {instance_id}")
        raise typer.Exit(ExitCode.CONFIG_ERROR)
    console.print(f"Removed [cyan]{instance_id}[/cyan]")


@instances_app.command("enable")
async def enable_command(
    instance_id: str = typer.Argument(..., help="Instance to enable"),
) -> None:
    """Enable an instance and fetch it once."""
    console = Console()
    manager = build_manager()
    _require(manager, console, instance_id)
    manager.instantiate_providers()
    manager.toggle_provider(instance_id, True)
    console.print(f"Enabled [cyan]{instance_id}[/cyan]")
    await _report_refresh(manager, console, instance_id)


@instances_app.command("disable")
def disable_command(
    instance_id: str = typer.Argument(..., help="Instance to disable"),
) -> None:
    """Disable an instance without removing it."""
    console = Console()
    manager = build_manager()
    _require(manager, console, instance_id)
    manager.toggle_provider(instance_id, False)
    console.print(f"Disabled [cyan]{instance_id}[/cyan]")


@instances_app.command("set")
def set_command(
    instance_id: str = typer.Argument(..., help="Instance to change"),
    assignments: list[str] = typer.Argument(None, help="Config values as key=value (empty value removes)"),
    label: str | None = typer.Option(None, "--label", "-l", help="New display name"),
) -> None:
    """Change an instance's label or config values."""
    console = Console()
    manager = build_manager()
    config = _require(manager, console, instance_id)

    for key, value in parse_assignments(assignments or []).items():
        config = config.with_value(key, value)
    if label:
        config = msgspec.structs.replace(config, label=label)

    manager.update_instance(config)
    console.print(f"Updated [cyan]{instance_id}[/cyan]")


@instances_app.command("move")
def move_command(
    instance_id: str = typer.Argument(..., help="Instance to move"),
    position: int = typer.Argument(..., min=0, help="New zero-based position"),
) -> None:
    """Move an instance within the manual order."""
    console = Console()
    manager = build_manager()
    _require(manager, console, instance_id)
    manager.move_instance(instance_id, position)
    console.print(f"Moved [cyan]{instance_id}[/cyan] to position {position}")


@instances_app.command("secret")
def secret_command(
    instance_id: str = typer.Argument(..., help="Instance the secret belongs to"),
    field_id: str = typer.Argument(..., help="Secure field id, e.g. keychainKey"),
    value: str | None = typer.Option(None, "--value", help="Secret value (prompted if omitted)"),
) -> None:
    """Store the secret referenced by one of an instance's secure fields."""
    console = Console()
    manager = build_manager()
    config = _require(manager, console, instance_id)

    provider_type = get_provider_type(config.type_id)
    secure_ids = {f.id for f in provider_type.secret_fields()} if provider_type else set()
    if field_id not in secure_ids:
        console.print(f"[red]{field_id} is not a secure field of {config.type_id}[/red]")
        raise typer.Exit(ExitCode.CONFIG_ERROR)

    key = config.settings.string(field_id)
    if not key:
        key = f"{instance_id}_{field_id}"
        manager.update_instance(config.with_value(field_id, key))

    if value is None:
        value = typer.prompt("Secret", hide_input=True)
    manager.services.secrets.save(key, value.strip())
    console.print(f"Stored secret for [cyan]{instance_id}[/cyan]")


async def _report_refresh(manager: ProviderManager, console: Console, instance_id: str) -> None:
    try:
        await manager.drain()
    finally:
        await cleanup()

    if error := manager.errors.get(instance_id):
        console.print(f"[yellow]⚠ {error}[/yellow]")
    elif snapshot := manager.snapshots.get(instance_id):
        console.print(format_snapshot(snapshot))
