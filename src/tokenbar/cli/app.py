"""Main CLI application for tokenbar."""

from __future__ import annotations

import asyncio
import logging
from enum import IntEnum

import typer
from rich.console import Console
from rich.logging import RichHandler

from tokenbar.cli.atyper import ATyper
from tokenbar.config.store import JsonFileStore
from tokenbar.core.manager import ProviderManager
from tokenbar.errors.types import ErrorKind
from tokenbar.providers.base import ProviderServices

app = ATyper(
    name="tokenbar",
    help="Track usage and spend across AI coding tools",
    add_completion=True,
    invoke_without_command=True,
)


class ExitCode(IntEnum):
    """Exit codes for tokenbar."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    AUTH_ERROR = 2
    NETWORK_ERROR = 3
    CONFIG_ERROR = 4
    PARTIAL_FAILURE = 5


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Send log records to stderr through rich."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def build_manager() -> ProviderManager:
    """Manager backed by the preferences file, keyring and home directory."""
    return ProviderManager(JsonFileStore(), ProviderServices.default())


def exit_code_for(instance_ids: list[str], error_kinds: dict[str, ErrorKind]) -> ExitCode:
    """Pick the exit code for a fetch over ``instance_ids``."""
    failed = [error_kinds[i] for i in instance_ids if i in error_kinds]
    if not failed:
        return ExitCode.SUCCESS
    if len(failed) < len(instance_ids):
        return ExitCode.PARTIAL_FAILURE
    if all(k in (ErrorKind.AUTHENTICATION_REQUIRED, ErrorKind.SESSION_EXPIRED) for k in failed):
        return ExitCode.AUTH_ERROR
    if all(k == ErrorKind.NETWORK_ERROR for k in failed):
        return ExitCode.NETWORK_ERROR
    return ExitCode.GENERAL_ERROR


@app.callback()
def main(
    ctx: typer.Context,
    json: bool = typer.Option(False, "--json", "-j", help="Enable JSON output mode"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Enable quiet mode"),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
) -> None:
    """tokenbar - Track usage and spend across AI coding tools."""
    if version:
        from tokenbar import __version__

        typer.echo(f"tokenbar {__version__}")
        raise typer.Exit()

    # Quiet wins over verbose
    if verbose and quiet:
        verbose = False

    ctx.meta["json"] = json
    ctx.meta["verbose"] = verbose
    ctx.meta["quiet"] = quiet
    configure_logging(verbose=verbose, quiet=quiet)

    if ctx.invoked_subcommand is None:
        from tokenbar.cli.commands.status import show_status

        code = asyncio.run(show_status(ctx, None, json))
        if code != ExitCode.SUCCESS:
            raise typer.Exit(code)


def run_app() -> None:
    """Run the CLI app."""
    app()


# Command modules register themselves on import, after app is defined
from tokenbar.cli.commands import catalog  # noqa: E402, F401 (registers types command)
from tokenbar.cli.commands import detect  # noqa: E402, F401 (registers detect command)
from tokenbar.cli.commands import prefs  # noqa: E402, F401 (registers sort/interval/menubar)
from tokenbar.cli.commands import status  # noqa: E402, F401 (registers status command)
from tokenbar.cli.commands import watch  # noqa: E402, F401 (registers watch command)
from tokenbar.cli.commands import config as config_cmd  # noqa: E402
from tokenbar.cli.commands import instances as instances_cmd  # noqa: E402

app.add_typer(instances_cmd.instances_app, name="instances")
app.add_typer(config_cmd.config_app, name="config")
