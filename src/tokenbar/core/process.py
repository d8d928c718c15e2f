"""Async subprocess helpers for providers that shell out to vendor tools."""

from __future__ import annotations

import asyncio
import logging
import shutil

import msgspec

from tokenbar.errors.types import ProviderError

logger = logging.getLogger(__name__)


class CommandResult(msgspec.Struct, frozen=True):
    """Captured output of a finished command."""

    returncode: int
    stdout: str
    stderr: str


def command_exists(command: str) -> bool:
    """Check if a command is on PATH."""
    return shutil.which(command) is not None


async def run_command(*args: str, timeout: float = 15.0) -> CommandResult:
    """Run a command to completion and capture its output.

    Raises:
        ProviderError: execution_failed if the command is missing or times out
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ProviderError.execution_failed(f"{args[0]} not found") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise ProviderError.execution_failed(f"{args[0]} timed out") from e

    logger.debug("%s exited with %s", args[0], process.returncode)
    return CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
