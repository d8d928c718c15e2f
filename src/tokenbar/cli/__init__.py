"""CLI framework for tokenbar."""

from __future__ import annotations

from tokenbar.cli.app import ExitCode
from tokenbar.cli.app import app
from tokenbar.cli.app import run_app

__all__ = ["app", "run_app", "ExitCode"]
