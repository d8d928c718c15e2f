"""Typer subclass that accepts ``async def`` commands."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any

import typer


def run_sync(f: Callable) -> Callable:
    """Wrap a coroutine function so Click can invoke it synchronously.

    Inside an already running loop the coroutine is handed back unawaited,
    which lets tests ``await`` commands directly.
    """

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        coro = f(*args, **kwargs)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)
        return coro

    return wrapper


class ATyper(typer.Typer):
    """Typer with async command support."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("no_args_is_help", False)
        super().__init__(*args, **kwargs)

    def command(self, name: str | None = None, **kwargs: Any) -> Callable:  # type: ignore[override]
        register = super().command(name, **kwargs)

        def decorator(f: Callable) -> Callable:
            return register(run_sync(f) if inspect.iscoroutinefunction(f) else f)

        return decorator
