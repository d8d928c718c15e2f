"""Fetch strategy base classes."""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod

import msgspec

from tokenbar.errors.types import ProviderError
from tokenbar.models import UsageSnapshot


class FetchResult(msgspec.Struct, frozen=True):
    """Outcome of one adapter fetch: exactly one of snapshot or error is set."""

    success: bool
    snapshot: UsageSnapshot | None = None
    error: ProviderError | None = None
    should_fallback: bool = True  # False stops the pipeline at this strategy

    @classmethod
    def ok(cls, snapshot: UsageSnapshot) -> FetchResult:
        return cls(success=True, snapshot=snapshot, should_fallback=False)

    @classmethod
    def fail(cls, error: ProviderError, should_fallback: bool = True) -> FetchResult:
        return cls(success=False, error=error, should_fallback=should_fallback)

    @classmethod
    def fatal(cls, error: ProviderError) -> FetchResult:
        """Failure that later strategies cannot fix, e.g. missing credentials."""
        return cls(success=False, error=error, should_fallback=False)


class FetchStrategy(ABC):
    """One way of obtaining a snapshot for a provider instance.

    Strategies may raise instead of returning a failed result; the fetch
    pipeline classifies the exception and moves on to the next strategy.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs, e.g. 'oauth', 'app-server', 'sessions'."""
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the strategy's local prerequisites exist.

        Only inspects the filesystem or PATH, never the network.
        """
        ...

    @abstractmethod
    async def fetch(self) -> FetchResult:
        ...
