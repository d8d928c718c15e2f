"""Fetch strategies for tokenbar providers."""

from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy

__all__ = ["FetchResult", "FetchStrategy"]
