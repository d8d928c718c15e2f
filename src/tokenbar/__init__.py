"""tokenbar: Track usage and spend across AI coding tools."""

from __future__ import annotations

__version__ = "0.1.0"

from tokenbar.models import SortMode
from tokenbar.models import StatusColor
from tokenbar.models import UsageQuota
from tokenbar.models import UsageSnapshot
from tokenbar.models import format_reset_countdown
from tokenbar.models import validate_quota
from tokenbar.models import validate_snapshot

__all__ = [
    "__version__",
    "SortMode",
    "StatusColor",
    "UsageQuota",
    "UsageSnapshot",
    "format_reset_countdown",
    "validate_quota",
    "validate_snapshot",
]


def main() -> None:
    """Entry point for the tokenbar CLI."""
    from tokenbar.cli.app import run_app

    run_app()
