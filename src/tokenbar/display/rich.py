"""Rich-based rendering utilities for tokenbar."""

from __future__ import annotations

from collections.abc import Collection
from collections.abc import Mapping

from rich.table import Table
from rich.text import Text

from tokenbar.config.instances import ProviderInstanceConfig
from tokenbar.models import UsageQuota
from tokenbar.models import UsageSnapshot
from tokenbar.models import format_reset_countdown


def render_usage_bar(percent_used: float, width: int = 20, color: str | None = None) -> Text:
    """Render a usage progress bar.

    Args:
        percent_used: Usage percentage (0-100)
        width: Bar width in characters
        color: Optional color override

    Returns:
        Rich Text with the progress bar
    """
    clamped = min(max(percent_used, 0.0), 100.0)
    filled = int(clamped * width // 100)
    bar = "█" * filled + "░" * (width - filled)
    return Text(bar, style=color or "default")


def menu_bar_text(quota: UsageQuota | None) -> str:
    """Short value shown next to an instance name, e.g. ``42%`` or ``$12.50``."""
    if quota is None:
        return "--"
    if quota.is_informational():
        return quota.menu_bar_override or "--"
    return f"{quota.percent_used:.0f}%"


def format_quota(quota: UsageQuota, bar_width: int = 12) -> Text:
    """Format one quota line: bar, percentage, label, detail and reset."""
    text = Text()
    color = quota.status_color().rich_style

    if quota.is_informational():
        text.append(" " * bar_width + " ")
        text.append(f"{menu_bar_text(quota):>6}", style="bold")
    else:
        text.append_text(render_usage_bar(quota.percent_used, width=bar_width, color=color))
        text.append(" ")
        text.append(f"{quota.percent_used:>5.0f}%", style=f"bold {color}")

    text.append(f" {quota.label}", style="cyan")
    if quota.detail_text:
        text.append(f"  {quota.detail_text}", style="dim")

    countdown = format_reset_countdown(quota.time_until_reset())
    if countdown:
        text.append(f" • resets in {countdown}", style="dim")
    return text


def format_snapshot(snapshot: UsageSnapshot) -> Text:
    """Format every quota of a snapshot, one per line."""
    return Text("\n").join(format_quota(q) for q in snapshot.quotas)


def render_instances_table(
    configs: list[ProviderInstanceConfig],
    snapshots: Mapping[str, UsageSnapshot],
    errors: Mapping[str, str],
    loading_ids: Collection[str] = (),
    title: str | None = "Usage",
) -> Table:
    """Table with one row per instance and its quotas."""
    table = Table(title=title, show_header=True, header_style="bold", show_lines=True)
    table.add_column("Instance", style="bold")
    table.add_column("Plan", style="dim")
    table.add_column("Usage")

    for config in configs:
        snapshot = snapshots.get(config.id)
        name = Text(config.label)
        if config.id in loading_ids:
            name.append(" ⟳", style="dim")

        usage = format_snapshot(snapshot) if snapshot else Text("No data yet", style="dim")
        if error := errors.get(config.id):
            if snapshot:
                usage.append("\n")
            else:
                usage = Text()
            usage.append(f"⚠ {error}", style="red")

        table.add_row(name, (snapshot.account_tier if snapshot else None) or "", usage)

    return table


def render_compact(
    configs: list[ProviderInstanceConfig],
    snapshots: Mapping[str, UsageSnapshot],
    errors: Mapping[str, str],
) -> list[str]:
    """One plain line per instance, for quiet mode."""
    lines = []
    for config in configs:
        snapshot = snapshots.get(config.id)
        if config.id in errors and snapshot is None:
            lines.append(f"{config.id}: error")
        else:
            lines.append(f"{config.id}: {menu_bar_text(snapshot.primary_quota() if snapshot else None)}")
    return lines
