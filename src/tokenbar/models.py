"""Data models for tokenbar.

Defines the normalized usage structures every provider adapter produces.
Vendor-specific API responses are mapped into these value types so the
manager and display layers never deal with raw payloads.
"""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from enum import StrEnum

import msgspec

# Labels that never block usage when exhausted (credit balances, on-demand allowance)
SUPPLEMENTARY_LABELS: frozenset[str] = frozenset({"Credits", "On-Demand"})

# Sentinel for quotas that are not percentage-based
INFORMATIONAL = -1.0


class StatusColor(StrEnum):
    """Severity color for a quota, driven by fixed thresholds."""

    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

    @property
    def rich_style(self) -> str:
        """Return the rich style used to render this color."""
        match self:
            case StatusColor.GOOD:
                return "green"
            case StatusColor.WARNING:
                return "yellow"
            case StatusColor.CRITICAL:
                return "red"
            case StatusColor.UNKNOWN:
                return "dim"


class SortMode(StrEnum):
    """Ordering modes for enabled instances. Values are persisted."""

    MANUAL = "manual"
    MOST_AVAILABLE_NOW = "mostAvailableNow"
    MOST_AVAILABLE_LONG = "mostAvailableLong"
    RESET_TIME = "resetTime"
    ALPHABETICAL = "alphabetical"

    @property
    def display_name(self) -> str:
        match self:
            case SortMode.MANUAL:
                return "Manual"
            case SortMode.MOST_AVAILABLE_NOW:
                return "Most Available Now"
            case SortMode.MOST_AVAILABLE_LONG:
                return "Most Available Long-term"
            case SortMode.RESET_TIME:
                return "Reset Time"
            case SortMode.ALPHABETICAL:
                return "Alphabetical"


class UsageQuota(msgspec.Struct, frozen=True):
    """One measured limit within a snapshot (e.g., "5h Window", "Weekly")."""

    percent_used: float  # 0-100, or -1 for informational quotas
    label: str
    detail_text: str | None = None  # Raw numbers, e.g. "120 / 500 requests"
    resets_at: datetime | None = None
    menu_bar_override: str | None = None  # Shown instead of a percentage when informational

    def percent_remaining(self) -> float:
        """Return percentage remaining, floored at zero."""
        return max(0.0, 100.0 - self.percent_used)

    def status_color(self) -> StatusColor:
        """Classify usage into good (<50), warning (<80) or critical."""
        if self.percent_used < 0:
            return StatusColor.UNKNOWN
        if self.percent_used < 50:
            return StatusColor.GOOD
        if self.percent_used < 80:
            return StatusColor.WARNING
        return StatusColor.CRITICAL

    def is_informational(self) -> bool:
        return self.percent_used < 0

    def is_supplementary(self) -> bool:
        return self.label in SUPPLEMENTARY_LABELS

    def is_primary(self) -> bool:
        """Primary quotas are percentage-based and block usage when exhausted."""
        return not self.is_informational() and not self.is_supplementary()

    def time_until_reset(self) -> timedelta | None:
        """Return time remaining until reset."""
        if self.resets_at is None:
            return None
        now = datetime.now(self.resets_at.tzinfo)
        return max(timedelta(0), self.resets_at - now)


class UsageSnapshot(msgspec.Struct, frozen=True):
    """Usage of one provider instance at a point in time."""

    provider_id: str  # Instance id, not type id
    quotas: tuple[UsageQuota, ...]  # Display order
    captured_at: datetime
    account_tier: str | None = None

    def primary_quota(self) -> UsageQuota | None:
        """Return the first quota, used where a single value is displayed."""
        return self.quotas[0] if self.quotas else None

    def primary_quotas(self) -> tuple[UsageQuota, ...]:
        """Return quotas that block usage when exhausted."""
        return tuple(q for q in self.quotas if q.is_primary())

    def is_exhausted(self) -> bool:
        """Check whether any primary quota is at or above 100%."""
        return any(q.percent_used >= 100 for q in self.primary_quotas())


def validate_quota(quota: UsageQuota) -> list[str]:
    """Return list of validation errors, empty if valid."""
    errors = []
    if quota.percent_used != INFORMATIONAL and not 0 <= quota.percent_used <= 100:
        errors.append(f"percent_used {quota.percent_used} out of range [0, 100]")
    if not quota.label:
        errors.append("label must not be empty")
    return errors


def validate_snapshot(snapshot: UsageSnapshot) -> list[str]:
    """Return list of validation errors, empty if valid."""
    errors = []
    if not snapshot.quotas:
        errors.append("at least one quota required")
    for quota in snapshot.quotas:
        errors.extend(validate_quota(quota))
    return errors


def format_reset_countdown(delta: timedelta | None) -> str:
    """Format reset time as countdown string."""
    if delta is None:
        return ""

    total_seconds = int(delta.total_seconds())
    if total_seconds <= 0:
        return "now"

    days, remainder = divmod(total_seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60

    if days > 0:
        return f"{days}d {hours}h"
    elif hours > 0:
        return f"{hours}h {minutes}m"
    else:
        return f"{minutes}m"


def format_token_count(count: int) -> str:
    """Format a token count compactly (e.g., 950, 12.3K, 4.1M)."""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


def format_dollars(amount: float) -> str:
    """Format a dollar amount with two decimals."""
    return f"${amount:.2f}"
