"""JSON output utilities for tokenbar."""

from __future__ import annotations

import sys
from collections.abc import Mapping
from datetime import datetime

import msgspec

from tokenbar.config.instances import ProviderInstanceConfig
from tokenbar.models import UsageSnapshot


class ErrorData(msgspec.Struct, frozen=True, omit_defaults=True):
    """Error payload for JSON output."""

    message: str
    kind: str = "unknown"
    instance: str | None = None
    timestamp: str = msgspec.field(
        default_factory=lambda: datetime.now().astimezone().isoformat()
    )


class ErrorResponse(msgspec.Struct, frozen=True):
    error: ErrorData


class InstanceStatus(msgspec.Struct, omit_defaults=True):
    """Last known state of one instance."""

    id: str
    type_id: str
    label: str
    enabled: bool
    snapshot: UsageSnapshot | None = None
    error: str | None = None
    error_kind: str | None = None


def instance_status(
    config: ProviderInstanceConfig,
    snapshots: Mapping[str, UsageSnapshot],
    errors: Mapping[str, str],
    error_kinds: Mapping[str, str] | None = None,
) -> InstanceStatus:
    kind = (error_kinds or {}).get(config.id)
    return InstanceStatus(
        id=config.id,
        type_id=config.type_id,
        label=config.label,
        enabled=config.enabled,
        snapshot=snapshots.get(config.id),
        error=errors.get(config.id),
        error_kind=str(kind) if kind is not None else None,
    )


def output_json(data: object) -> None:
    """Output data as JSON to stdout.

    Args:
        data: Any msgspec-serializable object (Struct, dict, list, etc.)
    """
    sys.stdout.buffer.write(msgspec.json.encode(data))
    sys.stdout.buffer.write(b"\n")


def output_json_pretty(data: object) -> None:
    """Output data as pretty-printed JSON to stdout."""
    sys.stdout.write(msgspec.json.format(msgspec.json.encode(data), indent=2).decode())
    sys.stdout.write("\n")


def output_json_error(message: str, kind: str = "unknown", instance: str | None = None) -> None:
    """Output an error in standardized JSON format."""
    output_json_pretty(ErrorResponse(ErrorData(message=message, kind=kind, instance=instance)))
