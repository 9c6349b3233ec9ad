"""Cloud Logging filter expressions."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

RESOURCE_TYPE = "gce_instance"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _quote(value: object) -> str:
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _any_of(field: str, values: Iterable[object] | None) -> str | None:
    items = [_quote(v) for v in values or ()]
    if not items:
        return None
    return f"{field}=({' OR '.join(items)})"


def format_timestamp(value: datetime) -> str:
    """Format a UTC datetime for a filter.

    Raises:
        ValueError: If ``value`` is naive or not in UTC.
    """
    if value.tzinfo is None or value.utcoffset() != timedelta(0):
        raise ValueError(f"Timestamp must be timezone-aware UTC, got {value!r}")
    return value.strftime(TIMESTAMP_FORMAT)


def build_filter(
    zones: Iterable[str] | None,
    instance_ids: Iterable[int | str] | None,
    methods: Iterable[str] | None,
    severities: Iterable[str] | None,
    start_time: datetime,
) -> str:
    """Build the audit log filter for Compute Engine instances.

    Empty criteria are left out. The resource type and the lower time
    bound are always present.

    Example:
        >>> from datetime import UTC, datetime
        >>> build_filter(["us-central1-a"], [], [], [], datetime(2024, 1, 1, tzinfo=UTC))
        'resource.labels.zone=("us-central1-a") AND resource.type="gce_instance" AND timestamp > "2024-01-01T00:00:00Z"'
    """
    clauses = [
        _any_of("resource.labels.zone", zones),
        _any_of("resource.labels.instance_id", instance_ids),
        _any_of("protoPayload.methodName", methods),
        _any_of("severity", severities),
    ]
    criteria = [c for c in clauses if c is not None]
    criteria.append(f'resource.type="{RESOURCE_TYPE}"')
    criteria.append(f'timestamp > "{format_timestamp(start_time)}"')
    return " AND ".join(criteria)
