"""Conversions between engine timestamps and Python datetimes.

The engine REST API speaks ``yyyy-MM-dd'T'HH:mm:ss.SSSZ``, e.g.
``2024-05-01T10:00:00.000+0000``. Records handed to the broker use RFC 3339.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

ENGINE_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"


def parse_engine_time(value: Any) -> Optional[datetime]:
    """Parse an engine timestamp, accepting ISO 8601 variants as well."""
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Expected timestamp string, got {type(value).__name__}")
    try:
        parsed = datetime.strptime(value, ENGINE_FORMAT)
    except ValueError:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_engine_time(value: datetime) -> str:
    """Format ``value`` the way the engine's query parameters expect it."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    millis = value.microsecond // 1000
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{millis:03d}" + value.strftime("%z")


def to_rfc3339(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
