"""ISO 8601 datetime conversion utilities.

This module centralizes all transformations between Python datetime objects
and ISO 8601 strings. All timestamp operations should use these functions
to ensure consistency and make usage clear across the codebase.

Timestamps are always rendered with microsecond precision and a ``Z``
suffix, so two timestamps compare chronologically as plain strings. SQL
expiry checks (``expires_at > ?``) rely on this.
"""

from datetime import datetime, timedelta, UTC


def to_timestamp(dt: datetime) -> str:
    """Convert datetime to fixed-width ISO 8601 UTC timestamp string."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)
    return dt.isoformat(timespec="microseconds").replace("+00:00", "Z")


def to_datetime(timestamp: str) -> datetime:
    """Convert ISO 8601 UTC timestamp string to datetime."""
    return datetime.fromisoformat(timestamp.replace('Z', '+00:00'))


def now() -> str:
    """Get current UTC timestamp as ISO 8601 string."""
    return to_timestamp(datetime.now(UTC))


def minutes_from_now(minutes: int) -> str:
    """Get the UTC timestamp ``minutes`` in the future."""
    return to_timestamp(datetime.now(UTC) + timedelta(minutes=minutes))
