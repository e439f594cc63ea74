"""
Timezone utilities for the Medtik platform.

All slot and appointment instants are stored in UTC. Some backends
(SQLite) hand datetimes back without tzinfo; those are read as UTC.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_range(start: datetime, end: datetime) -> str:
    """Human readable ``HH:MM-HH:MM`` label used in conflict messages."""
    return f"{ensure_utc(start).strftime('%H:%M')}-{ensure_utc(end).strftime('%H:%M')}"
