"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime

__all__ = [
    "serialize_datetime",
    "parse_datetime",
    "format_time_of_day",
    "sunday_based_weekday",
    "utc_now",
    "local_now",
]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def local_now() -> datetime:
    """Return the current wall-clock time in the process timezone, tz-aware."""
    return datetime.now().astimezone()


def serialize_datetime(value: datetime | None) -> str | None:
    """Serialise ``value`` to ISO 8601, normalising timezone-aware values."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.isoformat()
    return value.astimezone(UTC).isoformat()


def parse_datetime(value: str | None, *, assume_utc: bool = False) -> datetime | None:
    """Parse an ISO 8601 string into a ``datetime`` instance."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None and assume_utc:
        return parsed.replace(tzinfo=UTC)
    return parsed


def format_time_of_day(value: datetime) -> str:
    """Return the wall-clock ``HH:MM`` string used for schedule matching."""
    return f"{value.hour:02d}:{value.minute:02d}"


def sunday_based_weekday(value: datetime) -> int:
    """Return the weekday with Sunday as 0 and Saturday as 6."""
    return (value.weekday() + 1) % 7
