"""Timestamps: ISO-8601 for the wire format, epoch milliseconds for status records."""

from __future__ import annotations

from datetime import datetime, timezone

import pendulum

_last_millis = 0


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso(dt: datetime) -> str:
    """Format a datetime as ISO 8601 with millisecond precision.

    UTC datetimes use the ``Z`` suffix so documents written here match the ones
    written by the browser extension (``Date.prototype.toISOString``).
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_datetime(value: str, default_tz: str = "UTC") -> datetime | None:
    """Leniently parse an ISO-8601 string, returning None when it is not a datetime."""
    try:
        parsed = pendulum.parse(value.strip(), tz=default_tz, strict=False)
    except ValueError:
        return None
    if isinstance(parsed, pendulum.DateTime):
        return parsed
    if isinstance(parsed, pendulum.Date):
        # pendulum.parse returns Date for date-only strings
        return pendulum.datetime(parsed.year, parsed.month, parsed.day, tz=default_tz)
    return None


def now_millis() -> int:
    """Current time as integer epoch milliseconds."""
    return int(now_utc().timestamp() * 1000)


def unique_millis() -> int:
    """Epoch milliseconds, strictly increasing across calls in this process.

    Two ids generated within the same millisecond would otherwise collide, and a
    watcher could not tell a superseding record from its own.
    """
    global _last_millis
    value = now_millis()
    if value <= _last_millis:
        value = _last_millis + 1
    _last_millis = value
    return value


def format_millis(value: int | None, tz: str | None = None) -> str:
    """Render epoch milliseconds for humans (local time unless tz is given)."""
    if value is None:
        return ""
    zone = pendulum.timezone(tz) if tz else pendulum.local_timezone()
    moment = pendulum.from_timestamp(value / 1000, tz=zone)
    return moment.format("YYYY-MM-DD HH:mm:ss")
