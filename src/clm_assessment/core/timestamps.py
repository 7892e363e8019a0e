"""UTC timestamp helpers.

SQLite returns naive datetimes for timezone-aware columns; ``as_utc`` treats
those as UTC so comparisons against ``utcnow()`` never mix naive and aware
values.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` as an aware UTC datetime (None passes through)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def monotonic_after(previous: datetime | None, candidate: datetime) -> datetime:
    """Return ``candidate`` unless it would move a timestamp backwards."""
    previous_utc = as_utc(previous)
    if previous_utc is not None and previous_utc > candidate:
        return previous_utc
    return candidate
