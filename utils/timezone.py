"""UTC-everywhere time handling for callback timestamps and ledger rows."""

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Accepts the trailing "Z" designator the payment processor sends
    (e.g. "2025-05-06T10:00:00.000Z").

    Raises ValueError if the string is not ISO 8601 or has no timezone info.
    """
    value = iso_string.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"

    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def utc_date(dt: datetime) -> date:
    """Calendar date of a timestamp in UTC (ledger dates are UTC dates)."""
    return to_utc(dt).date()
