"""UTC-everywhere time handling. Eliminates timezone bugs at the source."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_local(dt: datetime, tz_name: str) -> datetime:
    """
    Convert UTC datetime to local timezone.

    Args:
        dt: UTC datetime
        tz_name: IANA timezone name (e.g., "Asia/Baghdad")

    Raises:
        ValueError: If datetime is naive or timezone name is invalid
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )

    try:
        local_tz = ZoneInfo(tz_name)
    except (KeyError, ZoneInfoNotFoundError):
        raise ValueError(f"Unknown timezone: {tz_name}")

    return dt.astimezone(local_tz)


def business_today(tz_name: str = "UTC") -> date:
    """
    Calendar date "today" as seen by the business.

    Due dates are calendar dates, so overdue checks compare against the
    business's local date rather than the UTC date.
    """
    return to_local(now_utc(), tz_name).date()


def parse_date(value: str | date) -> date:
    """
    Parse an ISO 8601 calendar date (YYYY-MM-DD).

    Datetime strings are rejected: a due date has no time component.

    Raises:
        ValueError: If the string is not a calendar date
    """
    if isinstance(value, datetime):
        raise ValueError("Expected a calendar date, got a datetime")
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid date '{value}'. Use YYYY-MM-DD.")
