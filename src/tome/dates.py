"""Calendar-day and timezone helpers.

Every "day" in the tracker is a ``YYYY-MM-DD`` string interpreted in the
user's IANA timezone. These helpers are the only place where instants are
turned into days and back, so that day boundaries follow the user's
midnight rather than UTC midnight.

All functions are pure; "now" can be passed in explicitly.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ValidationError

DEFAULT_TIMEZONE = "America/New_York"

_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def validate_date_string(value: object) -> bool:
    """Check that a value is a strict ``YYYY-MM-DD`` string naming a real date.

    A regex alone would accept ``2025-02-31``; the value is also parsed
    against the Gregorian calendar.
    """
    if not isinstance(value, str) or not _DATE_PATTERN.fullmatch(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_date_string(value: object, label: str = "date") -> str:
    """Validate a calendar-day string and return it unchanged.

    Args:
        value: Candidate date string
        label: Field name used in the error message

    Returns:
        The validated ``YYYY-MM-DD`` string

    Raises:
        ValidationError: If the format is wrong or the date does not exist
    """
    if not isinstance(value, str) or not _DATE_PATTERN.fullmatch(value):
        raise ValidationError(f"Invalid {label} format: expected YYYY-MM-DD, got {value!r}")
    if not validate_date_string(value):
        raise ValidationError(
            f"Invalid {label} format: {value!r} is not a valid calendar date (expected YYYY-MM-DD)"
        )
    return value


def get_zone(tz: str) -> ZoneInfo:
    """Resolve an IANA timezone name.

    Raises:
        ValidationError: If the name is not a known timezone
    """
    if not isinstance(tz, str) or not tz:
        raise ValidationError(f"Invalid timezone: {tz}")
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Invalid timezone: {tz}") from None


def validate_timezone(tz: str) -> bool:
    """Check whether a timezone name is valid."""
    try:
        get_zone(tz)
    except ValidationError:
        return False
    return True


def to_date_string(instant: datetime, tz: str) -> str:
    """Calendar day of an instant in the given timezone.

    Naive datetimes are treated as UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(get_zone(tz)).date().isoformat()


def today_in_timezone(tz: str, now: Optional[datetime] = None) -> str:
    """Today's date string in the given timezone."""
    if now is None:
        now = datetime.now(timezone.utc)
    return to_date_string(now, tz)


def date_string_to_utc(day: str, tz: str) -> datetime:
    """Local midnight of a calendar day, expressed as a UTC instant."""
    parsed = date.fromisoformat(parse_date_string(day))
    local_midnight = datetime(parsed.year, parsed.month, parsed.day, tzinfo=get_zone(tz))
    return local_midnight.astimezone(timezone.utc)


def day_range_utc(day: str, tz: str) -> tuple[datetime, datetime]:
    """Half-open UTC range ``[start, end)`` covering a local calendar day."""
    return date_string_to_utc(day, tz), date_string_to_utc(add_days(day, 1), tz)


def days_between(earlier: str, later: str) -> int:
    """Number of calendar days from ``earlier`` to ``later`` (negative if reversed)."""
    return (date.fromisoformat(later) - date.fromisoformat(earlier)).days


def add_days(day: str, days: int) -> str:
    """Shift a calendar-day string by a number of days."""
    return (date.fromisoformat(day) + timedelta(days=days)).isoformat()


def is_future_date(day: str, tz: str, now: Optional[datetime] = None) -> bool:
    """Check whether a day lies after today in the given timezone."""
    # YYYY-MM-DD strings sort chronologically
    return day > today_in_timezone(tz, now)


def format_display_date(day: str) -> str:
    """Format a day for messages, e.g. ``Jan 10, 2025``."""
    parsed = date.fromisoformat(day)
    return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"
