"""Duration parsing and reprocessing date helpers.

Parses the ISO 8601 duration strings used in reprocessing.yaml and
computes the minute-aligned dates at which an installment becomes
actionable again. All stored timestamps are timezone-aware UTC; naive
input is read as UTC.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

# Calendar approximations, consistent with billing calculations
DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365

_DATE_PATTERN = re.compile(r"^(\d+)?([DWMY])$")
_TIME_PATTERN = re.compile(r"^T(\d+)?([HM])$")


def parse_duration(period: str) -> timedelta:
    """Parse an ISO 8601 duration string to a timedelta.

    Supported formats:
    - P[n]D - days (e.g., P2D = 2 days)
    - P[n]W - weeks (e.g., P1W = 7 days)
    - P[n]M - months (e.g., P1M = 30 days)
    - P[n]Y - years (e.g., P1Y = 365 days)
    - PT[n]H - hours (e.g., PT6H = 6 hours)
    - PT[n]M - minutes (e.g., PT30M = 30 minutes)

    Args:
        period: ISO 8601 duration string

    Returns:
        timedelta for the duration

    Raises:
        ValueError: If the period string is invalid or unsupported

    Examples:
        >>> parse_duration("P2D")
        datetime.timedelta(days=2)

        >>> parse_duration("PT30M")
        datetime.timedelta(seconds=1800)
    """
    if not period or not isinstance(period, str):
        raise ValueError("Period must be a non-empty string")

    period = period.strip().upper()

    if not period.startswith("P"):
        raise ValueError(f"Invalid period format: '{period}'. Must start with 'P'")

    duration_str = period[1:]
    if not duration_str:
        raise ValueError(f"Invalid period format: '{period}'. No duration specified")

    match = _DATE_PATTERN.match(duration_str) or _TIME_PATTERN.match(duration_str)
    if not match:
        raise ValueError(
            f"Unsupported period format: '{period}'. "
            "Supported formats: P[n]D, P[n]W, P[n]M, P[n]Y, PT[n]H, PT[n]M"
        )

    number_str, unit = match.groups()
    number = int(number_str) if number_str else 1

    if number <= 0:
        raise ValueError(f"Period number must be positive, got: {number}")

    if duration_str.startswith("T"):
        if unit == "H":
            return timedelta(hours=number)
        return timedelta(minutes=number)

    if unit == "D":
        return timedelta(days=number)
    elif unit == "W":
        return timedelta(days=number * DAYS_PER_WEEK)
    elif unit == "M":
        return timedelta(days=number * DAYS_PER_MONTH)
    else:
        return timedelta(days=number * DAYS_PER_YEAR)


def format_duration(duration: timedelta) -> str:
    """Convert a timedelta back to an ISO 8601 duration string.

    Whole days are formatted with the largest exact unit (Y, M, W, D);
    anything else falls back to hours or minutes.

    Raises:
        ValueError: If the duration is negative or has sub-minute precision
    """
    if duration < timedelta(0):
        raise ValueError("Duration must be non-negative")

    total_seconds = int(duration.total_seconds())
    if total_seconds == 0:
        return "P0D"
    if total_seconds % 60 != 0 or duration.microseconds:
        raise ValueError(f"Duration has sub-minute precision: {duration}")

    if duration.seconds == 0:
        days = duration.days
        if days % DAYS_PER_YEAR == 0:
            return f"P{days // DAYS_PER_YEAR}Y"
        if days % DAYS_PER_MONTH == 0:
            return f"P{days // DAYS_PER_MONTH}M"
        if days % DAYS_PER_WEEK == 0:
            return f"P{days // DAYS_PER_WEEK}W"
        return f"P{days}D"

    total_minutes = total_seconds // 60
    if total_minutes % 60 == 0:
        return f"PT{total_minutes // 60}H"
    return f"PT{total_minutes}M"


def validate_duration(period: str) -> bool:
    """Check whether a string is a supported duration."""
    try:
        parse_duration(period)
        return True
    except (ValueError, TypeError):
        return False


def coerce_duration(value) -> Optional[timedelta]:
    """Normalize a configured duration (None, timedelta, ISO string or seconds)."""
    if value is None or isinstance(value, timedelta):
        return value
    if isinstance(value, str):
        return parse_duration(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 0:
            raise ValueError("Duration in seconds must be non-negative")
        return timedelta(seconds=value)
    raise ValueError(f"Unsupported duration value: {value!r}")


def truncate_to_minute(moment: datetime) -> datetime:
    """Drop seconds and microseconds, keeping the start of the minute."""
    return moment.replace(second=0, microsecond=0)


def next_actionable_date(now: datetime, interval: Optional[timedelta]) -> Optional[datetime]:
    """Compute when an installment should be attempted again.

    Args:
        now: Current time
        interval: Reprocessing interval; None disables retries

    Returns:
        (now + interval) truncated to the start of its minute, or None
    """
    if interval is None:
        return None
    return truncate_to_minute(now + interval)


def as_utc(moment: datetime) -> datetime:
    """Convert to timezone-aware UTC, reading a naive datetime as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def as_utc_or_none(moment: Optional[datetime]) -> Optional[datetime]:
    return as_utc(moment) if moment is not None else None
