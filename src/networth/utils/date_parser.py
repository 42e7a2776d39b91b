"""Date parsing utilities."""

from datetime import UTC, date, datetime, time, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from networth.domain.errors import ParseError


def parse_localized_date(date_str: str) -> date:
    """Parse a DD/MM/YYYY date string.

    Args:
        date_str: Date string such as "15/01/2024"

    Returns:
        Date object

    Raises:
        ParseError: If the string is not three numeric parts or is not a real date
    """
    if date_str is None:
        raise ParseError("Empty date string")

    parts = date_str.strip().split("/")
    if len(parts) != 3:
        raise ParseError(f"Could not parse date '{date_str}': expected DD/MM/YYYY")

    if not all(part.strip().isdigit() for part in parts):
        raise ParseError(f"Could not parse date '{date_str}': non-numeric component")

    day, month, year = (int(part) for part in parts)
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ParseError(f"Could not parse date '{date_str}': {e}")


def to_utc_naive(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC, the form timestamps are stored in."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value


def utc_now() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(UTC).replace(tzinfo=None)


def start_of_day(day: date) -> datetime:
    """Midnight at the start of a calendar day."""
    return datetime.combine(day, time.min)


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports various formats including relative dates:
    - Absolute dates: "2024-01-15", "15/01/2024", "January 15, 2024", etc.
    - Relative dates: "today", "yesterday", "last month", "this year", etc.

    Slash-separated dates are read day-first.

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }

    if date_str in relative_dates:
        return relative_dates[date_str]

    if date_str.startswith("last "):
        period = date_str[5:]
        if period == "month":
            return (today - relativedelta(months=1)).replace(day=1)
        elif period == "year":
            return today.replace(month=1, day=1) - relativedelta(years=1)
        elif period == "week":
            days_since_monday = today.weekday()
            return today - timedelta(days=days_since_monday + 7)

    elif date_str.startswith("this "):
        period = date_str[5:]
        if period == "month":
            return today.replace(day=1)
        elif period == "year":
            return today.replace(month=1, day=1)
        elif period == "week":
            return today - timedelta(days=today.weekday())

    if "/" in date_str:
        return parse_localized_date(date_str)

    try:
        dt = date_parser.parse(date_str)
        return dt.date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def get_date_range(period: str) -> tuple[date, date]:
    """Get start and end dates for a specified period.

    Args:
        period: Period string (this-month, this-year, this-week, last-month, last-year, last-week)

    Returns:
        Tuple of (start_date, end_date) for the specified period

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = date.today()

    if period == "this-month":
        return (today.replace(day=1), today)

    elif period == "this-year":
        return (today.replace(month=1, day=1), today)

    elif period == "this-week":
        return (today - timedelta(days=today.weekday()), today)

    elif period == "last-month":
        start_date = (today - relativedelta(months=1)).replace(day=1)
        end_date = today.replace(day=1) - timedelta(days=1)
        return (start_date, end_date)

    elif period == "last-year":
        start_date = today.replace(month=1, day=1) - relativedelta(years=1)
        end_date = today.replace(month=1, day=1) - timedelta(days=1)
        return (start_date, end_date)

    elif period == "last-week":
        start_date = today - timedelta(days=today.weekday() + 7)
        end_date = start_date + timedelta(days=6)
        return (start_date, end_date)

    else:
        raise ValueError(
            f"Unknown period: '{period}'. Supported periods: this-month, this-year, "
            "this-week, last-month, last-year, last-week"
        )
