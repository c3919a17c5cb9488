"""Date parsing utilities."""

from datetime import date, datetime, timedelta
from typing import Callable, Optional
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

CSV_DATE_FORMAT = "%Y-%m-%d"

# Relative phrases resolve against a reference day; periods map to their first day
_RELATIVE_DATES: dict[str, Callable[[date], date]] = {
    "today": lambda today: today,
    "yesterday": lambda today: today - timedelta(days=1),
    "this week": lambda today: today - timedelta(days=today.weekday()),
    "last week": lambda today: today - timedelta(days=today.weekday() + 7),
    "this month": lambda today: today.replace(day=1),
    "last month": lambda today: today.replace(day=1) - relativedelta(months=1),
    "this year": lambda today: today.replace(month=1, day=1),
    "last year": lambda today: today.replace(month=1, day=1) - relativedelta(years=1),
}


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports absolute dates such as "2024-01-15" or "January 15, 2024", and
    relative ones: "today", "yesterday", and "this"/"last" followed by
    "week", "month" or "year" (the first day of that period).

    Args:
        date_str: Date string in various formats
        today: Reference day for relative dates, defaults to the current day

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    phrase = " ".join(date_str.lower().split())
    relative = _RELATIVE_DATES.get(phrase)
    if relative is not None:
        return relative(today or date.today())

    try:
        return date_parser.parse(phrase).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str.strip()}': {e}")


def parse_csv_date(date_str: str) -> datetime:
    """Parse a ``yyyy-MM-dd`` CSV date into a midnight datetime.

    Raises:
        ValueError: If the value is not in the exact format
    """
    try:
        return datetime.strptime(date_str.strip(), CSV_DATE_FORMAT)
    except ValueError:
        raise ValueError(f"Invalid date '{date_str}', expected yyyy-MM-dd")


def days_in_month(year: int, month: int) -> int:
    """Return the number of days in a calendar month."""
    first = date(year, month, 1)
    return ((first + relativedelta(months=1)) - first).days


def previous_month(month: int, year: int) -> tuple[int, int]:
    """Return ``(month, year)`` of the month before the given one."""
    if month == 1:
        return 12, year - 1
    return month - 1, year


def month_index(year: int, month: int) -> int:
    return year * 12 + (month - 1)
