"""Resolve period selectors into concrete date windows."""

import re
from datetime import datetime, time, timedelta

from dateutil.relativedelta import relativedelta

from budgetledger.domain.entities import (
    DISTANT_PAST,
    DateWindow,
    LastNDays,
    Period,
    TimePeriod,
)
from budgetledger.domain.errors import ValidationError

_LAST_N_DAYS = re.compile(r"^last-(\d+)-days$")

_ROLLING_DAYS = {
    TimePeriod.LAST_7_DAYS: 7,
    TimePeriod.LAST_30_DAYS: 30,
    TimePeriod.LAST_90_DAYS: 90,
}


def _midnight(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)


def _quarter_start(moment: datetime) -> datetime:
    first_month = 3 * ((moment.month - 1) // 3) + 1
    return datetime(moment.year, first_month, 1)


def resolve(period: Period, now: datetime) -> DateWindow:
    """Get the concrete window for a period selector.

    ``this-*`` windows start at the calendar boundary and end at ``now``.
    Rolling windows end at ``now``. ``last-*`` calendar buckets end at the
    following boundary. A custom :class:`DateWindow` is returned unchanged,
    even when its start is after its end.

    Args:
        period: Period selector
        now: Reference moment

    Returns:
        Half-open window

    Raises:
        ValueError: If the selector is not recognized
    """
    if isinstance(period, DateWindow):
        return period

    if isinstance(period, LastNDays):
        if period.days < 1:
            raise ValidationError("Rolling window must cover at least one day")
        start = _midnight(now) - timedelta(days=period.days - 1)
        return DateWindow(start, now)

    today = _midnight(now)

    if period == TimePeriod.TODAY:
        return DateWindow(today, now)

    elif period == TimePeriod.YESTERDAY:
        return DateWindow(today - timedelta(days=1), today)

    elif period == TimePeriod.THIS_WEEK:
        return DateWindow(today - timedelta(days=now.weekday()), now)

    elif period == TimePeriod.LAST_WEEK:
        this_week = today - timedelta(days=now.weekday())
        return DateWindow(this_week - timedelta(days=7), this_week)

    elif period == TimePeriod.THIS_MONTH:
        return DateWindow(today.replace(day=1), now)

    elif period == TimePeriod.LAST_MONTH:
        this_month = today.replace(day=1)
        return DateWindow(this_month - relativedelta(months=1), this_month)

    elif period == TimePeriod.THIS_QUARTER:
        return DateWindow(_quarter_start(now), now)

    elif period == TimePeriod.LAST_QUARTER:
        this_quarter = _quarter_start(now)
        return DateWindow(this_quarter - relativedelta(months=3), this_quarter)

    elif period == TimePeriod.THIS_YEAR:
        return DateWindow(today.replace(month=1, day=1), now)

    elif period == TimePeriod.LAST_YEAR:
        this_year = today.replace(month=1, day=1)
        return DateWindow(this_year - relativedelta(years=1), this_year)

    elif period in _ROLLING_DAYS:
        return resolve(LastNDays(_ROLLING_DAYS[period]), now)

    elif period == TimePeriod.LAST_12_MONTHS:
        return DateWindow(now - relativedelta(months=12), now)

    elif period == TimePeriod.ALL_TIME:
        return DateWindow(DISTANT_PAST, now)

    raise ValueError(f"Unknown period: {period!r}")


def custom(start: datetime, end: datetime) -> DateWindow:
    """Return a custom window with the bounds exactly as given."""
    return DateWindow(start, end)


def contains(window: DateWindow, moment: datetime) -> bool:
    """Whether ``moment`` falls on one of the window's calendar days."""
    return window.first_day <= moment.date() <= window.last_day


def parse_period(text: str) -> Period:
    """Parse a period name such as ``this-month`` or ``last-14-days``.

    Raises:
        ValueError: If the name is not recognized
    """
    text = text.strip().lower()
    try:
        return TimePeriod(text)
    except ValueError:
        pass

    match = _LAST_N_DAYS.match(text)
    if match:
        return LastNDays(int(match.group(1)))

    supported = ", ".join(p.value for p in TimePeriod)
    raise ValueError(
        f"Unknown period: '{text}'. Supported periods: {supported}, last-N-days"
    )


def validate_window(window: DateWindow, now: datetime, allow_future: bool = False) -> None:
    """Check a caller-supplied window.

    Raises:
        ValidationError: If the start is after the end, or the end is in the
            future and ``allow_future`` is false
    """
    if window.start > window.end:
        raise ValidationError(
            f"Invalid date range: start {window.start:%Y-%m-%d} is after end {window.end:%Y-%m-%d}"
        )
    if not allow_future and window.last_day > now.date():
        raise ValidationError("Date range cannot end in the future")


def describe(period: Period) -> str:
    """Short label for a period, used in file names and CLI output."""
    if isinstance(period, DateWindow):
        return f"{period.first_day:%Y%m%d}-{period.last_day:%Y%m%d}"
    if isinstance(period, LastNDays):
        return f"last-{period.days}-days"
    return period.value
