"""CLI helpers for period resolution."""

from datetime import date, datetime

import click

from budgetledger.domain import time_window
from budgetledger.domain.entities import DISTANT_PAST, DateWindow, Period, TimePeriod
from budgetledger.utils.date_parser import parse_date


def resolve_cli_period(
    ctx,
    *,
    period: str | None,
    start_date: str | None,
    end_date: str | None,
    now: datetime,
    default: Period = TimePeriod.THIS_MONTH,
) -> Period:
    """Resolve a period selector from ``--period`` or explicit dates.

    Explicit dates build a custom window covering whole days; a missing
    start means the beginning of the ledger and a missing end means today.
    """
    if period and (start_date or end_date):
        click.echo(
            "Error: --period cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)

    if period:
        try:
            return time_window.parse_period(period)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)

    if not start_date and not end_date:
        return default

    today = now.date()
    start: date = DISTANT_PAST.date()
    end: date = today

    if start_date:
        try:
            start = parse_date(start_date, today=today)
        except ValueError as e:
            click.echo(f"Error: Invalid start date: {e}", err=True)
            ctx.exit(1)

    if end_date:
        try:
            end = parse_date(end_date, today=today)
        except ValueError as e:
            click.echo(f"Error: Invalid end date: {e}", err=True)
            ctx.exit(1)

    if start > end:
        click.echo(f"Error: Start date {start} is after end date {end}.", err=True)
        ctx.exit(1)

    return DateWindow.for_dates(start, end)
