"""Budget proration over arbitrary windows.

Monthly allocations are the only budget facts the ledger stores. Every other
budget figure is derived here:

- a window covering exactly one calendar month gets that month's total;
- any other window gets each overlapping month's total weighted by the
  share of that month's days the window covers;
- the current year is projected by repeating the current month's budget
  through December.

All arithmetic is Decimal. Empty months and zero totals produce zero rather
than a division error.
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from budgetledger.domain.categories import category_key
from budgetledger.domain.entities import (
    DateWindow,
    MonthlyBudgetAllocation,
    Period,
    TimePeriod,
)
from budgetledger.domain.time_window import resolve
from budgetledger.utils.date_parser import days_in_month, month_index

ZERO = Decimal("0")


def month_totals(
    allocations: Iterable[MonthlyBudgetAllocation],
) -> dict[tuple[int, int], Decimal]:
    """Sum allocations per ``(year, month)``."""
    totals: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
    for allocation in allocations:
        totals[(allocation.year, allocation.month)] += allocation.amount
    return dict(totals)


def month_total(
    allocations: Iterable[MonthlyBudgetAllocation], month: int, year: int
) -> Decimal:
    """Sum of all allocations for one calendar month."""
    return sum(
        (a.amount for a in allocations if a.month == month and a.year == year),
        ZERO,
    )


def aligned_month(window: DateWindow) -> Optional[tuple[int, int]]:
    """Return ``(year, month)`` when the window covers exactly one whole month."""
    first, last = window.first_day, window.last_day
    if first.day != 1 or (first.year, first.month) != (last.year, last.month):
        return None
    if last.day != days_in_month(last.year, last.month):
        return None
    return first.year, first.month


def overlap_days(window: DateWindow, year: int, month: int) -> int:
    """Inclusive count of the window's days that fall in the given month."""
    month_first = date(year, month, 1)
    month_last = date(year, month, days_in_month(year, month))
    first = max(window.first_day, month_first)
    last = min(window.last_day, month_last)
    if last < first:
        return 0
    return (last - first).days + 1


def budget_for_window(
    allocations: Iterable[MonthlyBudgetAllocation], window: DateWindow
) -> Decimal:
    """Budgeted amount attributable to a window.

    Args:
        allocations: Allocations to draw from (any months)
        window: Target window

    Returns:
        Exact month total for a calendar-aligned window, otherwise the
        day-weighted sum over overlapping months
    """
    totals = month_totals(allocations)

    aligned = aligned_month(window)
    if aligned is not None:
        return totals.get(aligned, ZERO)

    if window.last_day < window.first_day:
        return ZERO

    budget = ZERO
    for (year, month), total in totals.items():
        days = overlap_days(window, year, month)
        if days == 0 or total == 0:
            continue
        budget += total * days / days_in_month(year, month)
    return budget


def yearly_budget(
    allocations: Iterable[MonthlyBudgetAllocation], now: datetime
) -> Decimal:
    """Planned budget for the current year.

    Months before the current one count as recorded; the current month's
    budget is assumed to repeat through December, current month included.
    """
    allocations = list(allocations)
    past = sum(
        (a.amount for a in allocations if a.year == now.year and a.month < now.month),
        ZERO,
    )
    current = month_total(
        (a for a in allocations if not a.is_historical), now.month, now.year
    )
    return past + current * (13 - now.month)


def budget_for_period(
    allocations: Iterable[MonthlyBudgetAllocation], period: Period, now: datetime
) -> Decimal:
    """Budget for a period selector.

    ``this-month`` is the whole current month, ``this-year`` is the yearly
    projection, everything else is prorated over the resolved window.
    """
    if period == TimePeriod.THIS_MONTH:
        return month_total(allocations, now.month, now.year)
    if period == TimePeriod.THIS_YEAR:
        return yearly_budget(allocations, now)
    return budget_for_window(allocations, resolve(period, now))


def _for_category(
    allocations: Iterable[MonthlyBudgetAllocation], category: str
) -> list[MonthlyBudgetAllocation]:
    key = category_key(category)
    return [a for a in allocations if category_key(a.category) == key]


def category_budget_for_window(
    allocations: Iterable[MonthlyBudgetAllocation], category: str, window: DateWindow
) -> Decimal:
    """Day-weighted budget of a single category over a window."""
    return budget_for_window(_for_category(allocations, category), window)


def category_yearly_budget(
    allocations: Iterable[MonthlyBudgetAllocation], category: str, now: datetime
) -> Decimal:
    """Yearly projection restricted to one category."""
    return yearly_budget(_for_category(allocations, category), now)


def latest_known_month(
    allocations: Iterable[MonthlyBudgetAllocation], now: datetime
) -> Optional[tuple[int, int]]:
    """Most recent ``(year, month)`` with allocations, not after ``now``."""
    limit = month_index(now.year, now.month)
    known = [
        (a.year, a.month) for a in allocations if a.month_index <= limit
    ]
    return max(known) if known else None


def category_share(
    allocations: Sequence[MonthlyBudgetAllocation], category: str, now: datetime
) -> Decimal:
    """Category's fraction of the total budget in the latest known month."""
    latest = latest_known_month(allocations, now)
    if latest is None:
        return ZERO
    year, month = latest
    month_allocations = [a for a in allocations if a.year == year and a.month == month]
    all_total = month_total(month_allocations, month, year)
    if all_total == 0:
        return ZERO
    category_total = month_total(_for_category(month_allocations, category), month, year)
    return category_total / all_total


def prorate_by_share(
    total: Decimal,
    allocations: Sequence[MonthlyBudgetAllocation],
    category: str,
    now: datetime,
) -> Decimal:
    """Split a whole-period budget across categories by latest-month share.

    This is the history view's category split: it does not day-weight each
    category separately, so it can differ from
    :func:`category_budget_for_window` when category budgets changed during
    the period.
    """
    return total * category_share(allocations, category, now)
