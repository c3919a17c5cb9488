"""Budget summary domain service."""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from budgetledger.domain import proration, time_window
from budgetledger.domain.categories import build_category_index, category_key
from budgetledger.domain.entities import (
    BudgetOverview,
    CategoryBreakdown,
    DataStatistics,
    HistoryReport,
    MonthlyBudgetAllocation,
    Period,
    PurchaseEntry,
    TimePeriod,
)
from budgetledger.domain.errors import LedgerNotReadyError, ledger_not_ready
from budgetledger.domain.ledger import LedgerSnapshot, LedgerStore

ZERO = Decimal("0")

RECENT_ENTRIES = 10


def _spending_by_category(entries: Iterable[PurchaseEntry]) -> dict[str, tuple[Decimal, int]]:
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[str, int] = defaultdict(int)
    for entry in entries:
        key = category_key(entry.category)
        totals[key] += entry.amount
        counts[key] += 1
    return {key: (totals[key], counts[key]) for key in totals}


class SummaryService:
    """Service for building overview, history and statistics models."""

    def __init__(self, store: LedgerStore):
        """Initialize summary service.

        Args:
            store: Ledger store to summarize
        """
        self.store = store

    def _ready_snapshot(self) -> LedgerSnapshot:
        """One consistent view of the ledger for a whole report."""
        if not self.store.is_ready:
            raise LedgerNotReadyError(ledger_not_ready())
        return self.store.snapshot()

    def overview(self, now: Optional[datetime] = None) -> BudgetOverview:
        """Build the current month overview.

        Args:
            now: Reference moment, defaults to the store clock

        Returns:
            BudgetOverview with one breakdown per budgeted or used category

        Raises:
            LedgerNotReadyError: If the ledger has not been activated
        """
        now = now or self.store.now()
        snapshot = self._ready_snapshot()
        total_budgeted = proration.budget_for_period(
            snapshot.allocations, TimePeriod.THIS_MONTH, now
        )

        allocations = [
            a for a in snapshot.allocations if (a.month, a.year) == (now.month, now.year)
        ]
        entries = [
            e
            for e in snapshot.entries
            if e.date.year == now.year and e.date.month == now.month
        ]
        spending = _spending_by_category(entries)

        names = build_category_index(
            [a.category for a in allocations] + [e.category for e in entries]
        )
        breakdown = []
        for key, name in sorted(names.items()):
            spent, count = spending.get(key, (ZERO, 0))
            budgeted = proration.month_total(
                (a for a in allocations if category_key(a.category) == key),
                now.month,
                now.year,
            )
            breakdown.append(
                CategoryBreakdown(
                    category=name,
                    budgeted=budgeted,
                    spent=spent,
                    transaction_count=count,
                )
            )

        recent = sorted(snapshot.entries, key=lambda e: (e.date, e.id), reverse=True)
        return BudgetOverview(
            month=now.month,
            year=now.year,
            total_budgeted=total_budgeted,
            total_spent=sum((e.amount for e in entries), ZERO),
            transaction_count=len(entries),
            categories=tuple(breakdown),
            recent_entries=tuple(recent[:RECENT_ENTRIES]),
        )

    def history(self, period: Period, now: Optional[datetime] = None) -> HistoryReport:
        """Budgeted versus spent over a period.

        The period total is prorated across months. Each category then gets
        the total multiplied by its share of the most recent month's budget,
        except for ``this-year`` where each category is projected on its own.

        Raises:
            LedgerNotReadyError: If the ledger has not been activated
        """
        now = now or self.store.now()
        window = time_window.resolve(period, now)
        snapshot = self._ready_snapshot()
        allocations = snapshot.allocations
        total_budgeted = proration.budget_for_period(allocations, period, now)
        entries = [e for e in snapshot.entries if time_window.contains(window, e.date)]
        spending = _spending_by_category(entries)

        latest = proration.latest_known_month(allocations, now)
        share_month: list[MonthlyBudgetAllocation] = []
        if latest is not None:
            share_month = [a for a in allocations if (a.year, a.month) == latest]

        names = build_category_index(
            [a.category for a in share_month] + [e.category for e in entries]
        )
        breakdown = []
        for key, name in sorted(names.items()):
            if period == TimePeriod.THIS_YEAR:
                budgeted = proration.category_yearly_budget(allocations, name, now)
            else:
                budgeted = proration.prorate_by_share(total_budgeted, allocations, name, now)
            spent, count = spending.get(key, (ZERO, 0))
            breakdown.append(
                CategoryBreakdown(
                    category=name,
                    budgeted=budgeted,
                    spent=spent,
                    transaction_count=count,
                )
            )

        return HistoryReport(
            label=time_window.describe(period),
            window=window,
            total_budgeted=total_budgeted,
            total_spent=sum((e.amount for e in entries), ZERO),
            categories=tuple(breakdown),
        )

    def statistics(self) -> DataStatistics:
        """Whole-ledger totals."""
        snapshot = self.store.snapshot()
        return DataStatistics(
            total_entries=len(snapshot.entries),
            total_allocations=len(snapshot.allocations),
            total_spent=sum((e.amount for e in snapshot.entries), ZERO),
            total_budgeted=sum((a.amount for a in snapshot.allocations), ZERO),
            categories_count=len(self.store.categories()),
        )
