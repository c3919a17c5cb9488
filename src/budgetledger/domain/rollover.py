"""Monthly rollover of budget allocations."""

import logging
from dataclasses import replace
from datetime import datetime

from budgetledger.domain.entities import RolloverReport, new_id
from budgetledger.domain.ledger import LedgerStore
from budgetledger.utils.date_parser import previous_month

logger = logging.getLogger(__name__)


class MonthlyRolloverService:
    """Carries last month's budget into the current month."""

    def __init__(self, store: LedgerStore):
        """Initialize rollover service.

        Args:
            store: Ledger store to roll over
        """
        self.store = store

    def run(self, now: datetime) -> RolloverReport:
        """Copy last month's allocations forward and freeze last month.

        When the current month has no live (non-historical) allocation, every
        live allocation of the previous month is copied into it. Previous
        month allocations are then marked historical. Running twice in the
        same month changes nothing the second time.

        Args:
            now: Reference moment deciding the current month

        Returns:
            Report of copied and newly marked allocations
        """
        prev_month, prev_year = previous_month(now.month, now.year)

        with self.store.exclusive():
            current = self.store.allocations_for_month(now.month, now.year)
            previous = self.store.allocations_for_month(prev_month, prev_year)

            copied = []
            if not any(not a.is_historical for a in current):
                copied = [
                    replace(a, id=new_id(), month=now.month, year=now.year, is_historical=False)
                    for a in previous
                    if not a.is_historical
                ]

            marked = [replace(a, is_historical=True) for a in previous if not a.is_historical]

            if copied or marked:
                self.store.upsert_allocations(copied + marked)

        if copied or marked:
            logger.info(
                "Rolled over %d allocations into %d-%02d, marked %d historical",
                len(copied),
                now.year,
                now.month,
                len(marked),
            )
        return RolloverReport(
            month=now.month,
            year=now.year,
            copied=tuple(copied),
            marked=tuple(marked),
        )
