"""Ledger activation: load, roll over, then open for queries."""

import logging
from concurrent.futures import Future
from datetime import datetime
from typing import Callable, Optional

from budgetledger.database.base import Database
from budgetledger.domain.entities import RolloverReport
from budgetledger.domain.jobs import JobRunner
from budgetledger.domain.ledger import LedgerStore
from budgetledger.domain.rollover import MonthlyRolloverService

logger = logging.getLogger(__name__)


def activate(store: LedgerStore) -> RolloverReport:
    """Load persisted data, run the monthly rollover and mark the store ready.

    Aggregate queries raise ``LedgerNotReadyError`` until this returns.
    """
    store.load()
    report = MonthlyRolloverService(store).run(store.now())
    store.mark_ready()
    logger.debug("Ledger ready for %d-%02d", report.year, report.month)
    return report


def open_ledger(
    db: Database, clock: Optional[Callable[[], datetime]] = None
) -> LedgerStore:
    """Create and activate a ledger store on the calling thread."""
    db.connect()
    db.initialize_schema()
    store = LedgerStore(db, clock=clock)
    activate(store)
    return store


def activate_in_background(store: LedgerStore, runner: JobRunner) -> Future:
    """Run :func:`activate` on a worker thread.

    Callers that need aggregates block on ``store.wait_until_ready()`` or on
    the returned future.
    """
    return runner.submit(activate, store)
