"""Ledger store: the single owner of entries and allocations."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Optional

from budgetledger.domain import proration, time_window
from budgetledger.domain.categories import (
    build_category_index,
    canonical_category,
    category_key,
)
from budgetledger.domain.entities import (
    UNCATEGORIZED,
    BudgetFigures,
    DateWindow,
    MonthlyBudgetAllocation,
    Period,
    PurchaseEntry,
)
from budgetledger.domain.errors import (
    ConflictError,
    LedgerNotReadyError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    ledger_not_ready,
)
from budgetledger.utils.amount_parser import to_money
from budgetledger.utils.date_parser import month_index

if TYPE_CHECKING:
    from budgetledger.database.base import Database

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

ChangeListener = Callable[[BudgetFigures], None]


@dataclass(frozen=True)
class LedgerSnapshot:
    """Consistent, immutable view of the ledger at one moment."""

    entries: tuple[PurchaseEntry, ...]
    allocations: tuple[MonthlyBudgetAllocation, ...]


def _entry_sort_key(entry: PurchaseEntry) -> tuple[datetime, str]:
    return entry.date, entry.id


class LedgerStore:
    """In-memory authoritative collections backed by a persistence collaborator.

    All mutations are serialized by one re-entrant lock and are written to
    the database before the in-memory view changes, so a storage failure
    leaves both sides as they were. Readers get immutable tuples published
    by reference swap and never block on writers.
    """

    def __init__(self, db: Database, clock: Optional[Callable[[], datetime]] = None):
        """Initialize ledger store.

        Args:
            db: Persistence collaborator
            clock: Callable returning the current local time
        """
        self.db = db
        self._clock = clock or datetime.now
        self._lock = threading.RLock()
        self._ready = threading.Event()
        self._entries: tuple[PurchaseEntry, ...] = ()
        self._allocations: tuple[MonthlyBudgetAllocation, ...] = ()
        self._listeners: list[ChangeListener] = []

    def now(self) -> datetime:
        return self._clock()

    # Lifecycle
    def load(self) -> None:
        """Replace the in-memory view with the persisted data."""
        with self._lock:
            entries = self.db.load_all_entries()
            allocations = self.db.load_all_allocations()
            self._entries = tuple(sorted(entries, key=_entry_sort_key))
            self._allocations = tuple(allocations)
        logger.info(
            "Loaded %d entries and %d allocations", len(entries), len(allocations)
        )

    def mark_ready(self) -> None:
        """Open the store for aggregate queries (after rollover)."""
        self._ready.set()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until activation has completed or the timeout expires."""
        return self._ready.wait(timeout)

    def _require_ready(self) -> None:
        if not self._ready.is_set():
            raise LedgerNotReadyError(ledger_not_ready())

    @contextmanager
    def exclusive(self) -> Iterator["LedgerStore"]:
        """Hold the writer lock across several mutations."""
        with self._lock:
            yield self

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Call ``listener`` with fresh figures after every mutation.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Reads
    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(entries=self._entries, allocations=self._allocations)

    def get_entry(self, entry_id: str) -> Optional[PurchaseEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def entries(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        category: Optional[str] = None,
    ) -> list[PurchaseEntry]:
        """List entries dated within ``[start, end]``, oldest first.

        Args:
            start: Optional inclusive lower bound
            end: Optional inclusive upper bound
            category: Optional category filter, compared by key
        """
        key = category_key(category) if category is not None else None
        return [
            entry
            for entry in self._entries
            if (start is None or entry.date >= start)
            and (end is None or entry.date <= end)
            and (key is None or category_key(entry.category) == key)
        ]

    def entries_in_window(
        self, window: DateWindow, category: Optional[str] = None
    ) -> list[PurchaseEntry]:
        """Entries dated on any calendar day the window touches."""
        key = category_key(category) if category is not None else None
        return [
            entry
            for entry in self._entries
            if time_window.contains(window, entry.date)
            and (key is None or category_key(entry.category) == key)
        ]

    def allocations(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[MonthlyBudgetAllocation]:
        """List allocations whose month lies in the month span of the range.

        Both the start month and the end month are included.
        """
        low = month_index(start.year, start.month) if start is not None else None
        high = month_index(end.year, end.month) if end is not None else None
        return [
            allocation
            for allocation in self._allocations
            if (low is None or allocation.month_index >= low)
            and (high is None or allocation.month_index <= high)
        ]

    def allocations_for_month(self, month: int, year: int) -> list[MonthlyBudgetAllocation]:
        return [a for a in self._allocations if a.month == month and a.year == year]

    def find_allocation(
        self, category: str, month: int, year: int
    ) -> Optional[MonthlyBudgetAllocation]:
        key = category_key(category)
        for allocation in self._allocations:
            if (
                allocation.month == month
                and allocation.year == year
                and category_key(allocation.category) == key
            ):
                return allocation
        return None

    def categories(self) -> list[str]:
        """Known category names from allocations and entries, sorted."""
        index = self._category_index()
        return sorted(index.values(), key=category_key)

    def _category_index(self) -> dict[str, str]:
        names = [a.category for a in self._allocations]
        names.extend(e.category for e in self._entries)
        return build_category_index(names)

    # Aggregates
    def budget_for_period(self, period: Period, now: Optional[datetime] = None) -> Decimal:
        self._require_ready()
        return proration.budget_for_period(self._allocations, period, now or self.now())

    def category_budget_for_period(
        self, category: str, period: Period, now: Optional[datetime] = None
    ) -> Decimal:
        self._require_ready()
        allocations = [
            a for a in self._allocations if category_key(a.category) == category_key(category)
        ]
        return proration.budget_for_period(allocations, period, now or self.now())

    def spent_for_window(self, window: DateWindow, category: Optional[str] = None) -> Decimal:
        return sum((e.amount for e in self.entries_in_window(window, category)), ZERO)

    def current_figures(self, now: Optional[datetime] = None) -> BudgetFigures:
        """Budget, spent and remaining for the current calendar month."""
        now = now or self.now()
        budget = proration.month_total(self._allocations, now.month, now.year)
        spent = sum(
            (
                e.amount
                for e in self._entries
                if e.date.month == now.month and e.date.year == now.year
            ),
            ZERO,
        )
        return BudgetFigures(month=now.month, year=now.year, monthly_budget=budget, spent=spent)

    # Entry mutations
    def add_entry(self, entry: PurchaseEntry) -> PurchaseEntry:
        """Validate, persist and add a new entry.

        Returns:
            The stored entry (category normalized, amount rounded to cents)

        Raises:
            ValidationError: If amount is not positive or category is empty
            ConflictError: If an entry with the same id exists
            PersistenceError: If the database write fails
        """
        with self._lock:
            if self.get_entry(entry.id) is not None:
                raise ConflictError(f"Purchase entry '{entry.id}' already exists")
            stored = self._clean_entry(entry)
            self._persist(self.db.save_entry, stored)
            self._entries = tuple(sorted(self._entries + (stored,), key=_entry_sort_key))
        logger.debug("Added entry %s", stored.id)
        self._notify()
        return stored

    def update_entry(self, entry: PurchaseEntry) -> bool:
        """Replace the entry with the same id.

        Returns:
            False when no entry has that id; nothing is written in that case
        """
        with self._lock:
            if self.get_entry(entry.id) is None:
                logger.debug("Update ignored for unknown entry %s", entry.id)
                return False
            stored = self._clean_entry(entry)
            self._persist(self.db.save_entry, stored)
            others = tuple(e for e in self._entries if e.id != entry.id)
            self._entries = tuple(sorted(others + (stored,), key=_entry_sort_key))
        self._notify()
        return True

    def delete_entry(self, entry_id: str) -> bool:
        """Delete an entry by id.

        Returns:
            False when no entry has that id
        """
        with self._lock:
            existing = self.get_entry(entry_id)
            if existing is None:
                return False
            self._persist(self.db.delete_entry, existing)
            self._entries = tuple(e for e in self._entries if e.id != entry_id)
        self._notify()
        return True

    # Allocation mutations
    def upsert_allocation(self, allocation: MonthlyBudgetAllocation) -> MonthlyBudgetAllocation:
        """Insert an allocation or update the one with the same category and month.

        An existing match keeps its id and spelling; only the amount and the
        historical flag change.

        Raises:
            ValidationError: If month, year, amount or category is invalid
            PersistenceError: If the database write fails
        """
        with self._lock:
            stored = self._merge_allocation(self._clean_allocation(allocation), self._allocations)
            self._persist(self.db.save_allocation, stored)
            self._allocations = self._with_allocation(self._allocations, stored)
        self._notify()
        return stored

    def upsert_allocations(
        self, allocations: Iterable[MonthlyBudgetAllocation]
    ) -> list[MonthlyBudgetAllocation]:
        """Upsert several allocations in one atomic write.

        Later items win over earlier ones with the same key.
        """
        with self._lock:
            working = self._allocations
            staged: dict[str, MonthlyBudgetAllocation] = {}
            for allocation in allocations:
                stored = self._merge_allocation(self._clean_allocation(allocation), working)
                working = self._with_allocation(working, stored)
                staged[stored.id] = stored
            if not staged:
                return []
            self._persist(self.db.apply_batch, list(staged.values()), ())
            self._allocations = working
        self._notify()
        return list(staged.values())

    def delete_category(self, category: str, month: int, year: int) -> int:
        """Remove a category's allocation for one month and relabel its entries.

        Every entry in the category is moved to ``Uncategorized``, whatever
        its date.

        Returns:
            Number of relabeled entries

        Raises:
            NotFoundError: If neither an allocation nor any entry matches
            PersistenceError: If the database write fails
        """
        key = category_key(category)
        with self._lock:
            allocation = self.find_allocation(category, month, year)
            relabeled = [
                replace(e, category=UNCATEGORIZED)
                for e in self._entries
                if category_key(e.category) == key and key != category_key(UNCATEGORIZED)
            ]
            if allocation is None and not relabeled:
                raise NotFoundError(f"Category '{category}' has no budget or entries")

            deletes = [allocation] if allocation is not None else []
            self._persist(self.db.apply_batch, relabeled, deletes)

            if allocation is not None:
                self._allocations = tuple(a for a in self._allocations if a.id != allocation.id)
            changed = {e.id: e for e in relabeled}
            self._entries = tuple(changed.get(e.id, e) for e in self._entries)
        logger.info(
            "Deleted category '%s' for %d-%02d, relabeled %d entries",
            category,
            year,
            month,
            len(relabeled),
        )
        self._notify()
        return len(relabeled)

    def reset_all(self) -> None:
        """Delete every entry and allocation, in storage and in memory."""
        with self._lock:
            self._persist(self.db.delete_all)
            self._entries = ()
            self._allocations = ()
        logger.warning("All ledger data has been reset")
        self._notify()

    # Helpers
    def _persist(self, operation: Callable, *args) -> None:
        try:
            operation(*args)
        except OSError as e:
            raise PersistenceError(f"Storage I/O failed: {e}") from e

    def _clean_entry(self, entry: PurchaseEntry) -> PurchaseEntry:
        if entry.amount is None:
            raise ValidationError("Amount is required")
        # Validate the rounded amount that gets stored
        amount = to_money(Decimal(entry.amount))
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        if entry.date is None:
            raise ValidationError("Entry date is required")
        category = canonical_category(entry.category, self._category_index())
        note = entry.note.strip() if entry.note else None
        return replace(
            entry,
            amount=amount,
            category=category,
            note=note or None,
        )

    def _clean_allocation(self, allocation: MonthlyBudgetAllocation) -> MonthlyBudgetAllocation:
        if not 1 <= allocation.month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {allocation.month}")
        if not 1 <= allocation.year <= 9999:
            raise ValidationError(f"Invalid year {allocation.year}")
        if allocation.amount is None:
            raise ValidationError("Budget amount is required")
        amount = to_money(Decimal(allocation.amount))
        if amount < 0:
            raise ValidationError("Budget amount cannot be negative")
        category = canonical_category(allocation.category, self._category_index())
        return replace(allocation, amount=amount, category=category)

    @staticmethod
    def _merge_allocation(
        allocation: MonthlyBudgetAllocation,
        existing: tuple[MonthlyBudgetAllocation, ...],
    ) -> MonthlyBudgetAllocation:
        key = category_key(allocation.category)
        for current in existing:
            if (
                current.month == allocation.month
                and current.year == allocation.year
                and category_key(current.category) == key
            ):
                return replace(
                    current,
                    amount=allocation.amount,
                    is_historical=allocation.is_historical,
                )
        return allocation

    @staticmethod
    def _with_allocation(
        existing: tuple[MonthlyBudgetAllocation, ...], stored: MonthlyBudgetAllocation
    ) -> tuple[MonthlyBudgetAllocation, ...]:
        if any(a.id == stored.id for a in existing):
            return tuple(stored if a.id == stored.id else a for a in existing)
        return existing + (stored,)

    def _notify(self) -> None:
        if not self._listeners:
            return
        figures = self.current_figures()
        for listener in list(self._listeners):
            listener(figures)
