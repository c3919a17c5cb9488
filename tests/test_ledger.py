"""Tests for the ledger store."""

import pytest
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from budgetledger.domain.entities import UNCATEGORIZED, DateWindow, TimePeriod
from budgetledger.domain.errors import (
    ConflictError,
    LedgerNotReadyError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from budgetledger.domain.ledger import LedgerStore

from conftest import NOW, make_allocation, make_entry


class TestEntries:
    """Tests for purchase entry mutations."""

    def test_add_entry_persists_and_normalizes(self, store, reopen):
        """Test added entries are rounded, trimmed and persisted."""
        stored = store.add_entry(make_entry("12.345", category="  Groceries ", note="  milk "))

        assert stored.amount == Decimal("12.35")
        assert stored.category == "Groceries"
        assert stored.note == "milk"
        assert [e.id for e in reopen().entries()] == [stored.id]

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_add_entry_rejects_non_positive_amount(self, store, amount):
        """Test zero and negative purchases are rejected."""
        with pytest.raises(ValidationError, match="greater than 0"):
            store.add_entry(make_entry(amount))
        assert store.entries() == []

    def test_add_entry_checks_amount_after_rounding(self, store):
        """Test an amount that rounds to zero cents is rejected, half a cent is kept."""
        with pytest.raises(ValidationError, match="greater than 0"):
            store.add_entry(make_entry("0.004"))
        assert store.entries() == []

        stored = store.add_entry(make_entry("0.005"))
        assert stored.amount == Decimal("0.01")

    def test_add_entry_rejects_empty_category(self, store):
        """Test blank categories are rejected."""
        with pytest.raises(ValidationError, match="empty"):
            store.add_entry(make_entry("5", category="   "))

    def test_add_entry_rejects_duplicate_id(self, store):
        """Test ids are unique."""
        entry = store.add_entry(make_entry("5"))
        with pytest.raises(ConflictError):
            store.add_entry(replace(entry, amount=Decimal("6")))

    def test_add_entry_uses_existing_category_spelling(self, store):
        """Test categories differing only in case or spacing are merged."""
        store.upsert_allocation(make_allocation("Dining Out", "100", 10, 2024))
        stored = store.add_entry(make_entry("5", category="dining   out"))
        assert stored.category == "Dining Out"
        assert store.categories() == ["Dining Out"]

    def test_update_entry_replaces_fields(self, store, reopen):
        """Test updates replace the whole entry."""
        entry = store.add_entry(make_entry("5", note="old"))
        assert store.update_entry(replace(entry, amount=Decimal("7.50"), note=None))

        reloaded = reopen().get_entry(entry.id)
        assert reloaded.amount == Decimal("7.50")
        assert reloaded.note is None

    def test_update_unknown_entry_is_noop(self, store):
        """Test updating a missing id changes nothing."""
        assert store.update_entry(make_entry("5")) is False
        assert store.entries() == []

    def test_delete_entry(self, store, reopen):
        """Test deleting an entry."""
        entry = store.add_entry(make_entry("5"))
        assert store.delete_entry(entry.id)
        assert store.delete_entry(entry.id) is False
        assert reopen().entries() == []

    def test_entries_are_sorted_and_range_is_inclusive(self, store):
        """Test entries come back oldest first within inclusive bounds."""
        late = store.add_entry(make_entry("1", when=datetime(2024, 10, 10)))
        early = store.add_entry(make_entry("2", when=datetime(2024, 10, 1)))
        store.add_entry(make_entry("3", when=datetime(2024, 9, 30)))

        result = store.entries(datetime(2024, 10, 1), datetime(2024, 10, 10))
        assert [e.id for e in result] == [early.id, late.id]

    def test_entries_filter_by_category(self, store):
        """Test category filter matches by key."""
        store.add_entry(make_entry("1", category="Groceries"))
        store.add_entry(make_entry("2", category="Rent"))
        assert [e.category for e in store.entries(category="groceries")] == ["Groceries"]


class TestAllocations:
    """Tests for allocation mutations."""

    def test_upsert_updates_in_place(self, store, reopen):
        """Test a second upsert for the same key keeps one record."""
        first = store.upsert_allocation(make_allocation("Groceries", "500", 7, 2024))
        second = store.upsert_allocation(make_allocation("groceries", "600", 7, 2024))

        assert second.id == first.id
        assert second.category == "Groceries"
        allocations = reopen().allocations_for_month(7, 2024)
        assert len(allocations) == 1
        assert allocations[0].amount == Decimal("600.00")

    def test_upsert_is_idempotent(self, store):
        """Test repeating the same upsert is a no-op on the collection."""
        allocation = make_allocation("Groceries", "500", 7, 2024)
        store.upsert_allocation(allocation)
        store.upsert_allocation(allocation)
        assert len(store.allocations()) == 1

    @pytest.mark.parametrize(
        "month,year,amount",
        [(0, 2024, "1"), (13, 2024, "1"), (7, 2024, "-1")],
    )
    def test_upsert_validates(self, store, month, year, amount):
        """Test invalid months and negative budgets are rejected."""
        with pytest.raises(ValidationError):
            store.upsert_allocation(make_allocation("Groceries", amount, month, year))

    def test_upsert_allocations_last_write_wins(self, store):
        """Test batch upserts keep the last value for a repeated key."""
        store.upsert_allocations(
            [
                make_allocation("Groceries", "500", 7, 2024),
                make_allocation("Groceries", "600", 7, 2024),
                make_allocation("Rent", "1000", 7, 2024),
            ]
        )
        amounts = {a.category: a.amount for a in store.allocations_for_month(7, 2024)}
        assert amounts == {"Groceries": Decimal("600.00"), "Rent": Decimal("1000.00")}

    def test_allocations_use_month_span(self, store):
        """Test range queries include the start and end months."""
        store.upsert_allocation(make_allocation("Groceries", "1", 6, 2024))
        store.upsert_allocation(make_allocation("Groceries", "1", 7, 2024))
        store.upsert_allocation(make_allocation("Groceries", "1", 9, 2024))
        store.upsert_allocation(make_allocation("Groceries", "1", 10, 2024))

        result = store.allocations(datetime(2024, 7, 31), datetime(2024, 9, 1))
        assert sorted(a.month for a in result) == [7, 9]

    def test_delete_category_relabels_every_entry(self, store, reopen):
        """Test deleting Rent for July relabels Rent entries from any month."""
        store.upsert_allocation(make_allocation("Rent", "1000", 7, 2024))
        august = store.upsert_allocation(make_allocation("Rent", "1000", 8, 2024))
        store.add_entry(make_entry("1000", category="Rent", when=datetime(2024, 7, 1)))
        store.add_entry(make_entry("1000", category="Rent", when=datetime(2023, 2, 1)))
        store.add_entry(make_entry("30", category="Groceries", when=datetime(2024, 7, 3)))

        relabeled = store.delete_category("Rent", 7, 2024)

        assert relabeled == 2
        reloaded = reopen()
        assert reloaded.allocations_for_month(7, 2024) == []
        assert [a.id for a in reloaded.allocations_for_month(8, 2024)] == [august.id]
        categories = sorted(e.category for e in reloaded.entries())
        assert categories == ["Groceries", UNCATEGORIZED, UNCATEGORIZED]

    def test_delete_unknown_category(self, store):
        """Test deleting a category with nothing recorded fails."""
        with pytest.raises(NotFoundError):
            store.delete_category("Travel", 7, 2024)

    def test_reset_all(self, store, reopen):
        """Test reset removes everything."""
        store.upsert_allocation(make_allocation("Rent", "1000", 7, 2024))
        store.add_entry(make_entry("5"))
        store.reset_all()
        assert store.snapshot().entries == ()
        reloaded = reopen()
        assert reloaded.entries() == []
        assert reloaded.allocations() == []


class TestPersistenceFailures:
    """Tests that failed writes leave memory unchanged."""

    def test_failed_add_leaves_memory_unchanged(self, flaky_store, flaky_db):
        """Test add_entry propagates storage errors."""
        flaky_db.fail_writes = True
        with pytest.raises(PersistenceError):
            flaky_store.add_entry(make_entry("5"))
        assert flaky_store.entries() == []

    def test_failed_upsert_keeps_old_amount(self, flaky_store, flaky_db):
        """Test a failed update keeps the previous allocation."""
        flaky_store.upsert_allocation(make_allocation("Rent", "1000", 7, 2024))
        flaky_db.fail_writes = True
        with pytest.raises(PersistenceError):
            flaky_store.upsert_allocation(make_allocation("Rent", "1200", 7, 2024))
        assert flaky_store.allocations_for_month(7, 2024)[0].amount == Decimal("1000.00")

    def test_failed_delete_category_is_atomic(self, flaky_store, flaky_db):
        """Test category deletion changes nothing when the batch fails."""
        flaky_store.upsert_allocation(make_allocation("Rent", "1000", 7, 2024))
        flaky_store.add_entry(make_entry("1000", category="Rent"))
        before = flaky_store.snapshot()

        flaky_db.fail_writes = True
        with pytest.raises(PersistenceError):
            flaky_store.delete_category("Rent", 7, 2024)
        assert flaky_store.snapshot() == before

    def test_failed_reset_keeps_data(self, flaky_store, flaky_db):
        """Test reset failures leave data in place."""
        flaky_store.add_entry(make_entry("5"))
        flaky_db.fail_writes = True
        with pytest.raises(PersistenceError):
            flaky_store.reset_all()
        assert len(flaky_store.entries()) == 1


class TestAggregates:
    """Tests for derived figures."""

    def test_aggregates_require_ready(self, temp_db, clock):
        """Test aggregates are refused before activation."""
        store = LedgerStore(temp_db, clock=clock)
        store.load()
        assert not store.is_ready
        with pytest.raises(LedgerNotReadyError):
            store.budget_for_period(TimePeriod.THIS_MONTH)
        store.mark_ready()
        assert store.wait_until_ready(timeout=0)
        assert store.budget_for_period(TimePeriod.THIS_MONTH) == Decimal("0")

    def test_budget_for_period(self, store):
        """Test period budgets come from the proration engine."""
        store.upsert_allocation(make_allocation("Groceries", "310", 10, 2024))
        store.upsert_allocation(make_allocation("Rent", "620", 10, 2024))
        assert store.budget_for_period(TimePeriod.THIS_MONTH) == Decimal("930.00")
        assert store.category_budget_for_period("rent", TimePeriod.THIS_MONTH) == Decimal("620.00")

    def test_spent_for_window(self, store):
        """Test spending sums entries on the window's days."""
        store.add_entry(make_entry("10", when=datetime(2024, 10, 1, 9)))
        store.add_entry(make_entry("15", category="Rent", when=datetime(2024, 10, 14, 23)))
        store.add_entry(make_entry("20", when=datetime(2024, 9, 30, 23)))
        window = DateWindow(datetime(2024, 10, 1), NOW)
        assert store.spent_for_window(window) == Decimal("25.00")
        assert store.spent_for_window(window, "Rent") == Decimal("15.00")

    def test_listeners_receive_current_figures(self, store):
        """Test every mutation notifies listeners with fresh figures."""
        received = []
        unsubscribe = store.subscribe(received.append)

        store.upsert_allocation(make_allocation("Groceries", "400", 10, 2024))
        store.add_entry(make_entry("25"))
        store.add_entry(make_entry("99", when=datetime(2024, 9, 2)))

        assert len(received) == 3
        latest = received[-1]
        assert (latest.month, latest.year) == (10, 2024)
        assert latest.monthly_budget == Decimal("400.00")
        assert latest.spent == Decimal("25.00")
        assert latest.remaining == Decimal("375.00")

        unsubscribe()
        store.add_entry(make_entry("1"))
        assert len(received) == 3

    def test_snapshot_is_stable_across_writes(self, store):
        """Test snapshots taken before a write don't change."""
        store.add_entry(make_entry("5"))
        snapshot = store.snapshot()
        store.add_entry(make_entry("6"))
        assert len(snapshot.entries) == 1
        assert len(store.snapshot().entries) == 2
