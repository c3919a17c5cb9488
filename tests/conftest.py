"""Shared pytest fixtures for budgetledger tests."""

import tempfile
import os
from datetime import datetime
from decimal import Decimal
from pathlib import Path
import pytest

from budgetledger.database.base import Database
from budgetledger.database.factories import create_sqlite_database
from budgetledger.domain.entities import MonthlyBudgetAllocation, PurchaseEntry, new_id
from budgetledger.domain.errors import PersistenceError
from budgetledger.domain.ledger import LedgerStore

# Mid-October keeps "this year" projections and rollovers easy to reason about
NOW = datetime(2024, 10, 15, 12, 0)


class FlakyDatabase(Database):
    """Wraps a real database and fails writes on demand."""

    def __init__(self, inner: Database):
        self.inner = inner
        self.fail_writes = False
        self.fail_after = None
        self.writes = 0

    def _check(self):
        if self.fail_writes:
            raise PersistenceError("disk full")
        if self.fail_after is not None and self.writes >= self.fail_after:
            raise PersistenceError("disk full")
        self.writes += 1

    def connect(self):
        self.inner.connect()

    def disconnect(self):
        self.inner.disconnect()

    def initialize_schema(self):
        self.inner.initialize_schema()

    def load_all_entries(self):
        return self.inner.load_all_entries()

    def save_entry(self, entry):
        self._check()
        self.inner.save_entry(entry)

    def delete_entry(self, entry):
        self._check()
        self.inner.delete_entry(entry)

    def load_all_allocations(self):
        return self.inner.load_all_allocations()

    def save_allocation(self, allocation):
        self._check()
        self.inner.save_allocation(allocation)

    def delete_allocation(self, allocation):
        self._check()
        self.inner.delete_allocation(allocation)

    def apply_batch(self, saves=(), deletes=()):
        self._check()
        self.inner.apply_batch(saves, deletes)

    def delete_all(self):
        self._check()
        self.inner.delete_all()


def make_entry(amount, category="Groceries", when=None, note=None, entry_id=None):
    """Build a purchase entry with sensible defaults."""
    return PurchaseEntry(
        id=entry_id or new_id(),
        amount=Decimal(str(amount)),
        category=category,
        date=when or NOW,
        note=note,
    )


def make_allocation(category, amount, month, year, is_historical=False):
    """Build a monthly allocation."""
    return MonthlyBudgetAllocation(
        id=new_id(),
        category=category,
        amount=Decimal(str(amount)),
        month=month,
        year=year,
        is_historical=is_historical,
    )


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    """Fixed clock returning NOW."""
    return lambda: NOW


@pytest.fixture
def store(temp_db, clock):
    """Create a loaded, ready LedgerStore over a temporary database."""
    ledger = LedgerStore(temp_db, clock=clock)
    ledger.load()
    ledger.mark_ready()
    return ledger


@pytest.fixture
def flaky_db(temp_db):
    """Database wrapper whose writes can be made to fail."""
    return FlakyDatabase(temp_db)


@pytest.fixture
def flaky_store(flaky_db, clock):
    """Ready LedgerStore backed by a FlakyDatabase."""
    ledger = LedgerStore(flaky_db, clock=clock)
    ledger.load()
    ledger.mark_ready()
    return ledger


@pytest.fixture
def reopen(temp_db, clock):
    """Return a function that loads a fresh store from the same database file."""

    def _reopen():
        db = create_sqlite_database(database_path=temp_db.database_path)
        ledger = LedgerStore(db, clock=clock)
        ledger.load()
        ledger.mark_ready()
        return ledger

    return _reopen


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def run_cli(cli_runner, temp_db, clock):
    """Invoke the CLI against the temporary database with the fixed clock."""
    from budgetledger.cli.main import cli

    def _run(*args, **kwargs):
        return cli_runner.invoke(
            cli,
            ["--db-path", temp_db.database_path, *args],
            obj={"clock": clock},
            **kwargs,
        )

    return _run


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
