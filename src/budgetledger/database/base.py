"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Iterable, Union

from budgetledger.domain.entities import MonthlyBudgetAllocation, PurchaseEntry

Record = Union[PurchaseEntry, MonthlyBudgetAllocation]


class Database(ABC):
    """Abstract persistence collaborator for the ledger.

    Implementations must raise
    :class:`budgetledger.domain.errors.PersistenceError` for storage failures
    and must not leave a failed write half-applied.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Purchase entry operations
    @abstractmethod
    def load_all_entries(self) -> list[PurchaseEntry]:
        """Load every stored purchase entry."""
        pass

    @abstractmethod
    def save_entry(self, entry: PurchaseEntry) -> None:
        """Insert or replace an entry keyed on its id."""
        pass

    @abstractmethod
    def delete_entry(self, entry: PurchaseEntry) -> None:
        """Delete an entry. Unknown ids are ignored."""
        pass

    # Allocation operations
    @abstractmethod
    def load_all_allocations(self) -> list[MonthlyBudgetAllocation]:
        """Load every stored allocation."""
        pass

    @abstractmethod
    def save_allocation(self, allocation: MonthlyBudgetAllocation) -> None:
        """Insert or replace an allocation keyed on its id."""
        pass

    @abstractmethod
    def delete_allocation(self, allocation: MonthlyBudgetAllocation) -> None:
        """Delete an allocation. Unknown ids are ignored."""
        pass

    # Bulk operations
    @abstractmethod
    def apply_batch(
        self, saves: Iterable[Record] = (), deletes: Iterable[Record] = ()
    ) -> None:
        """Apply several saves and deletes as one atomic write."""
        pass

    @abstractmethod
    def delete_all(self) -> None:
        """Remove all entries and allocations."""
        pass
