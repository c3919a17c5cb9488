"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, so storage column changes do not
leak into the domain entities.
"""

from decimal import Decimal

from budgetledger.domain import entities as domain
from budgetledger.database.models import (
    PurchaseEntry as ORMPurchaseEntry,
    BudgetAllocation as ORMBudgetAllocation,
)


def entry_to_domain(orm_entry: ORMPurchaseEntry) -> domain.PurchaseEntry:
    """Convert SQLAlchemy PurchaseEntry model to domain PurchaseEntry entity."""
    return domain.PurchaseEntry(
        id=orm_entry.id,
        amount=Decimal(orm_entry.amount),
        category=orm_entry.category,
        date=orm_entry.date,
        note=orm_entry.note,
    )


def allocation_to_domain(
    orm_allocation: ORMBudgetAllocation,
) -> domain.MonthlyBudgetAllocation:
    """Convert SQLAlchemy BudgetAllocation model to domain allocation entity."""
    return domain.MonthlyBudgetAllocation(
        id=orm_allocation.id,
        category=orm_allocation.category,
        amount=Decimal(orm_allocation.amount),
        month=orm_allocation.month,
        year=orm_allocation.year,
        is_historical=bool(orm_allocation.is_historical),
    )


def update_entry_model(orm_entry: ORMPurchaseEntry, entry: domain.PurchaseEntry) -> None:
    """Copy domain entry fields onto an ORM row."""
    orm_entry.amount = entry.amount
    orm_entry.category = entry.category
    orm_entry.date = entry.date
    orm_entry.note = entry.note


def update_allocation_model(
    orm_allocation: ORMBudgetAllocation, allocation: domain.MonthlyBudgetAllocation
) -> None:
    """Copy domain allocation fields onto an ORM row."""
    orm_allocation.category = allocation.category
    orm_allocation.amount = allocation.amount
    orm_allocation.month = allocation.month
    orm_allocation.year = allocation.year
    orm_allocation.is_historical = allocation.is_historical
