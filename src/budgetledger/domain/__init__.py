"""Domain layer for budgetledger application."""

from budgetledger.domain.ledger import LedgerStore
from budgetledger.domain.rollover import MonthlyRolloverService
from budgetledger.domain.csv_import import CSVImportService
from budgetledger.domain.csv_export import CSVExportService
from budgetledger.domain.summary import SummaryService
from budgetledger.domain.jobs import CancellationToken, JobRunner

__all__ = [
    "LedgerStore",
    "MonthlyRolloverService",
    "CSVImportService",
    "CSVExportService",
    "SummaryService",
    "CancellationToken",
    "JobRunner",
]
