"""CSV export domain service."""

import csv
import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from budgetledger.domain import time_window
from budgetledger.domain.categories import category_key
from budgetledger.domain.csv_import import BUDGET_HEADER, PURCHASE_HEADER
from budgetledger.domain.entities import (
    DateWindow,
    ExportConfiguration,
    ExportType,
    MonthlyBudgetAllocation,
    PurchaseEntry,
)
from budgetledger.domain.errors import ValidationError
from budgetledger.domain.jobs import (
    CancellationToken,
    ProgressCallback,
    check_cancelled,
    report_progress,
)
from budgetledger.domain.ledger import LedgerStore
from budgetledger.utils.amount_parser import format_amount
from budgetledger.utils.date_parser import month_index

logger = logging.getLogger(__name__)

ALLOCATIONS_SEPARATOR = "# Budget Allocations"

MAX_DECIMAL_PLACES = 6


class CSVExportService:
    """Service for writing ledger data in the import CSV formats."""

    def __init__(self, store: LedgerStore):
        """Initialize CSV export service.

        Args:
            store: Ledger store to read from
        """
        self.store = store

    def export(
        self,
        config: ExportConfiguration,
        now: Optional[datetime] = None,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Render the configured slice of the ledger as CSV text.

        Args:
            config: Export options
            now: Reference moment for resolving the period
            token: Cancellation token, checked before each row
            progress: Callback receiving ``(done, total)``

        Returns:
            CSV text

        Raises:
            ValidationError: If the options or a custom window are invalid
            OperationCancelledError: If the token is cancelled
        """
        now = now or self.store.now()
        self._validate(config, now)
        window = time_window.resolve(config.period, now)
        snapshot = self.store.snapshot()

        entries: list[PurchaseEntry] = []
        allocations: list[MonthlyBudgetAllocation] = []
        if config.export_type in (ExportType.ENTRIES, ExportType.COMBINED):
            entries = self._select_entries(snapshot.entries, window, config)
        if config.export_type in (ExportType.ALLOCATIONS, ExportType.COMBINED):
            allocations = self._select_allocations(snapshot.allocations, window, config)

        total = len(entries) + len(allocations)
        done = 0
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")

        if config.export_type in (ExportType.ENTRIES, ExportType.COMBINED):
            if config.include_headers:
                writer.writerow(PURCHASE_HEADER)
            for entry in entries:
                check_cancelled(token)
                writer.writerow(self._entry_row(entry, config))
                done += 1
                report_progress(progress, done, total)

        if config.export_type == ExportType.COMBINED:
            buffer.write(ALLOCATIONS_SEPARATOR + "\n")

        if config.export_type in (ExportType.ALLOCATIONS, ExportType.COMBINED):
            if config.include_headers:
                writer.writerow(BUDGET_HEADER)
            for allocation in allocations:
                check_cancelled(token)
                writer.writerow(self._allocation_row(allocation, config))
                done += 1
                report_progress(progress, done, total)

        logger.info(
            "Exported %d entries and %d allocations for %s",
            len(entries),
            len(allocations),
            time_window.describe(config.period),
        )
        return buffer.getvalue()

    def export_to_file(
        self,
        path: Union[str, Path],
        config: ExportConfiguration,
        now: Optional[datetime] = None,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """Export to a file.

        Args:
            path: Target file, or a directory to place a default-named file in

        Returns:
            Path of the written file

        Raises:
            ValidationError: If the text cannot be encoded in the chosen encoding
        """
        now = now or self.store.now()
        text = self.export(config, now, token, progress)
        target = Path(path)
        if target.is_dir():
            target = target / self.default_filename(config, now)
        try:
            data = text.encode(config.encoding)
        except UnicodeEncodeError as e:
            raise ValidationError(f"Cannot encode export as {config.encoding}: {e}") from e
        target.write_bytes(data)
        return target

    @staticmethod
    def default_filename(config: ExportConfiguration, now: datetime) -> str:
        period = time_window.describe(config.period)
        return f"budget_export_{period}_{now:%Y-%m-%d}.csv"

    @staticmethod
    def _validate(config: ExportConfiguration, now: datetime) -> None:
        if not 0 <= config.decimal_places <= MAX_DECIMAL_PLACES:
            raise ValidationError(
                f"Decimal places must be between 0 and {MAX_DECIMAL_PLACES}"
            )
        try:
            "".encode(config.encoding)
        except LookupError:
            raise ValidationError(f"Unknown encoding '{config.encoding}'")
        if isinstance(config.period, DateWindow):
            time_window.validate_window(config.period, now)

    @staticmethod
    def _wanted(category: str, config: ExportConfiguration) -> bool:
        if config.categories is None:
            return True
        return category_key(category) in {category_key(c) for c in config.categories}

    def _select_entries(
        self, entries, window: DateWindow, config: ExportConfiguration
    ) -> list[PurchaseEntry]:
        selected = [
            e
            for e in entries
            if time_window.contains(window, e.date) and self._wanted(e.category, config)
        ]
        return sorted(selected, key=lambda e: (e.date, e.id))

    def _select_allocations(
        self, allocations, window: DateWindow, config: ExportConfiguration
    ) -> list[MonthlyBudgetAllocation]:
        low = month_index(window.first_day.year, window.first_day.month)
        high = month_index(window.last_day.year, window.last_day.month)
        selected = [
            a
            for a in allocations
            if low <= a.month_index <= high and self._wanted(a.category, config)
        ]
        return sorted(selected, key=lambda a: (a.year, a.month, category_key(a.category)))

    @staticmethod
    def _format(amount, config: ExportConfiguration) -> str:
        symbol = config.currency_symbol if config.include_currency_symbol else ""
        return format_amount(amount, config.decimal_places, symbol)

    def _entry_row(self, entry: PurchaseEntry, config: ExportConfiguration) -> list[str]:
        return [
            entry.date.strftime(config.date_format),
            self._format(entry.amount, config),
            entry.category,
            entry.note or "",
        ]

    def _allocation_row(
        self, allocation: MonthlyBudgetAllocation, config: ExportConfiguration
    ) -> list[str]:
        return [
            str(allocation.year),
            str(allocation.month),
            allocation.category,
            self._format(allocation.amount, config),
            "true" if allocation.is_historical else "false",
        ]
