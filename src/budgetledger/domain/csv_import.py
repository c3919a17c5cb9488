"""CSV import domain service."""

import csv
import io
import logging
from decimal import Decimal
from pathlib import Path
from typing import Callable, Optional, Union

from budgetledger.domain.categories import (
    build_category_index,
    category_key,
    normalize_category,
)
from budgetledger.domain.entities import (
    BudgetImportRow,
    CategoryMapping,
    CommitFailure,
    CommitReport,
    ImportResult,
    ImportRow,
    ImportSchema,
    MonthlyBudgetAllocation,
    PurchaseEntry,
    PurchaseImportRow,
    new_id,
)
from budgetledger.domain.errors import (
    DomainError,
    EmptyFileError,
    InvalidFormatError,
    MissingRequiredMappingError,
    PersistenceError,
    RowParseError,
    ValidationError,
    invalid_header,
)
from budgetledger.domain.jobs import (
    CancellationToken,
    ProgressCallback,
    check_cancelled,
    report_progress,
)
from budgetledger.domain.ledger import LedgerStore
from budgetledger.utils.amount_parser import parse_amount, to_money
from budgetledger.utils.date_parser import parse_csv_date

logger = logging.getLogger(__name__)

BUDGET_HEADER = ("Year", "Month", "Category", "Amount", "IsHistorical")
PURCHASE_HEADER = ("Date", "Amount", "Category", "Note")

HEADERS = {
    ImportSchema.BUDGETS: BUDGET_HEADER,
    ImportSchema.PURCHASES: PURCHASE_HEADER,
}

MAX_FILE_BYTES = 10 * 1024 * 1024
MAX_LINES = 10_000

_TRUE_VALUES = {"true", "1"}
_FALSE_VALUES = {"false", "0"}

MappingResolver = Callable[[ImportResult], CategoryMapping]


def parse_bool(value: str) -> bool:
    """Parse ``true``/``false``/``1``/``0``, case-insensitive."""
    text = value.strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean '{value}', expected true or false")


class CSVImportService:
    """Service for importing budget and purchase CSV files."""

    def __init__(self, store: LedgerStore):
        """Initialize CSV import service.

        Args:
            store: Ledger store that receives committed rows
        """
        self.store = store

    def read_file(self, path: Union[str, Path]) -> str:
        """Read a CSV file as text.

        Args:
            path: Path to CSV file

        Returns:
            File contents with any byte order mark removed

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValidationError: If the file exceeds the size limit
        """
        csv_path = Path(path)
        if not csv_path.exists():
            raise FileNotFoundError(f"CSV file not found: {csv_path}")
        size = csv_path.stat().st_size
        if size > MAX_FILE_BYTES:
            raise ValidationError(
                f"CSV file is too large ({size} bytes, limit {MAX_FILE_BYTES})"
            )
        return csv_path.read_text(encoding="utf-8-sig")

    # Parsing
    def parse(
        self,
        text: str,
        schema: ImportSchema,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """Parse a CSV payload of the given schema.

        Malformed rows are skipped and reported as warnings naming the
        1-based line each record starts on.

        Raises:
            InvalidFormatError: If the header doesn't match the schema
            EmptyFileError: If there are no data rows, or none of them parse
            ValidationError: If the payload exceeds the line limit
            OperationCancelledError: If the token is cancelled
        """
        schema = ImportSchema(schema)
        records = self._data_records(text, HEADERS[schema])
        if schema == ImportSchema.BUDGETS:
            parse_row = self._parse_budget_row
        else:
            parse_row = self._parse_purchase_row
        expected_columns = len(HEADERS[schema])

        rows: list[ImportRow] = []
        warnings: list[str] = []
        for position, (row_number, fields) in enumerate(records, start=1):
            check_cancelled(token)
            try:
                if len(fields) != expected_columns:
                    raise RowParseError(
                        row_number,
                        f"expected {expected_columns} columns, found {len(fields)}",
                    )
                rows.append(parse_row(row_number, fields))
            except RowParseError as e:
                warnings.append(str(e))
            report_progress(progress, position, len(records))

        for warning in warnings:
            logger.warning("Skipped CSV row: %s", warning)

        if not rows:
            raise EmptyFileError("No valid rows found in CSV file", warnings)

        return self._build_result(schema, rows, warnings)

    def parse_budgets(
        self,
        text: str,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """Parse a ``Year,Month,Category,Amount,IsHistorical`` payload."""
        return self.parse(text, ImportSchema.BUDGETS, token, progress)

    def parse_purchases(
        self,
        text: str,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """Parse a ``Date,Amount,Category,Note`` payload."""
        return self.parse(text, ImportSchema.PURCHASES, token, progress)

    def _data_records(
        self, text: str, header: tuple[str, ...]
    ) -> list[tuple[int, list[str]]]:
        """Split a payload into ``(first line number, fields)`` data records.

        Quoted fields may span lines, so a record's number is the file line
        it starts on. Blank records are dropped.
        """
        text = text.lstrip("\ufeff")
        if not text.strip():
            raise EmptyFileError("CSV file is empty")
        line_count = len(text.splitlines())
        if line_count > MAX_LINES:
            raise ValidationError(f"CSV file has too many lines ({line_count}, limit {MAX_LINES})")

        reader = csv.reader(io.StringIO(text, newline=""))
        records: list[tuple[int, list[str]]] = []
        start = 1
        try:
            for fields in reader:
                if any(field.strip() for field in fields):
                    records.append((start, fields))
                start = reader.line_num + 1
        except csv.Error as e:
            raise InvalidFormatError(f"Malformed CSV at line {reader.line_num}: {e}") from e
        if not records:
            raise EmptyFileError("CSV file is empty")

        header_fields = records[0][1]
        if tuple(field.strip() for field in header_fields) != header:
            raise InvalidFormatError(
                invalid_header(",".join(header), ",".join(header_fields).strip())
            )

        data = records[1:]
        if not data:
            raise EmptyFileError("CSV file has no data rows")
        return data

    def _parse_budget_row(self, row_number: int, fields: list[str]) -> BudgetImportRow:
        year_str, month_str, category, amount_str, historical_str = (f.strip() for f in fields)

        try:
            year = int(year_str)
        except ValueError:
            raise RowParseError(row_number, f"invalid year '{year_str}'")
        if not 1900 <= year <= 9999:
            raise RowParseError(row_number, f"year {year} is out of range")

        try:
            month = int(month_str)
        except ValueError:
            raise RowParseError(row_number, f"invalid month '{month_str}'")
        if not 1 <= month <= 12:
            raise RowParseError(row_number, f"month {month} must be between 1 and 12")

        amount = self._parse_row_amount(row_number, amount_str)
        if amount < 0:
            raise RowParseError(row_number, "budget amount cannot be negative")

        try:
            is_historical = parse_bool(historical_str)
        except ValueError as e:
            raise RowParseError(row_number, str(e))

        return BudgetImportRow(
            row_number=row_number,
            year=year,
            month=month,
            category=self._parse_row_category(row_number, category),
            amount=amount,
            is_historical=is_historical,
        )

    def _parse_purchase_row(self, row_number: int, fields: list[str]) -> PurchaseImportRow:
        date_str, amount_str, category, note = (f.strip() for f in fields)

        try:
            entry_date = parse_csv_date(date_str)
        except ValueError as e:
            raise RowParseError(row_number, str(e))

        amount = self._parse_row_amount(row_number, amount_str)
        if amount <= 0:
            raise RowParseError(row_number, "purchase amount must be greater than 0")

        return PurchaseImportRow(
            row_number=row_number,
            date=entry_date,
            amount=amount,
            category=self._parse_row_category(row_number, category),
            note=note or None,
        )

    @staticmethod
    def _parse_row_amount(row_number: int, amount_str: str) -> Decimal:
        try:
            return to_money(parse_amount(amount_str))
        except ValueError as e:
            raise RowParseError(row_number, f"invalid amount: {e}")

    @staticmethod
    def _parse_row_category(row_number: int, category: str) -> str:
        try:
            return normalize_category(category)
        except ValidationError:
            raise RowParseError(row_number, "category is empty")

    def _build_result(
        self, schema: ImportSchema, rows: list[ImportRow], warnings: list[str]
    ) -> ImportResult:
        source = build_category_index(row.category for row in rows)
        known = build_category_index(self.store.categories())

        existing = frozenset(name for key, name in source.items() if key in known)
        new = frozenset(name for key, name in source.items() if key not in known)

        return ImportResult(
            schema=schema,
            rows=tuple(rows),
            source_categories=frozenset(source.values()),
            existing_categories=existing,
            new_categories=new,
            total_amount=sum((row.amount for row in rows), Decimal("0")),
            warnings=tuple(warnings),
        )

    # Commit
    def commit(
        self,
        result: ImportResult,
        mapping: Optional[CategoryMapping] = None,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> CommitReport:
        """Write parsed rows into the ledger.

        Budget rows are upserted, so a repeated key within the file keeps the
        last value. Purchase rows become new entries. Rows that fail to
        persist are reported in the result instead of aborting the batch.

        Rows committed before a cancellation is noticed stay committed.

        Args:
            result: Parsed import
            mapping: Resolution for new categories; optional when there are none
            token: Cancellation token, checked before each row
            progress: Callback receiving ``(done, total)``

        Returns:
            Commit report

        Raises:
            MissingRequiredMappingError: If a new category has no mapping
            OperationCancelledError: If the token is cancelled
        """
        mapping = mapping or CategoryMapping()
        targets = self._resolve_targets(result, mapping)
        check_cancelled(token)

        committed = 0
        failures: list[CommitFailure] = []
        created: list[str] = []

        with self.store.exclusive():
            known = build_category_index(self.store.categories())
            created = sorted(
                {
                    target
                    for target in targets.values()
                    if category_key(target) not in known
                },
                key=category_key,
            )
            self._create_starting_budgets(created, mapping, targets, failures)

            total = len(result.rows)
            for position, row in enumerate(result.rows, start=1):
                check_cancelled(token, committed)
                category = targets[category_key(row.category)]
                try:
                    if isinstance(row, BudgetImportRow):
                        self.store.upsert_allocation(
                            MonthlyBudgetAllocation(
                                id=new_id(),
                                category=category,
                                amount=row.amount,
                                month=row.month,
                                year=row.year,
                                is_historical=row.is_historical,
                            )
                        )
                    else:
                        self.store.add_entry(
                            PurchaseEntry(
                                id=new_id(),
                                amount=row.amount,
                                category=category,
                                date=row.date,
                                note=row.note,
                            )
                        )
                    committed += 1
                except (PersistenceError, DomainError) as e:
                    logger.error("Row %d could not be committed: %s", row.row_number, e)
                    failures.append(CommitFailure(row.row_number, str(e)))
                report_progress(progress, position, total)

        logger.info(
            "Committed %d of %d %s rows (%d failed)",
            committed,
            len(result.rows),
            result.schema.value,
            len(failures),
        )
        return CommitReport(
            imported=committed,
            failures=tuple(failures),
            created_categories=tuple(created),
        )

    def import_text(
        self,
        text: str,
        schema: ImportSchema,
        resolve_mapping: Optional[MappingResolver] = None,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> tuple[ImportResult, CommitReport]:
        """Parse and commit a payload in one call.

        Args:
            text: CSV payload
            schema: Which CSV schema the payload uses
            resolve_mapping: Called with the parse result when it contains
                new categories; must return a complete mapping
            token: Cancellation token
            progress: Commit progress callback

        Returns:
            Tuple of (parse result, commit report)

        Raises:
            MissingRequiredMappingError: If new categories exist and no
                resolver was given, or the resolver left some unmapped
        """
        result = self.parse(text, schema, token)
        mapping = None
        if result.needs_mapping:
            if resolve_mapping is None:
                raise MissingRequiredMappingError(result.new_categories)
            mapping = resolve_mapping(result)
        return result, self.commit(result, mapping, token, progress)

    def _resolve_targets(self, result: ImportResult, mapping: CategoryMapping) -> dict[str, str]:
        """Map each source category key to the category name to store."""
        requested = {
            category_key(source): target for source, target in mapping.targets.items()
        }
        missing = [
            name
            for name in result.new_categories
            if not (requested.get(category_key(name)) or "").strip()
        ]
        if missing:
            raise MissingRequiredMappingError(missing)

        targets: dict[str, str] = {}
        for name in result.source_categories:
            key = category_key(name)
            targets[key] = normalize_category(requested.get(key, name))
        return targets

    def _create_starting_budgets(
        self,
        created: list[str],
        mapping: CategoryMapping,
        targets: dict[str, str],
        failures: list[CommitFailure],
    ) -> None:
        budgets = {
            category_key(targets.get(category_key(source), source)): amount
            for source, amount in mapping.budgets.items()
        }
        now = self.store.now()
        for category in created:
            amount = budgets.get(category_key(category))
            if amount is None:
                continue
            try:
                self.store.upsert_allocation(
                    MonthlyBudgetAllocation(
                        id=new_id(),
                        category=category,
                        amount=amount,
                        month=now.month,
                        year=now.year,
                    )
                )
            except (PersistenceError, DomainError) as e:
                logger.error("Starting budget for '%s' failed: %s", category, e)
                failures.append(CommitFailure(0, f"Starting budget for '{category}': {e}"))
