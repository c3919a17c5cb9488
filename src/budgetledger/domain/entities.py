"""Domain model entities for budgetledger.

These are pure data classes representing business concepts, independent of
database schema. Services and the storage layer exchange these objects; the
command line only ever sees copies of them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, time, date
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
import uuid

UNCATEGORIZED = "Uncategorized"

DISTANT_PAST = datetime(1, 1, 1)


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class PurchaseEntry:
    """Purchase entry domain entity."""

    id: str
    amount: Decimal
    category: str
    date: datetime
    note: Optional[str] = None


@dataclass(frozen=True)
class MonthlyBudgetAllocation:
    """One category's planned spend for one calendar month."""

    id: str
    category: str
    amount: Decimal
    month: int
    year: int
    is_historical: bool = False

    @property
    def month_index(self) -> int:
        """Months since year zero, for ordering and span checks."""
        return self.year * 12 + (self.month - 1)


class TimePeriod(str, Enum):
    """Symbolic period selectors."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    THIS_WEEK = "this-week"
    LAST_WEEK = "last-week"
    THIS_MONTH = "this-month"
    LAST_MONTH = "last-month"
    THIS_QUARTER = "this-quarter"
    LAST_QUARTER = "last-quarter"
    THIS_YEAR = "this-year"
    LAST_YEAR = "last-year"
    LAST_7_DAYS = "last-7-days"
    LAST_30_DAYS = "last-30-days"
    LAST_90_DAYS = "last-90-days"
    LAST_12_MONTHS = "last-12-months"
    ALL_TIME = "all-time"


@dataclass(frozen=True)
class LastNDays:
    """Rolling window covering the last ``days`` calendar days, today included."""

    days: int


@dataclass(frozen=True)
class DateWindow:
    """Half-open datetime interval ``[start, end)``.

    Also used as the custom period selector, in which case the bounds are
    taken verbatim.
    """

    start: datetime
    end: datetime

    @classmethod
    def for_dates(cls, first_day: date, last_day: date) -> "DateWindow":
        """Build a window covering whole days ``first_day``..``last_day``."""
        return cls(
            start=datetime.combine(first_day, time.min),
            end=datetime.combine(last_day + timedelta(days=1), time.min),
        )

    @property
    def first_day(self) -> date:
        return self.start.date()

    @property
    def last_day(self) -> date:
        """Last calendar day touched by the window.

        An end at exactly midnight is exclusive, so the window stops on the
        previous day.
        """
        if self.end.time() == time.min and self.end > self.start:
            return self.end.date() - timedelta(days=1)
        return self.end.date()


Period = Union[TimePeriod, LastNDays, DateWindow]


@dataclass(frozen=True)
class BudgetImportRow:
    """Parsed row of a budget CSV file."""

    row_number: int
    year: int
    month: int
    category: str
    amount: Decimal
    is_historical: bool


@dataclass(frozen=True)
class PurchaseImportRow:
    """Parsed row of a purchase CSV file."""

    row_number: int
    date: datetime
    amount: Decimal
    category: str
    note: Optional[str]


ImportRow = Union[BudgetImportRow, PurchaseImportRow]


class ImportSchema(str, Enum):
    """CSV schemas understood by the import and export pipelines."""

    BUDGETS = "budgets"
    PURCHASES = "purchases"


@dataclass(frozen=True)
class ImportResult:
    """Outcome of parsing a CSV payload, before commit."""

    schema: ImportSchema
    rows: tuple[ImportRow, ...]
    source_categories: frozenset[str]
    existing_categories: frozenset[str]
    new_categories: frozenset[str]
    total_amount: Decimal
    warnings: tuple[str, ...] = ()

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def needs_mapping(self) -> bool:
        return bool(self.new_categories)


@dataclass
class CategoryMapping:
    """Resolution for imported category names.

    ``targets`` maps an imported name to an existing category, or to itself
    to create it as new. ``budgets`` optionally gives a starting monthly
    budget for categories created this way.
    """

    targets: dict[str, str] = field(default_factory=dict)
    budgets: dict[str, Decimal] = field(default_factory=dict)

    @classmethod
    def identity(cls, names) -> "CategoryMapping":
        return cls(targets={name: name for name in names})

    def map_to(self, source: str, target: str) -> "CategoryMapping":
        self.targets[source] = target
        return self

    def create(self, source: str, budget: Optional[Decimal] = None) -> "CategoryMapping":
        self.targets[source] = source
        if budget is not None:
            self.budgets[source] = budget
        return self


@dataclass(frozen=True)
class CommitFailure:
    """A row that parsed cleanly but could not be written."""

    row_number: int
    message: str


@dataclass(frozen=True)
class CommitReport:
    """Outcome of committing an import."""

    imported: int
    failures: tuple[CommitFailure, ...] = ()
    created_categories: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return not self.failures


class ExportType(str, Enum):
    """What an export contains."""

    ENTRIES = "entries"
    ALLOCATIONS = "allocations"
    COMBINED = "combined"


@dataclass(frozen=True)
class ExportConfiguration:
    """Options for a CSV export."""

    period: Period = TimePeriod.ALL_TIME
    export_type: ExportType = ExportType.ENTRIES
    include_currency_symbol: bool = False
    currency_symbol: str = "$"
    date_format: str = "%Y-%m-%d"
    decimal_places: int = 2
    include_headers: bool = True
    encoding: str = "utf-8"
    categories: Optional[frozenset[str]] = None


@dataclass(frozen=True)
class BudgetFigures:
    """Derived figures for the current month, pushed to change listeners."""

    month: int
    year: int
    monthly_budget: Decimal
    spent: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.monthly_budget - self.spent


@dataclass(frozen=True)
class RolloverReport:
    """What a monthly rollover changed."""

    month: int
    year: int
    copied: tuple[MonthlyBudgetAllocation, ...] = ()
    marked: tuple[MonthlyBudgetAllocation, ...] = ()


@dataclass(frozen=True)
class CategoryBreakdown:
    """Spent versus budgeted for one category."""

    category: str
    budgeted: Decimal
    spent: Decimal
    transaction_count: int = 0

    @property
    def remaining(self) -> Decimal:
        return self.budgeted - self.spent


@dataclass(frozen=True)
class BudgetOverview:
    """Current month overview."""

    month: int
    year: int
    total_budgeted: Decimal
    total_spent: Decimal
    transaction_count: int
    categories: tuple[CategoryBreakdown, ...]
    recent_entries: tuple[PurchaseEntry, ...]

    @property
    def remaining(self) -> Decimal:
        return self.total_budgeted - self.total_spent


@dataclass(frozen=True)
class HistoryReport:
    """Budgeted versus spent over a period, split by category."""

    label: str
    window: DateWindow
    total_budgeted: Decimal
    total_spent: Decimal
    categories: tuple[CategoryBreakdown, ...]

    @property
    def remaining(self) -> Decimal:
        return self.total_budgeted - self.total_spent


@dataclass(frozen=True)
class DataStatistics:
    """Whole-ledger counts and totals."""

    total_entries: int
    total_allocations: int
    total_spent: Decimal
    total_budgeted: Decimal
    categories_count: int

    @property
    def budget_utilization(self) -> Decimal:
        """Percent of the budget spent; zero when nothing is budgeted."""
        if self.total_budgeted <= 0:
            return Decimal("0")
        return self.total_spent / self.total_budgeted * 100

    @property
    def is_over_budget(self) -> bool:
        return self.total_spent > self.total_budgeted
