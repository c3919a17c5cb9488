"""Shared domain error messages and error types."""

from typing import Iterable, Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class InvalidFormatError(DomainError):
    """CSV payload does not match the expected schema."""


class EmptyFileError(DomainError):
    """CSV payload has no usable data rows."""

    def __init__(self, message: str, warnings: Optional[list[str]] = None):
        super().__init__(message)
        self.warnings = list(warnings or [])


class RowParseError(DomainError):
    """A single CSV row could not be parsed.

    Raised inside the import pipeline and turned into a warning; it never
    aborts a batch.
    """

    def __init__(self, row_number: int, message: str):
        super().__init__(f"Row {row_number}: {message}")
        self.row_number = row_number


class MissingRequiredMappingError(DomainError):
    """Commit attempted while imported categories are still unmapped."""

    def __init__(self, missing: Iterable[str]):
        self.missing = sorted(missing)
        super().__init__(missing_mapping(self.missing))


class LedgerNotReadyError(DomainError):
    """Aggregate requested before the monthly rollover has completed."""


class PersistenceError(RuntimeError):
    """The storage collaborator failed to load or write data."""


class OperationCancelledError(Exception):
    """A long-running operation was cancelled through its token.

    ``committed`` counts rows written before cancellation was observed; those
    rows stay committed.
    """

    def __init__(self, message: str = "Operation cancelled", committed: int = 0):
        super().__init__(message)
        self.committed = committed


def entry_not_found(entry_id: str) -> str:
    """Return message for missing purchase entry."""
    return f"Purchase entry '{entry_id}' not found"


def allocation_not_found(category: str, month: int, year: int) -> str:
    """Return message for missing allocation."""
    return f"No budget for '{category}' in {year}-{month:02d}"


def missing_mapping(categories: list[str]) -> str:
    """Return message for unmapped imported categories."""
    count = len(categories)
    return (
        f"{count} imported categor{'ies' if count != 1 else 'y'} "
        f"need a mapping before commit: {', '.join(categories)}"
    )


def invalid_header(expected: str, actual: str) -> str:
    """Return message for a CSV header mismatch."""
    return f"Expected header '{expected}', found '{actual}'"


def ledger_not_ready() -> str:
    """Return message for aggregates requested before activation."""
    return "Ledger has not been activated; run the monthly rollover first"
