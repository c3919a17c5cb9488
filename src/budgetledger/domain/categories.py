"""Category naming rules.

Categories are free-form names. Two names denote the same category when
their keys match: surrounding and repeated inner whitespace is ignored and
comparison is case-insensitive. The spelling first stored in the ledger is
kept as the canonical display name.
"""

from typing import Iterable, Optional

from budgetledger.domain.errors import ValidationError


def normalize_category(name: Optional[str]) -> str:
    """Return ``name`` with whitespace collapsed.

    Raises:
        ValidationError: If the name is empty after trimming
    """
    if name is None:
        raise ValidationError("Category name cannot be empty")
    normalized = " ".join(name.split())
    if not normalized:
        raise ValidationError("Category name cannot be empty")
    return normalized


def category_key(name: str) -> str:
    """Return the comparison key for a category name."""
    return " ".join(name.split()).casefold()


def same_category(left: str, right: str) -> bool:
    return category_key(left) == category_key(right)


def build_category_index(names: Iterable[str]) -> dict[str, str]:
    """Map category keys to the first spelling seen for each."""
    index: dict[str, str] = {}
    for name in names:
        index.setdefault(category_key(name), name)
    return index


def canonical_category(name: str, index: dict[str, str]) -> str:
    """Return the stored spelling for ``name``, or its normalized form."""
    normalized = normalize_category(name)
    return index.get(category_key(normalized), normalized)
