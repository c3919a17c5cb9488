"""Amount parsing and formatting for CSV files and the command line."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re

CENT = Decimal("0.01")

# Symbols written by exports and commonly found in hand-made files
_IGNORED_CHARACTERS = re.compile(r"[$€£¥,\s]")


def parse_amount(amount_str: str) -> Decimal:
    """Parse a money amount into a Decimal.

    Currency symbols, thousands separators and inner spaces are ignored, so
    every string produced by :func:`format_amount` parses back. Accepted
    forms include ``"12.50"``, ``"$1,234.56"``, ``"-£3.20"`` and the
    accounting notation ``"(50.00)"`` for negatives.

    Args:
        amount_str: Text to parse

    Returns:
        Decimal amount, not yet rounded

    Raises:
        ValueError: If the text is empty, not a number, or not finite
    """
    text = (amount_str or "").strip()
    if not text:
        raise ValueError("Empty amount string")

    negate = text.startswith("(") and text.endswith(")")
    if negate:
        text = text[1:-1]
    digits = _IGNORED_CHARACTERS.sub("", text)

    try:
        amount = Decimal(digits)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str.strip()}'") from e
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str.strip()}'")
    return -amount if negate else amount


def to_money(amount: Decimal) -> Decimal:
    """Round an amount to cents, half up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(
    amount: Decimal, decimal_places: int = 2, currency_symbol: str = ""
) -> str:
    """Format an amount with a fixed number of decimal places.

    The output is always accepted by :func:`parse_amount`.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    rounded = Decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)
    text = f"{abs(rounded):f}"
    sign = "-" if rounded < 0 else ""
    return f"{sign}{currency_symbol}{text}"
