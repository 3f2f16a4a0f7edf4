"""Decimal utilities for financial calculations.

All monetary calculations must use Decimal to avoid floating-point precision issues.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional


# Currency symbols to strip, multi-character symbols first
CURRENCY_SYMBOLS = ("R$", "$", "€", "£", "¥", "₹", "₽", "₩", "₿")

# Characters removed before parsing: quotes and any whitespace
_STRIP_CHARS = ('"', " ", "\t", "\u00a0")

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def parse_amount(raw_amount: Optional[str]) -> Optional[Decimal]:
    """Parse a locale-ambiguous amount string into a Decimal.

    Handles the formats exported by Brazilian wallet and card feeds:
    - Plain: 1234.56, -1234.56
    - Comma decimal: 50,00
    - Dot thousands with comma decimal: 1.234,56
    - With currency and quotes: "R$ 10"

    Disambiguation:
    - Both "." and "," present: every "." is a thousands separator and
      "," is the decimal separator.
    - Only "," present: "," is the decimal separator.
    - Otherwise the cleaned string is parsed as-is.

    Failure is a value, not an exception.

    Args:
        raw_amount: The raw amount string to parse.

    Returns:
        The signed amount, or None if the string is not numeric.
    """
    if raw_amount is None:
        return None

    amount_str = str(raw_amount)

    for symbol in CURRENCY_SYMBOLS:
        amount_str = amount_str.replace(symbol, "")
    for char in _STRIP_CHARS:
        amount_str = amount_str.replace(char, "")
    amount_str = amount_str.strip()

    if not amount_str:
        return None

    if "," in amount_str and "." in amount_str:
        # 1.234,56 -> 1234.56
        amount_str = amount_str.replace(".", "").replace(",", ".", 1)
    elif "," in amount_str:
        # 50,00 -> 50.00
        amount_str = amount_str.replace(",", ".", 1)

    try:
        amount = Decimal(amount_str)
    except (InvalidOperation, ValueError):
        return None

    # Decimal accepts "NaN" and "Infinity", which are not amounts
    if not amount.is_finite():
        return None

    # Amounts must fit the default context once rounded to cents
    try:
        amount.quantize(CENTS)
    except InvalidOperation:
        return None

    return amount


def format_currency(
    amount: Decimal,
    decimal_places: int = 2,
    symbol: str = "R$",
) -> str:
    """Format a Decimal amount for display in pt-BR style.

    Args:
        amount: The amount to format.
        decimal_places: Number of decimal places (default 2).
        symbol: Currency symbol prefix.

    Returns:
        Formatted string like "R$ 1.234,56" or "-R$ 10,00".
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "0"
    rounded = amount.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)

    # Format US-style first, then swap separators
    us_style = f"{abs(rounded):,.{decimal_places}f}"
    br_style = us_style.replace(",", "_").replace(".", ",").replace("_", ".")

    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol} {br_style}"


def safe_decimal(value: Optional[object], default: Decimal = ZERO) -> Decimal:
    """Safely convert a value to Decimal.

    Args:
        value: Value to convert (string, int, float, or None).
        default: Default value if conversion fails.

    Returns:
        Decimal value or default.
    """
    if value is None or isinstance(value, bool):
        return default

    try:
        if isinstance(value, Decimal):
            return value
        if isinstance(value, (int, str)):
            return Decimal(str(value))
        if isinstance(value, float):
            # Convert float to string first for precision
            return Decimal(str(value))
        return default
    except (InvalidOperation, ValueError):
        return default


def sum_amounts(amounts: list[Decimal]) -> Decimal:
    """Sum a list of Decimal amounts.

    Args:
        amounts: List of Decimal amounts.

    Returns:
        Sum as Decimal.
    """
    total = ZERO
    for amount in amounts:
        total += amount
    return total


def percent_share(part: Decimal, total: Decimal) -> int:
    """Whole-number percentage of part over total, rounded half up.

    A zero total yields 0 for every part.

    Args:
        part: Group value.
        total: Sum of all group values.

    Returns:
        Integer percentage.
    """
    if total == 0:
        return 0
    ratio = part / total * Decimal("100")
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
