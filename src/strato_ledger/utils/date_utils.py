"""Date parsing, period keys and window helpers."""

import re
from datetime import date, datetime
from typing import Optional

# Feed and manual-entry dates are day-first: DD/MM/YYYY.
#
# IMPORTANT - Date Format:
# Slash-separated dates are always interpreted as Brazilian format (DD/MM/YYYY).
# ISO format (YYYY-MM-DD) is accepted for window bounds typed on the command line.
#
DATE_PATTERNS = [
    (r"^(\d{1,2})/(\d{1,2})/(\d{4})$", "%d/%m/%Y"),
    (r"^(\d{1,2})/(\d{1,2})/(\d{2})$", "%d/%m/%y"),
    (r"^(\d{4})-(\d{1,2})-(\d{1,2})$", "%Y-%m-%d"),
]

COMPILED_PATTERNS = [(re.compile(pattern), fmt) for pattern, fmt in DATE_PATTERNS]

# Period keys are fixed-width so lexicographic order is chronological order
PERIOD_KEY_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

DISPLAY_FORMAT = "%d/%m/%Y"


def parse_date(raw_date: str) -> date:
    """Parse a raw date string into a date object.

    Handles:
    - Brazilian: 15/01/2024, 5/1/2024, 15/01/24
    - ISO: 2024-01-15

    Time-of-day suffixes ("15/01/2024 10:32") are ignored.

    Args:
        raw_date: The raw date string to parse.

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the date cannot be parsed.
    """
    if not raw_date:
        raise ValueError("Empty date string")

    date_str = raw_date.strip().split(" ")[0].split("T")[0]
    if not date_str:
        raise ValueError("Empty date string after stripping whitespace")

    for pattern, fmt in COMPILED_PATTERNS:
        if pattern.match(date_str):
            try:
                return datetime.strptime(date_str, fmt).date()
            except ValueError:
                # Pattern matched but values are out of range
                continue

    raise ValueError(f"Cannot parse date: '{raw_date}'")


def safe_parse_date(raw_date: str | None, default: date | None = None) -> date | None:
    """Safely parse a date string, returning default on failure.

    Args:
        raw_date: The raw date string to parse.
        default: Default value if parsing fails.

    Returns:
        Parsed date or default.
    """
    if not raw_date:
        return default

    try:
        return parse_date(raw_date)
    except ValueError:
        return default


def format_date(d: date, fmt: str = DISPLAY_FORMAT) -> str:
    """Format a date object as a string (DD/MM/YYYY by default)."""
    return d.strftime(fmt)


def split_date_text(raw_date: str) -> Optional[tuple[str, str, str]]:
    """Split a DD/MM/YYYY string into its raw components.

    Args:
        raw_date: Date text as stored on a transaction.

    Returns:
        (day, month, year) strings, or None if fewer than three parts.
    """
    parts = [p.strip() for p in (raw_date or "").split("/")]
    if len(parts) < 3:
        return None
    return parts[0], parts[1], parts[2]


def make_period_key(year: int, month: int) -> str:
    """Build a fixed-width YYYY-MM period key."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range: {month}")
    return f"{year:04d}-{month:02d}"


def period_key_for_date(d: date) -> str:
    """Period key owning a calendar date."""
    return make_period_key(d.year, d.month)


def is_valid_period_key(key: str) -> bool:
    """Check that a string is a YYYY-MM period key."""
    return bool(PERIOD_KEY_PATTERN.match(key or ""))


def current_period_key(today: Optional[date] = None) -> str:
    """Period key for the current month."""
    return period_key_for_date(today or date.today())


def months_of_year(year: int) -> list[str]:
    """All twelve period keys of a year, in order."""
    return [make_period_key(year, month) for month in range(1, 13)]


def month_bucket(d: date) -> tuple[str, str]:
    """Monthly evolution bucket for a date.

    Returns:
        Tuple of (display label "MM/YYYY", sort key "YYYY-MM").
    """
    return f"{d.month:02d}/{d.year:04d}", period_key_for_date(d)


def is_date_in_range(
    d: date,
    start_date: date | None = None,
    end_date: date | None = None,
) -> bool:
    """Check if a date is within a range.

    Args:
        d: Date to check.
        start_date: Start of range (inclusive). None means no lower bound.
        end_date: End of range (inclusive). None means no upper bound.

    Returns:
        True if date is within range.
    """
    if start_date is not None and d < start_date:
        return False
    if end_date is not None and d > end_date:
        return False
    return True
