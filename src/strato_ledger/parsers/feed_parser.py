"""Delimited-text parser for wallet and card feed exports."""

from dataclasses import dataclass
from typing import Optional

from strato_ledger.models.transaction import DEFAULT_CATEGORY, RawTransaction
from strato_ledger.parsers.base import BaseParser, ParseError
from strato_ledger.utils.decimal_utils import parse_amount
from strato_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Maximum feed size to prevent memory exhaustion (20 MB)
MAX_FEED_SIZE = 20 * 1024 * 1024

# Minimum fields per row: date, amount, description
MIN_FIELDS = 3


@dataclass
class ColumnMapping:
    """Positional mapping of feed columns to transaction fields."""

    date_col: int = 0
    amount_col: int = 1
    description_col: int = 2
    category_col: int = 3


@dataclass
class FeedFormat:
    """Detected feed format information."""

    delimiter: str
    has_header: bool
    column_mapping: ColumnMapping


class FeedParser(BaseParser):
    """Parser for the fixed-layout exports published by each source.

    Every feed shares one layout: date; amount; description; [category].
    """

    def __init__(self, column_mapping: Optional[ColumnMapping] = None):
        """Initialize feed parser.

        Args:
            column_mapping: Column positions (defaults to the shared layout).
        """
        self.column_mapping = column_mapping or ColumnMapping()

    def can_parse(self, text: str) -> bool:
        """Check if the text has at least one line to parse."""
        return bool(self._non_blank_lines(text))

    def parse(self, text: str, source: str) -> list[RawTransaction]:
        """Parse feed text and return raw transactions.

        Row-level failures (unparseable amount, empty date or description,
        too few fields) are dropped.

        Args:
            text: Raw feed text.
            source: Source key (for logging).

        Returns:
            List of RawTransaction objects in file order.

        Raises:
            ParseError: If the text exceeds the size limit.
        """
        if text and len(text) > MAX_FEED_SIZE:
            raise ParseError(
                f"Feed too large ({len(text) / 1024 / 1024:.1f} MB). "
                f"Maximum allowed is {MAX_FEED_SIZE / 1024 / 1024:.0f} MB",
                source,
            )

        lines = self._non_blank_lines(text)
        if not lines:
            logger.info(f"Feed {source} is empty")
            return []

        fmt = self.detect_format(lines[0])
        start_idx = 1 if fmt.has_header else 0

        logger.debug(
            f"Parsing {source} feed (delimiter={fmt.delimiter!r}, header={fmt.has_header})"
        )

        transactions = []
        skipped_count = 0
        for line_number in range(start_idx, len(lines)):
            fields = self.split_fields(lines[line_number], fmt.delimiter)
            txn = self._parse_row(fields, fmt.column_mapping, line_number)
            if txn is None:
                skipped_count += 1
                continue
            transactions.append(txn)

        logger.debug(
            f"Parsed {len(transactions)} rows from {source} feed ({skipped_count} rows skipped)"
        )
        return transactions

    def detect_format(self, first_line: str) -> FeedFormat:
        """Detect delimiter and header presence from the first line.

        The delimiter is ";" if the first line contains one, else ",".
        The first line is a header when its second column is not an amount.

        Args:
            first_line: First non-blank line of the feed.

        Returns:
            Detected FeedFormat.
        """
        delimiter = ";" if ";" in first_line else ","
        fields = first_line.split(delimiter)
        second = fields[1] if len(fields) > 1 else None
        has_header = parse_amount(second) is None

        return FeedFormat(
            delimiter=delimiter,
            has_header=has_header,
            column_mapping=self.column_mapping,
        )

    @staticmethod
    def split_fields(line: str, delimiter: str) -> list[str]:
        """Split a line and strip one pair of surrounding quotes plus whitespace per field."""
        fields = []
        for part in line.split(delimiter):
            if part.startswith('"'):
                part = part[1:]
            if part.endswith('"'):
                part = part[:-1]
            fields.append(part.strip())
        return fields

    def _parse_row(
        self, fields: list[str], mapping: ColumnMapping, line_number: int
    ) -> Optional[RawTransaction]:
        """Parse a single split row into a RawTransaction.

        Args:
            fields: Row values.
            mapping: Column mapping.
            line_number: Zero-based index of the line among non-blank lines.

        Returns:
            RawTransaction or None if the row should be skipped.
        """
        if len(fields) < MIN_FIELDS:
            logger.debug(f"Skipping line {line_number}: only {len(fields)} fields")
            return None

        date_str = self._safe_get(fields, mapping.date_col, "")
        description = self._safe_get(fields, mapping.description_col, "")
        amount = parse_amount(self._safe_get(fields, mapping.amount_col, ""))

        if amount is None:
            logger.debug(f"Skipping line {line_number}: could not parse amount")
            return None
        if not date_str:
            logger.debug(f"Skipping line {line_number}: empty date field")
            return None
        if not description:
            logger.debug(f"Skipping line {line_number}: empty description")
            return None

        category = self._safe_get(fields, mapping.category_col, "") or DEFAULT_CATEGORY

        return RawTransaction(
            date=date_str,
            description=description,
            amount=amount,
            category=category,
            line_number=line_number,
            raw_fields=fields,
        )

    def _safe_get(self, row: list[str], idx: Optional[int], default: str) -> str:
        """Safely get value from row.

        Args:
            row: Split row.
            idx: Column index.
            default: Default value.

        Returns:
            Value at index or default.
        """
        if idx is None or idx < 0 or idx >= len(row):
            return default
        return row[idx].strip()
