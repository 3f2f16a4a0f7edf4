"""Transaction data models for feed and manual records."""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from strato_ledger.utils.date_utils import safe_parse_date
from strato_ledger.utils.decimal_utils import safe_decimal

# Category assigned when a feed row has no fourth column
DEFAULT_CATEGORY = "Geral"

# Pseudo-source for hand-entered transactions (never fetched)
MANUAL_SOURCE = "manual"


class TransactionType(Enum):
    """Type of transaction (income or expense)."""

    INCOME = "income"  # Money in (amount >= 0)
    EXPENSE = "expense"  # Money out (amount < 0)

    @classmethod
    def for_amount(cls, amount: Decimal) -> "TransactionType":
        """Type implied by the sign of an amount."""
        return cls.INCOME if amount >= 0 else cls.EXPENSE


@dataclass
class RawTransaction:
    """Parsed feed row before normalization.

    This intermediate representation captures what the parser extracts
    from a feed line, ready for normalization into a Transaction.
    """

    date: str
    description: str
    amount: Decimal
    category: str = DEFAULT_CATEGORY
    line_number: int = 0
    raw_fields: list[str] = field(default_factory=list)


@dataclass
class Transaction:
    """Canonical transaction record shared by feeds and manual entries.

    Attributes:
        id: Stable identifier (content hash for feed rows, caller-chosen for manual).
        date: Calendar date as DD/MM/YYYY text.
        description: Merchant/payee description.
        amount: Signed amount (positive=income, negative=expense).
        type: Income or expense, always consistent with the sign of amount.
        source: Source key of the originating feed, or "manual".
        category: Free-text category label.
        manual_source_label: Free-text origin for manual entries (e.g. "Pix Itau").
    """

    id: str
    date: str
    description: str
    amount: Decimal
    type: TransactionType
    source: str
    category: str = DEFAULT_CATEGORY
    manual_source_label: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate that type matches the amount sign."""
        expected = TransactionType.for_amount(self.amount)
        if self.type is not expected:
            raise ValueError(
                f"Transaction type {self.type.value} does not match amount {self.amount}"
            )

    @classmethod
    def create(
        cls,
        id: str,
        date: str,
        description: str,
        amount: Decimal,
        source: str,
        category: str = DEFAULT_CATEGORY,
        manual_source_label: Optional[str] = None,
    ) -> "Transaction":
        """Build a transaction whose type is derived from the amount sign."""
        return cls(
            id=id,
            date=date,
            description=description,
            amount=amount,
            type=TransactionType.for_amount(amount),
            source=source,
            category=category or DEFAULT_CATEGORY,
            manual_source_label=manual_source_label,
        )

    @property
    def is_income(self) -> bool:
        return self.type is TransactionType.INCOME

    @property
    def is_expense(self) -> bool:
        return self.type is TransactionType.EXPENSE

    @property
    def is_manual(self) -> bool:
        return self.source == MANUAL_SOURCE

    @property
    def calendar_date(self) -> Optional[date]:
        """Parsed calendar date, or None if the stored text is not a date."""
        return safe_parse_date(self.date)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict.

        Amounts are written as strings to keep Decimal precision.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "date": self.date,
            "description": self.description,
            "amount": str(self.amount),
            "category": self.category,
            "type": self.type.value,
            "source": self.source,
        }
        if self.manual_source_label is not None:
            data["manualSourceLabel"] = self.manual_source_label
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transaction":
        """Create a Transaction from persisted state.

        Accepts numeric or string amounts and both camelCase and snake_case
        spellings of the manual label.

        Raises:
            KeyError: If id or date is missing.
            ValueError: If the amount is not numeric.
        """
        amount = safe_decimal(data.get("amount"), default=Decimal("NaN"))
        if not amount.is_finite():
            raise ValueError(f"Invalid amount in stored transaction: {data.get('amount')!r}")

        label = data.get("manualSourceLabel", data.get("manual_source_label"))

        return cls.create(
            id=str(data["id"]),
            date=str(data["date"]),
            description=str(data.get("description", "")),
            amount=amount,
            source=str(data.get("source", MANUAL_SOURCE)),
            category=str(data.get("category") or DEFAULT_CATEGORY),
            manual_source_label=str(label) if label is not None else None,
        )

    def __repr__(self) -> str:
        return (
            f"Transaction(date={self.date}, "
            f"description={self.description[:30]!r}, "
            f"amount={self.amount}, "
            f"source={self.source})"
        )


def content_fingerprint(source: str, date_text: str, description: str, amount: Decimal) -> str:
    """Generate a stable fingerprint for a feed row.

    The fingerprint depends only on row content, so re-fetching a feed with
    rows inserted or reordered keeps the identity of unchanged rows.

    Note:
        Rows with identical source, date, description and amount share a
        fingerprint. Callers disambiguate repeats with an occurrence suffix.

    Returns:
        A 16-character hex string.
    """
    desc_normalized = re.sub(r"\s+", " ", description.lower().strip())
    amount_normalized = amount.quantize(Decimal("0.01"))
    if amount_normalized == 0:
        amount_normalized = Decimal("0.00")  # Normalize -0 to 0

    data = f"{source}|{date_text.strip()}|{desc_normalized}|{amount_normalized}"
    return hashlib.sha256(data.encode()).hexdigest()[:16]
