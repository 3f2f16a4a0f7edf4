"""Feed normalizer for converting raw feed rows to canonical transactions."""

import re
from collections import Counter
from typing import Optional

from strato_ledger.models.source import CREDIT_CARD_SOURCE
from strato_ledger.models.transaction import (
    RawTransaction,
    Transaction,
    content_fingerprint,
)
from strato_ledger.parsers.feed_parser import FeedParser
from strato_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Card statement rows recording the bill payment itself, not spending
SETTLEMENT_PATTERN = re.compile(r"pagamento recebido", re.IGNORECASE)


class Normalizer:
    """Normalizes raw feed rows into the canonical Transaction format.

    The normalizer:
    - Drops settlement rows from the credit-card feed
    - Inverts credit-card amounts (charges are exported positive)
    - Derives the transaction type from the final sign
    - Generates content-based ids, stable across re-fetches
    """

    def __init__(
        self,
        credit_source: str = CREDIT_CARD_SOURCE,
        parser: Optional[FeedParser] = None,
    ):
        """Initialize normalizer.

        Args:
            credit_source: Source key of the credit-card feed.
            parser: Feed parser used by normalize_feed().
        """
        self.credit_source = credit_source
        self.parser = parser or FeedParser()

    def normalize(
        self,
        raw_transactions: list[RawTransaction],
        source: str,
    ) -> list[Transaction]:
        """Normalize the raw rows of one feed.

        Ids are unique within one call: repeated identical rows get an
        occurrence suffix ("#2", "#3", ...) in file order.

        Args:
            raw_transactions: Raw rows from a parser, in file order.
            source: Source key the rows came from.

        Returns:
            List of Transaction objects in file order.
        """
        transactions = []
        seen: Counter[str] = Counter()

        for raw_txn in raw_transactions:
            txn = self._normalize_transaction(raw_txn, source, seen)
            if txn is not None:
                transactions.append(txn)

        logger.info(
            f"Normalized {len(transactions)}/{len(raw_transactions)} "
            f"rows for source {source}"
        )

        return transactions

    def normalize_feed(self, text: str, source: str) -> list[Transaction]:
        """Parse and normalize raw feed text in one step.

        Args:
            text: Raw delimited text.
            source: Source key.

        Returns:
            List of Transaction objects in file order.
        """
        return self.normalize(self.parser.parse(text, source), source)

    def is_settlement(self, raw: RawTransaction, source: str) -> bool:
        """Check whether a row is a card bill payment."""
        return source == self.credit_source and bool(
            SETTLEMENT_PATTERN.search(raw.description)
        )

    def _normalize_transaction(
        self,
        raw: RawTransaction,
        source: str,
        seen: Counter[str],
    ) -> Optional[Transaction]:
        """Normalize a single raw row.

        Args:
            raw: Raw row.
            source: Source key.
            seen: Occurrence counter shared across one normalize() call.

        Returns:
            Transaction or None if the row is dropped.
        """
        if self.is_settlement(raw, source):
            logger.debug(f"Dropping settlement row from {source}: {raw.description!r}")
            return None

        amount = raw.amount
        if source == self.credit_source:
            amount = -amount

        fingerprint = content_fingerprint(source, raw.date, raw.description, amount)
        seen[fingerprint] += 1
        occurrence = seen[fingerprint]
        transaction_id = f"{source}-{fingerprint}"
        if occurrence > 1:
            transaction_id = f"{transaction_id}#{occurrence}"

        return Transaction.create(
            id=transaction_id,
            date=raw.date,
            description=raw.description,
            amount=amount,
            source=source,
            category=raw.category,
        )


def normalize_feed(
    text: str,
    source: str,
    credit_source: str = CREDIT_CARD_SOURCE,
) -> list[Transaction]:
    """Convenience function to parse and normalize a feed.

    Args:
        text: Raw delimited text.
        source: Source key.
        credit_source: Source key of the credit-card feed.

    Returns:
        List of Transaction objects.
    """
    normalizer = Normalizer(credit_source=credit_source)
    return normalizer.normalize_feed(text, source)
