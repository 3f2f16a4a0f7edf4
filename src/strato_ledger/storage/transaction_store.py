"""Transaction store: fetched cache, manual entries and ignored ids."""

import threading
from dataclasses import dataclass
from datetime import date
from typing import Optional

from strato_ledger.models.transaction import Transaction
from strato_ledger.storage.state_repository import (
    PersistedState,
    StateRepository,
    TransactionMap,
)
from strato_ledger.utils.date_utils import parse_date, period_key_for_date, split_date_text
from strato_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Sort key for transactions whose date text cannot be parsed
_UNDATED = date.min


class ManualEntryError(Exception):
    """Raised or returned when a manual entry cannot be stored."""

    def __init__(self, message: str, transaction_id: Optional[str] = None):
        """Initialize ManualEntryError.

        Args:
            message: Error message.
            transaction_id: Id of the rejected transaction.
        """
        self.transaction_id = transaction_id
        super().__init__(message)


@dataclass
class UpsertResult:
    """Outcome of a manual add/edit.

    Attributes:
        success: Whether the transaction was stored.
        period: Owning period key (None on failure).
        replaced: True if an existing entry with the same id was replaced.
        error: Validation error when success is False.
    """

    success: bool
    period: Optional[str] = None
    replaced: bool = False
    error: Optional[ManualEntryError] = None

    def __post_init__(self) -> None:
        if self.success and self.period is None:
            raise ValueError("A successful upsert must name its period")
        if not self.success and self.error is None:
            raise ValueError("A failed upsert must carry an error")


def period_for_manual_date(date_text: str) -> str:
    """Derive the owning period key of a DD/MM/YYYY date.

    Args:
        date_text: Date text of a manual transaction.

    Returns:
        Period key "YYYY-MM".

    Raises:
        ManualEntryError: If the date has fewer than three parts or is not a
            real calendar date.
    """
    if split_date_text(date_text) is None:
        raise ManualEntryError(f"Date must be DD/MM/YYYY, got {date_text!r}")

    # Same parsing as Transaction.calendar_date, so two-digit years agree
    try:
        parsed = parse_date(date_text)
    except ValueError as e:
        raise ManualEntryError(f"Invalid date {date_text!r}: {e}") from e

    return period_key_for_date(parsed)


class TransactionStore:
    """Owns the three transaction partitions and the merged views.

    - fetched: period -> transactions, replaced wholesale by ingestion
    - manual: period -> transactions, mutated by upsert/delete
    - ignored: flat id set, toggle-only (underlying data is never deleted)

    Each mutation rewrites the affected entry through the repository.
    """

    def __init__(
        self,
        repository: Optional[StateRepository] = None,
        state: Optional[PersistedState] = None,
    ):
        """Initialize store.

        Args:
            repository: Repository to persist mutations to (None keeps state in memory).
            state: Initial state, typically from repository.load().
        """
        self.repository = repository
        state = state or PersistedState()
        self._fetched: TransactionMap = {p: list(t) for p, t in state.fetched.items()}
        self._manual: TransactionMap = {p: list(t) for p, t in state.manual.items()}
        # A list keeps toggle order stable for persistence
        self._ignored: list[str] = list(dict.fromkeys(state.ignored_ids))
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Fetched partition
    # ------------------------------------------------------------------

    def fetched_for(self, period: str) -> list[Transaction]:
        with self._lock:
            return list(self._fetched.get(period, []))

    def replace_fetched(self, period: str, transactions: list[Transaction]) -> None:
        """Fully replace the fetched list of one period (empty lists included)."""
        self.replace_fetched_many({period: transactions})

    def replace_fetched_many(self, updates: dict[str, list[Transaction]]) -> None:
        """Fully replace the fetched lists of several periods in one write.

        Args:
            updates: Period key to its complete new fetched list.
        """
        with self._lock:
            for period, txns in updates.items():
                self._fetched[period] = list(txns)
            if self.repository is not None:
                self.repository.save_fetched(self._fetched)
        logger.info(f"Replaced fetched cache for {len(updates)} period(s)")

    # ------------------------------------------------------------------
    # Manual partition
    # ------------------------------------------------------------------

    def manual_for(self, period: str) -> list[Transaction]:
        with self._lock:
            return list(self._manual.get(period, []))

    def upsert_manual(self, txn: Transaction) -> UpsertResult:
        """Add or replace a manual transaction.

        The owning period comes from the transaction date. An existing entry
        with the same id in that period is replaced in place; otherwise the
        transaction is appended.

        Args:
            txn: Manual transaction.

        Returns:
            UpsertResult; on a bad date it carries a ManualEntryError and
            nothing is stored.
        """
        try:
            period = period_for_manual_date(txn.date)
        except ManualEntryError as e:
            e.transaction_id = txn.id
            logger.warning(f"Rejected manual transaction {txn.id}: {e}")
            return UpsertResult(success=False, error=e)

        with self._lock:
            period_txns = self._manual.setdefault(period, [])
            replaced = False
            for idx, existing in enumerate(period_txns):
                if existing.id == txn.id:
                    period_txns[idx] = txn
                    replaced = True
                    break
            if not replaced:
                period_txns.append(txn)

            if self.repository is not None:
                self.repository.save_manual(self._manual)

        logger.info(f"{'Updated' if replaced else 'Added'} manual transaction {txn.id} in {period}")
        return UpsertResult(success=True, period=period, replaced=replaced)

    def delete_manual(self, transaction_id: str) -> bool:
        """Remove a manual transaction by id from whichever period holds it.

        Returns:
            True if a transaction was removed.
        """
        with self._lock:
            for period, txns in self._manual.items():
                remaining = [t for t in txns if t.id != transaction_id]
                if len(remaining) != len(txns):
                    self._manual[period] = remaining
                    if self.repository is not None:
                        self.repository.save_manual(self._manual)
                    logger.info(f"Deleted manual transaction {transaction_id} from {period}")
                    return True
        return False

    # ------------------------------------------------------------------
    # Ignored ids
    # ------------------------------------------------------------------

    @property
    def ignored_ids(self) -> list[str]:
        with self._lock:
            return list(self._ignored)

    def is_ignored(self, transaction_id: str) -> bool:
        with self._lock:
            return transaction_id in self._ignored

    def toggle_ignore(self, transaction_id: str) -> bool:
        """Flip membership of an id in the ignored set.

        Returns:
            True if the id is ignored after the call.
        """
        with self._lock:
            if transaction_id in self._ignored:
                self._ignored.remove(transaction_id)
                ignored = False
            else:
                self._ignored.append(transaction_id)
                ignored = True
            if self.repository is not None:
                self.repository.save_ignored_ids(self._ignored)
        return ignored

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def merged_view(self, periods: list[str]) -> list[Transaction]:
        """Fetched then manual transactions of each period, in the given order."""
        with self._lock:
            merged: list[Transaction] = []
            for period in periods:
                merged.extend(self._fetched.get(period, []))
                merged.extend(self._manual.get(period, []))
            return merged

    def active_view(self, periods: list[str]) -> list[Transaction]:
        """Merged view without ignored transactions."""
        with self._lock:
            ignored = set(self._ignored)
            return [t for t in self.merged_view(periods) if t.id not in ignored]

    def chronological(self, periods: list[str]) -> list[Transaction]:
        """Merged view sorted newest first; ties keep merged order."""
        return sorted(
            self.merged_view(periods),
            key=lambda t: t.calendar_date or _UNDATED,
            reverse=True,
        )

    def find(self, transaction_id: str, periods: Optional[list[str]] = None) -> Optional[Transaction]:
        """Look up a transaction by id, in the given periods or everywhere."""
        with self._lock:
            if periods is None:
                periods = list(dict.fromkeys([*self._fetched, *self._manual]))
            for txn in self.merged_view(periods):
                if txn.id == transaction_id:
                    return txn
        return None
