"""Persistence and in-memory ownership of ledger state."""

from strato_ledger.storage.state_repository import (
    PersistedState,
    StateError,
    StateRepository,
)
from strato_ledger.storage.transaction_store import (
    ManualEntryError,
    TransactionStore,
    UpsertResult,
)

__all__ = [
    "ManualEntryError",
    "PersistedState",
    "StateError",
    "StateRepository",
    "TransactionStore",
    "UpsertResult",
]
