"""Data models for transactions, sources and reports."""

from strato_ledger.models.report import (
    BreakdownEntry,
    DashboardData,
    EvolutionPoint,
    SourceBreakdown,
    SummaryStats,
)
from strato_ledger.models.source import (
    CREDIT_CARD_SOURCE,
    SourceClass,
    SourceInfo,
    SourceRegistry,
)
from strato_ledger.models.transaction import (
    DEFAULT_CATEGORY,
    MANUAL_SOURCE,
    RawTransaction,
    Transaction,
    TransactionType,
)

__all__ = [
    "RawTransaction",
    "Transaction",
    "TransactionType",
    "DEFAULT_CATEGORY",
    "MANUAL_SOURCE",
    "CREDIT_CARD_SOURCE",
    "SourceClass",
    "SourceInfo",
    "SourceRegistry",
    "SummaryStats",
    "BreakdownEntry",
    "SourceBreakdown",
    "EvolutionPoint",
    "DashboardData",
]
