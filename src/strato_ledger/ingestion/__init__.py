"""Remote feed retrieval and refresh orchestration."""

from strato_ledger.ingestion.fetcher import FeedFetcher, FetchError, rewrite_url
from strato_ledger.ingestion.orchestrator import (
    IngestionOrchestrator,
    IngestionReport,
    SourceOutcome,
)

__all__ = [
    "FeedFetcher",
    "FetchError",
    "rewrite_url",
    "IngestionOrchestrator",
    "IngestionReport",
    "SourceOutcome",
]
