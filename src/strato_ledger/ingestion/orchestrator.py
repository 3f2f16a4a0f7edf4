"""Ingestion orchestrator: fetch, parse and normalize every configured feed."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from decimal import InvalidOperation
from typing import Optional, Protocol

import httpx

from strato_ledger.ingestion.fetcher import FetchError
from strato_ledger.models.transaction import MANUAL_SOURCE, Transaction
from strato_ledger.parsers.base import ParseError
from strato_ledger.processing.normalizer import Normalizer
from strato_ledger.storage.state_repository import SourceConfig
from strato_ledger.storage.transaction_store import TransactionStore
from strato_ledger.utils.logging_config import LogContext, get_logger, mask_url

logger = get_logger(__name__)

# Errors isolated to a single source; anything else propagates
SOURCE_ERRORS = (
    FetchError,
    ParseError,
    httpx.HTTPError,
    UnicodeDecodeError,
    ValueError,
    InvalidOperation,
)


class Fetcher(Protocol):
    def fetch(self, url: str) -> str: ...


@dataclass
class SourceOutcome:
    """Result of ingesting one (period, source) feed.

    Attributes:
        period: Period key.
        source: Source key.
        rows: Transactions produced (0 on failure).
        error: Error message if the source failed.
    """

    period: str
    source: str
    rows: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class IngestionReport:
    """Summary of one refresh.

    Attributes:
        generation: Generation number taken when the refresh started.
        periods: Periods requested.
        outcomes: Per-source outcomes in configuration order.
        superseded: True if a newer refresh started before this one finished;
            its results were discarded.
    """

    generation: int
    periods: list[str] = field(default_factory=list)
    outcomes: list[SourceOutcome] = field(default_factory=list)
    superseded: bool = False

    @property
    def failures(self) -> list[SourceOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def total_rows(self) -> int:
        return sum(o.rows for o in self.outcomes)


@dataclass
class _FeedTask:
    period: str
    source: str
    url: str


def active_sources(config: dict[str, str]) -> list[tuple[str, str]]:
    """Source entries of one period that should be fetched.

    Args:
        config: Source key to URL for one period.

    Returns:
        (source, url) pairs in configuration order.
    """
    return [
        (source, url)
        for source, url in config.items()
        if source != MANUAL_SOURCE and url and url.startswith("http")
    ]


class IngestionOrchestrator:
    """Fans out feed fetches for the selected periods and commits the results.

    Each refresh takes a generation number. Results are committed to the
    store only if no newer refresh has started in the meantime, so an older,
    slower refresh can never overwrite a newer one.
    """

    def __init__(
        self,
        store: TransactionStore,
        fetcher: Fetcher,
        normalizer: Optional[Normalizer] = None,
        max_workers: int = 4,
    ):
        """Initialize orchestrator.

        Args:
            store: Store receiving the fetched partitions.
            fetcher: Object with a fetch(url) -> str method.
            normalizer: Feed normalizer.
            max_workers: Maximum concurrent fetches.
        """
        if max_workers < 1:
            raise ValueError("max_workers must be a positive integer")
        self.store = store
        self.fetcher = fetcher
        self.normalizer = normalizer or Normalizer()
        self.max_workers = max_workers

        self._lock = threading.Lock()
        self._generation = 0
        self._in_flight = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def busy(self) -> bool:
        """True while any refresh is running. Advisory only."""
        with self._lock:
            return self._in_flight > 0

    def refresh(self, periods: list[str], source_configs: SourceConfig) -> IngestionReport:
        """Re-fetch every active source of the given periods.

        The fetched cache of every requested period is fully replaced,
        including periods with no configuration (they become empty).

        Args:
            periods: Ordered period keys.
            source_configs: Period -> source key -> URL.

        Returns:
            IngestionReport describing each source and whether the results
            were committed.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._in_flight += 1

        try:
            tasks = [
                _FeedTask(period, source, url)
                for period in periods
                for source, url in active_sources(source_configs.get(period, {}))
            ]

            with LogContext(logger, "refresh", generation=generation, periods=len(periods)):
                results = self._run(tasks)

            report = IngestionReport(generation=generation, periods=list(periods))
            updates: dict[str, list[Transaction]] = {period: [] for period in periods}
            for task, (transactions, error) in zip(tasks, results):
                updates[task.period].extend(transactions)
                report.outcomes.append(
                    SourceOutcome(task.period, task.source, len(transactions), error)
                )

            with self._lock:
                if generation != self._generation:
                    report.superseded = True
                    logger.info(
                        f"Discarding results of refresh {generation}: "
                        f"superseded by {self._generation}"
                    )
                else:
                    self.store.replace_fetched_many(updates)
                    logger.info(
                        f"Refresh {generation} committed {report.total_rows} transactions "
                        f"across {len(periods)} period(s), {len(report.failures)} failed source(s)"
                    )
            return report
        finally:
            with self._lock:
                self._in_flight -= 1

    def _run(self, tasks: list[_FeedTask]) -> list[tuple[list[Transaction], Optional[str]]]:
        """Run tasks concurrently, returning results in task order."""
        if not tasks:
            return []

        results: dict[int, tuple[list[Transaction], Optional[str]]] = {}
        workers = min(self.max_workers, len(tasks))

        with ThreadPoolExecutor(max_workers=workers) as pool:
            future_to_idx: dict[Future, int] = {
                pool.submit(self._ingest_source, task): idx for idx, task in enumerate(tasks)
            }
            for future in as_completed(future_to_idx):
                results[future_to_idx[future]] = future.result()

        return [results[idx] for idx in range(len(tasks))]

    def _ingest_source(self, task: _FeedTask) -> tuple[list[Transaction], Optional[str]]:
        """Fetch and normalize one feed; failures contribute zero rows."""
        try:
            text = self.fetcher.fetch(task.url)
            transactions = self.normalizer.normalize_feed(text, task.source)
        except SOURCE_ERRORS as e:
            logger.warning(
                f"Source {task.source} for {task.period} failed "
                f"({mask_url(task.url)}): {e}"
            )
            return [], str(e)
        return transactions, None
