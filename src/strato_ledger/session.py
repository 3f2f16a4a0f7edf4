"""Ledger session: period selection, source configuration and refresh lifecycle."""

from datetime import date
from enum import Enum
from typing import Optional

from strato_ledger.config import Config
from strato_ledger.ingestion.fetcher import FeedFetcher
from strato_ledger.ingestion.orchestrator import Fetcher, IngestionOrchestrator, IngestionReport
from strato_ledger.models.report import DashboardData, SummaryStats
from strato_ledger.models.transaction import Transaction
from strato_ledger.processing.aggregator import Aggregator, TimeWindow
from strato_ledger.processing.normalizer import Normalizer
from strato_ledger.storage.state_repository import (
    SELECTED_PERIODS_FILE,
    StateRepository,
)
from strato_ledger.storage.transaction_store import TransactionStore, UpsertResult
from strato_ledger.utils.date_utils import (
    current_period_key,
    is_valid_period_key,
    months_of_year,
)
from strato_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)


class AppState(Enum):
    """Lifecycle of the session's data."""

    EMPTY = "empty"  # No periods selected
    LOADING = "loading"  # Refresh in progress or pending
    READY = "ready"


class LedgerSession:
    """Coordinates the repository, store, orchestrator and aggregator.

    Construction reads the persisted state once. Without a persisted
    selection the current month is selected. Cached transactions are
    served immediately, so a session with a selection starts READY; a
    refresh moves it through LOADING back to READY.
    """

    def __init__(
        self,
        config: Config,
        fetcher: Optional[Fetcher] = None,
        today: Optional[date] = None,
    ):
        """Initialize session.

        Args:
            config: Loaded configuration.
            fetcher: Feed fetcher (defaults to an HTTP FeedFetcher).
            today: Reference day for the default selection.
        """
        self.config = config
        self.registry = config.build_registry()
        self.repository = StateRepository(config.state_dir)

        persisted = self.repository.load()
        self.store = TransactionStore(self.repository, persisted)
        self.source_configs = persisted.source_configs

        if SELECTED_PERIODS_FILE in persisted.present:
            self.selected_periods = persisted.selected_periods
        else:
            self.selected_periods = [current_period_key(today)]

        self.fetcher = fetcher or FeedFetcher(config.fetch)
        self.orchestrator = IngestionOrchestrator(
            self.store,
            self.fetcher,
            Normalizer(credit_source=config.credit_source),
            max_workers=config.fetch.max_workers,
        )
        self.aggregator = Aggregator(self.registry)

        self.state = AppState.READY if self.selected_periods else AppState.EMPTY
        self.last_report: Optional[IngestionReport] = None

    # ------------------------------------------------------------------
    # Period selection
    # ------------------------------------------------------------------

    def select_periods(self, periods: list[str], refresh: bool = True) -> Optional[IngestionReport]:
        """Replace the selection.

        Args:
            periods: Period keys ("YYYY-MM"); duplicates are dropped and the
                result is kept in chronological order.
            refresh: Whether to refresh the new selection immediately.

        Returns:
            The refresh report, or None if no refresh ran.

        Raises:
            ValueError: If a period key is malformed.
        """
        for period in periods:
            if not is_valid_period_key(period):
                raise ValueError(f"Invalid period key: {period!r} (expected YYYY-MM)")

        self.selected_periods = sorted(set(periods))
        self.repository.save_selected_periods(self.selected_periods)
        logger.info(f"Selected periods: {', '.join(self.selected_periods) or '(none)'}")

        if not self.selected_periods:
            self.state = AppState.EMPTY
            return None

        if self.state is AppState.EMPTY:
            self.state = AppState.LOADING
        if refresh:
            return self.refresh()
        return None

    def toggle_period(self, period: str, refresh: bool = True) -> Optional[IngestionReport]:
        """Add the period if absent, remove it if present."""
        if period in self.selected_periods:
            periods = [p for p in self.selected_periods if p != period]
        else:
            periods = [*self.selected_periods, period]
        return self.select_periods(periods, refresh=refresh)

    def select_year(self, year: int, refresh: bool = True) -> Optional[IngestionReport]:
        """Add every month of a year to the selection."""
        return self.select_periods([*self.selected_periods, *months_of_year(year)], refresh=refresh)

    # ------------------------------------------------------------------
    # Sources and refresh
    # ------------------------------------------------------------------

    def sources_for(self, period: str) -> dict[str, str]:
        return dict(self.source_configs.get(period, {}))

    def update_sources(
        self,
        period: str,
        mapping: dict[str, str],
        refresh: bool = True,
    ) -> Optional[IngestionReport]:
        """Replace the source URLs of one period, persist, then refresh.

        Args:
            period: Period key whose configuration is replaced.
            mapping: Source key to URL (empty string disables a source).
            refresh: Whether to refresh afterwards.

        Returns:
            The refresh report, or None if no refresh ran.
        """
        if not is_valid_period_key(period):
            raise ValueError(f"Invalid period key: {period!r} (expected YYYY-MM)")

        self.source_configs[period] = dict(mapping)
        self.repository.save_source_configs(self.source_configs)
        logger.info(f"Updated {len(mapping)} source(s) for {period}")

        if refresh:
            return self.refresh()
        return None

    def refresh(self) -> Optional[IngestionReport]:
        """Re-fetch every configured source of the selected periods.

        Returns:
            The ingestion report, or None when nothing is selected.
        """
        if not self.selected_periods:
            self.state = AppState.EMPTY
            return None

        previous = self.state
        self.state = AppState.LOADING
        try:
            report = self.orchestrator.refresh(list(self.selected_periods), self.source_configs)
        except Exception:
            self.state = previous
            raise

        self.last_report = report
        if not report.superseded:
            self.state = AppState.READY
        return report

    @property
    def busy(self) -> bool:
        return self.orchestrator.busy

    # ------------------------------------------------------------------
    # Manual entries and ignore flags
    # ------------------------------------------------------------------

    def add_or_edit_manual(self, transaction: Transaction) -> UpsertResult:
        result = self.store.upsert_manual(transaction)
        if result.success:
            self.state = AppState.READY
        return result

    def delete_manual(self, transaction_id: str) -> bool:
        return self.store.delete_manual(transaction_id)

    def toggle_ignore(self, transaction_id: str) -> bool:
        return self.store.toggle_ignore(transaction_id)

    def find(self, transaction_id: str) -> Optional[Transaction]:
        return self.store.find(transaction_id)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def active(self) -> list[Transaction]:
        return self.store.active_view(self.selected_periods)

    def listing(self) -> list[Transaction]:
        """All selected transactions, ignored included, newest first."""
        return self.store.chronological(self.selected_periods)

    def summary(self) -> SummaryStats:
        return self.aggregator.compute_summary(self.active())

    def dashboard(
        self,
        window: TimeWindow = TimeWindow.ALL,
        today: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> DashboardData:
        return self.aggregator.build_dashboard(
            self.active(), window, today=today, start=start, end=end
        )

    def close(self) -> None:
        close = getattr(self.fetcher, "close", None)
        if callable(close):
            close()
