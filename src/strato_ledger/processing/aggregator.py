"""Aggregation engine: summary totals, time windows and breakdown series."""

from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from strato_ledger.models.report import (
    BreakdownEntry,
    DashboardData,
    EvolutionPoint,
    SourceBreakdown,
    SummaryStats,
)
from strato_ledger.models.source import SourceClass, SourceRegistry
from strato_ledger.models.transaction import Transaction
from strato_ledger.utils.date_utils import is_date_in_range, month_bucket
from strato_ledger.utils.decimal_utils import ZERO, percent_share, sum_amounts
from strato_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)


class TimeWindow(Enum):
    """Selectable window applied before computing breakdowns."""

    ALL = "all"
    TODAY = "today"
    LAST_7_DAYS = "7days"
    LAST_15_DAYS = "15days"
    LAST_30_DAYS = "30days"
    CUSTOM = "custom"

    @property
    def trailing_days(self) -> Optional[int]:
        """Length of a trailing window, or None for the other windows."""
        return _TRAILING_DAYS.get(self)


_TRAILING_DAYS = {
    TimeWindow.LAST_7_DAYS: 7,
    TimeWindow.LAST_15_DAYS: 15,
    TimeWindow.LAST_30_DAYS: 30,
}


def filter_by_window(
    transactions: list[Transaction],
    window: TimeWindow,
    today: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Transaction]:
    """Restrict transactions to a time window.

    - ALL passes everything through.
    - TODAY keeps exact date matches.
    - Trailing windows keep dates >= today - N days, with no upper bound,
      so future-dated transactions are included.
    - CUSTOM is inclusive on both bounds; if either bound is unset every
      transaction passes.

    Transactions whose date text cannot be parsed are excluded from every
    window except ALL.

    Args:
        transactions: Transactions to filter.
        window: Window to apply.
        today: Reference day (defaults to date.today()).
        start: Custom range start.
        end: Custom range end.

    Returns:
        Filtered list, order preserved.
    """
    if window is TimeWindow.ALL:
        return list(transactions)

    if window is TimeWindow.CUSTOM and (start is None or end is None):
        return list(transactions)

    reference = today or date.today()
    limit = reference - timedelta(days=window.trailing_days or 0)

    def in_window(d: date) -> bool:
        if window is TimeWindow.TODAY:
            return d == reference
        if window is TimeWindow.CUSTOM:
            return is_date_in_range(d, start, end)
        return d >= limit

    result = []
    for txn in transactions:
        txn_date = txn.calendar_date
        if txn_date is None:
            logger.debug(f"Excluding {txn.id} from {window.value} window: bad date {txn.date!r}")
            continue
        if in_window(txn_date):
            result.append(txn)
    return result


class Aggregator:
    """Computes summary statistics and breakdown series.

    Pure and re-entrant: every method reads its input list and returns new
    report objects.
    """

    def __init__(self, registry: Optional[SourceRegistry] = None):
        """Initialize aggregator.

        Args:
            registry: Source registry used for labels, colors and classification.
        """
        self.registry = registry or SourceRegistry()

    def classify(self, txn: Transaction) -> SourceClass:
        return self.registry.classify(txn.source, txn.manual_source_label)

    def compute_summary(self, transactions: list[Transaction]) -> SummaryStats:
        """Compute income, expense and balance totals with pix/credit splits.

        Args:
            transactions: Active transaction set.

        Returns:
            SummaryStats for the set.
        """
        stats = SummaryStats()

        for txn in transactions:
            source_class = self.classify(txn)
            if txn.is_income:
                stats.income_total += txn.amount
                if source_class is SourceClass.PIX:
                    stats.income_pix += txn.amount
                elif source_class is SourceClass.CREDIT:
                    stats.income_credit += txn.amount
            else:
                magnitude = abs(txn.amount)
                stats.expenses_total += magnitude
                if source_class is SourceClass.PIX:
                    stats.expenses_pix += magnitude
                elif source_class is SourceClass.CREDIT:
                    stats.expenses_credit += magnitude

        return stats

    def expense_by_source(self, transactions: list[Transaction]) -> SourceBreakdown:
        """Group expenses by source label and sum their absolute amounts.

        Args:
            transactions: Windowed transactions.

        Returns:
            Breakdown sorted by value descending; shares relative to total expenses.
        """
        groups: dict[str, Decimal] = {}
        total = ZERO
        for txn in transactions:
            if not txn.is_expense:
                continue
            label = self._label(txn)
            magnitude = abs(txn.amount)
            groups[label] = groups.get(label, ZERO) + magnitude
            total += magnitude

        return self._build_breakdown(groups, total)

    def balance_by_source(self, transactions: list[Transaction]) -> SourceBreakdown:
        """Group all transactions by source label and sum signed amounts.

        Only groups with a strictly positive net are kept; net-negative
        sources are omitted entirely.

        Args:
            transactions: Windowed transactions.

        Returns:
            Breakdown sorted by value descending; shares relative to the sum
            of the retained groups.
        """
        groups: dict[str, Decimal] = {}
        for txn in transactions:
            label = self._label(txn)
            groups[label] = groups.get(label, ZERO) + txn.amount

        positive = {label: value for label, value in groups.items() if value > 0}
        total = sum_amounts(list(positive.values()))
        return self._build_breakdown(positive, total)

    def monthly_evolution(self, transactions: list[Transaction]) -> list[EvolutionPoint]:
        """Bucket transactions by calendar month.

        Args:
            transactions: Windowed transactions.

        Returns:
            One point per month, ascending by "YYYY-MM".
        """
        buckets: dict[str, EvolutionPoint] = {}

        for txn in transactions:
            txn_date = txn.calendar_date
            if txn_date is None:
                logger.debug(f"Skipping {txn.id} in evolution: bad date {txn.date!r}")
                continue

            label, sort_key = month_bucket(txn_date)
            point = buckets.get(label)
            if point is None:
                point = EvolutionPoint(month=label, sort_key=sort_key)
                buckets[label] = point

            if txn.is_income:
                point.income += txn.amount
            else:
                point.expense += abs(txn.amount)

        return sorted(buckets.values(), key=lambda p: p.sort_key)

    def build_dashboard(
        self,
        transactions: list[Transaction],
        window: TimeWindow = TimeWindow.ALL,
        today: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> DashboardData:
        """Apply a window and compute every breakdown over the result.

        Args:
            transactions: Active transaction set.
            window: Time window to apply first.
            today: Reference day for relative windows.
            start: Custom range start.
            end: Custom range end.

        Returns:
            DashboardData bundle.
        """
        windowed = filter_by_window(transactions, window, today=today, start=start, end=end)
        return DashboardData(
            expense_by_source=self.expense_by_source(windowed),
            balance_by_source=self.balance_by_source(windowed),
            evolution=self.monthly_evolution(windowed),
            transaction_count=len(windowed),
        )

    def _label(self, txn: Transaction) -> str:
        return self.registry.label_for(txn.source, txn.manual_source_label)

    def _build_breakdown(self, groups: dict[str, Decimal], total: Decimal) -> SourceBreakdown:
        entries = [
            BreakdownEntry(
                label=label,
                value=value,
                color=self.registry.color_for_label(label),
                share=percent_share(value, total),
            )
            for label, value in groups.items()
        ]
        entries.sort(key=lambda e: e.value, reverse=True)
        return SourceBreakdown(entries=entries, total=total)


def compute_summary(
    transactions: list[Transaction],
    registry: Optional[SourceRegistry] = None,
) -> SummaryStats:
    """Convenience function to compute summary statistics.

    Args:
        transactions: Active transaction set.
        registry: Optional source registry.

    Returns:
        SummaryStats for the set.
    """
    return Aggregator(registry).compute_summary(transactions)
