"""Report data models for summary cards and breakdown series."""

from dataclasses import dataclass, field
from decimal import Decimal

_ZERO = Decimal("0")


@dataclass
class SummaryStats:
    """Totals over an active transaction set.

    Income totals sum signed amounts of income transactions; expense totals
    sum absolute amounts of expense transactions. The pix and credit buckets
    are not exhaustive: OTHER-classified transactions only count in the
    grand totals.
    """

    income_total: Decimal = _ZERO
    income_pix: Decimal = _ZERO
    income_credit: Decimal = _ZERO
    expenses_total: Decimal = _ZERO
    expenses_pix: Decimal = _ZERO
    expenses_credit: Decimal = _ZERO

    @property
    def balance(self) -> Decimal:
        """Total income minus total expenses."""
        return self.income_total - self.expenses_total

    @property
    def balance_pix(self) -> Decimal:
        return self.income_pix - self.expenses_pix

    @property
    def balance_credit(self) -> Decimal:
        return self.income_credit - self.expenses_credit

    def to_dict(self) -> dict[str, str]:
        return {
            "incomeTotal": str(self.income_total),
            "incomePix": str(self.income_pix),
            "incomeCredit": str(self.income_credit),
            "expensesTotal": str(self.expenses_total),
            "expensesPix": str(self.expenses_pix),
            "expensesCredit": str(self.expenses_credit),
            "balance": str(self.balance),
            "balancePix": str(self.balance_pix),
            "balanceCredit": str(self.balance_credit),
        }


@dataclass
class BreakdownEntry:
    """One labelled slice of a per-source breakdown.

    Attributes:
        label: Display label of the source group.
        value: Summed value for the group.
        color: Chart color resolved from the source registry.
        share: Whole-number percentage of the breakdown total.
    """

    label: str
    value: Decimal
    color: str
    share: int = 0


@dataclass
class SourceBreakdown:
    """Per-source breakdown with its total (the denominator of every share)."""

    entries: list[BreakdownEntry] = field(default_factory=list)
    total: Decimal = _ZERO

    @property
    def labels(self) -> list[str]:
        return [entry.label for entry in self.entries]

    def get(self, label: str) -> BreakdownEntry | None:
        for entry in self.entries:
            if entry.label == label:
                return entry
        return None


@dataclass
class EvolutionPoint:
    """Income, expense and balance for one calendar month.

    Attributes:
        month: Display bucket "MM/YYYY".
        sort_key: Fixed-width "YYYY-MM" key used for ordering.
        income: Sum of income amounts.
        expense: Sum of absolute expense amounts.
    """

    month: str
    sort_key: str
    income: Decimal = _ZERO
    expense: Decimal = _ZERO

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


@dataclass
class DashboardData:
    """Windowed breakdowns computed together for one dashboard view."""

    expense_by_source: SourceBreakdown
    balance_by_source: SourceBreakdown
    evolution: list[EvolutionPoint]
    transaction_count: int = 0
