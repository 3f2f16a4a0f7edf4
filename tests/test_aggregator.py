"""Tests for the aggregation engine."""

from datetime import date
from decimal import Decimal

from strato_ledger.models.source import (
    FALLBACK_COLOR,
    SourceClass,
    SourceInfo,
    SourceRegistry,
)
from strato_ledger.models.transaction import Transaction
from strato_ledger.processing.aggregator import (
    Aggregator,
    TimeWindow,
    compute_summary,
    filter_by_window,
)


def create_transaction(
    amount: str,
    source: str = "nubank_pf_pix",
    txn_date: str = "15/01/2024",
    txn_id: str | None = None,
    manual_source_label: str | None = None,
) -> Transaction:
    """Helper to create a Transaction for testing."""
    return Transaction.create(
        id=txn_id or f"{source}-{amount}-{txn_date}",
        date=txn_date,
        description="Test Transaction",
        amount=Decimal(amount),
        source=source,
        manual_source_label=manual_source_label,
    )


class TestClassify:
    """Tests for source classification."""

    def test_credit_source(self) -> None:
        """Test that the card key is CREDIT."""
        agg = Aggregator()
        assert agg.classify(create_transaction("-1", source="nubank_cc")) is SourceClass.CREDIT

    def test_pix_key(self) -> None:
        """Test that keys containing pix are PIX."""
        agg = Aggregator()
        assert agg.classify(create_transaction("1", source="picpay_pj_pix")) is SourceClass.PIX

    def test_manual_with_pix_label(self) -> None:
        """Test manual entries labelled as pix."""
        agg = Aggregator()
        txn = create_transaction("1", source="manual", manual_source_label="PIX Itaú")
        assert agg.classify(txn) is SourceClass.PIX

    def test_manual_without_label_is_other(self) -> None:
        """Test manual entries with no pix label."""
        agg = Aggregator()
        assert agg.classify(create_transaction("1", source="manual")) is SourceClass.OTHER
        txn = create_transaction("1", source="manual", manual_source_label="Dinheiro")
        assert agg.classify(txn) is SourceClass.OTHER


class TestComputeSummary:
    """Tests for compute_summary."""

    def test_two_periods_merged(self) -> None:
        """Test totals over four transactions from two months."""
        txns = [
            create_transaction("100", txn_date="10/01/2024"),
            create_transaction("-30", source="nubank_cc", txn_date="12/01/2024"),
            create_transaction("100", txn_date="10/02/2024"),
            create_transaction("-50", txn_date="12/02/2024"),
        ]
        stats = compute_summary(txns)

        assert stats.income_total == Decimal("200")
        assert stats.expenses_total == Decimal("80")
        assert stats.balance == Decimal("120")
        assert stats.income_pix == Decimal("200")
        assert stats.expenses_pix == Decimal("50")
        assert stats.expenses_credit == Decimal("30")
        assert stats.balance_credit == Decimal("-30")

    def test_other_counts_in_totals_only(self) -> None:
        """Test that OTHER transactions skip the pix and credit buckets."""
        stats = compute_summary([create_transaction("40", source="manual")])

        assert stats.income_total == Decimal("40")
        assert stats.income_pix == Decimal("0")
        assert stats.income_credit == Decimal("0")

    def test_empty(self) -> None:
        """Test the empty set."""
        stats = compute_summary([])
        assert stats.balance == Decimal("0")
        assert stats.to_dict()["incomeTotal"] == "0"


class TestFilterByWindow:
    """Tests for time window filtering."""

    today = date(2024, 1, 20)

    def test_all_keeps_everything(self) -> None:
        """Test ALL including bad dates."""
        txns = [create_transaction("1", txn_date="lixo"), create_transaction("2")]
        assert len(filter_by_window(txns, TimeWindow.ALL, today=self.today)) == 2

    def test_today(self) -> None:
        """Test exact date equality."""
        txns = [
            create_transaction("1", txn_date="20/01/2024"),
            create_transaction("2", txn_date="19/01/2024"),
        ]
        result = filter_by_window(txns, TimeWindow.TODAY, today=self.today)
        assert [t.amount for t in result] == [Decimal("1")]

    def test_trailing_window_includes_future(self) -> None:
        """Test lower bound only for trailing windows."""
        txns = [
            create_transaction("1", txn_date="13/01/2024"),
            create_transaction("2", txn_date="12/01/2024"),
            create_transaction("3", txn_date="25/01/2024"),
        ]
        result = filter_by_window(txns, TimeWindow.LAST_7_DAYS, today=self.today)
        assert [t.amount for t in result] == [Decimal("1"), Decimal("3")]

    def test_custom_inclusive(self) -> None:
        """Test inclusive custom bounds."""
        txns = [
            create_transaction("1", txn_date="01/01/2024"),
            create_transaction("2", txn_date="10/01/2024"),
            create_transaction("3", txn_date="11/01/2024"),
        ]
        result = filter_by_window(
            txns, TimeWindow.CUSTOM, start=date(2024, 1, 1), end=date(2024, 1, 10)
        )
        assert [t.amount for t in result] == [Decimal("1"), Decimal("2")]

    def test_custom_missing_bound_passes_all(self) -> None:
        """Test that an unset bound disables the custom filter."""
        txns = [create_transaction("1", txn_date="01/01/2020")]
        assert filter_by_window(txns, TimeWindow.CUSTOM, start=date(2024, 1, 1)) == txns

    def test_bad_dates_excluded(self) -> None:
        """Test that unparseable dates leave non-ALL windows."""
        txns = [create_transaction("1", txn_date="sem data")]
        assert filter_by_window(txns, TimeWindow.LAST_30_DAYS, today=self.today) == []


class TestBreakdowns:
    """Tests for per-source breakdowns."""

    def test_expense_by_source_shares(self) -> None:
        """Test grouping, ordering and rounded shares."""
        txns = [
            create_transaction("-30", source="nubank_cc"),
            create_transaction("-50", source="nubank_pf_pix"),
            create_transaction("100", source="nubank_pf_pix"),
        ]
        breakdown = Aggregator().expense_by_source(txns)

        assert breakdown.labels == ["Nubank PF", "Nubank Cartão"]
        assert breakdown.total == Decimal("80")
        assert breakdown.get("Nubank PF").value == Decimal("50")
        assert breakdown.get("Nubank PF").share == 63
        assert breakdown.get("Nubank Cartão").share == 38
        assert breakdown.get("Nubank Cartão").color == "#D4373F"

    def test_manual_label_and_unknown_source(self) -> None:
        """Test grouping by manual label and fallback for unknown keys."""
        txns = [
            create_transaction("-10", source="manual", manual_source_label="Pix Inter"),
            create_transaction("-10", source="banco_x"),
        ]
        breakdown = Aggregator().expense_by_source(txns)

        assert set(breakdown.labels) == {"Pix Inter", "Manual"}
        assert breakdown.get("Pix Inter").color == FALLBACK_COLOR

    def test_balance_by_source_positive_only(self) -> None:
        """Test that net-negative sources are omitted from the balance breakdown."""
        txns = [
            create_transaction("100", source="nubank_pf_pix"),
            create_transaction("-40", source="nubank_pf_pix"),
            create_transaction("-30", source="nubank_cc"),
            create_transaction("20", source="picpay_pf_pix"),
        ]
        breakdown = Aggregator().balance_by_source(txns)

        assert breakdown.labels == ["Nubank PF", "PicPay PF"]
        assert breakdown.total == Decimal("80")
        assert breakdown.get("Nubank PF").share == 75
        assert breakdown.get("PicPay PF").share == 25

    def test_empty_breakdown(self) -> None:
        """Test zero total gives no entries."""
        breakdown = Aggregator().expense_by_source([create_transaction("10")])
        assert breakdown.entries == []
        assert breakdown.total == Decimal("0")

    def test_registry_override(self) -> None:
        """Test that configured labels are used."""
        registry = SourceRegistry({"nubank_pf_pix": SourceInfo("nubank_pf_pix", "Pessoal", "#000000")})
        breakdown = Aggregator(registry).expense_by_source([create_transaction("-5")])
        assert breakdown.entries[0].label == "Pessoal"
        assert breakdown.entries[0].color == "#000000"


class TestMonthlyEvolution:
    """Tests for monthly_evolution."""

    def test_sorted_buckets(self) -> None:
        """Test ascending month order across a year boundary."""
        txns = [
            create_transaction("100", txn_date="05/01/2024"),
            create_transaction("-40", txn_date="06/01/2024"),
            create_transaction("50", txn_date="20/12/2023"),
        ]
        points = Aggregator().monthly_evolution(txns)

        assert [p.month for p in points] == ["12/2023", "01/2024"]
        assert points[1].income == Decimal("100")
        assert points[1].expense == Decimal("40")
        assert points[1].balance == Decimal("60")

    def test_build_dashboard_applies_window(self) -> None:
        """Test that breakdowns are computed over the windowed set."""
        txns = [
            create_transaction("-10", txn_date="19/01/2024"),
            create_transaction("-99", txn_date="01/12/2023"),
        ]
        data = Aggregator().build_dashboard(txns, TimeWindow.LAST_7_DAYS, today=date(2024, 1, 20))

        assert data.transaction_count == 1
        assert data.expense_by_source.total == Decimal("10")
        assert [p.month for p in data.evolution] == ["01/2024"]
