"""Tests for feed normalization rules and content ids."""

from decimal import Decimal

from strato_ledger.models.transaction import RawTransaction, TransactionType
from strato_ledger.processing.normalizer import Normalizer, normalize_feed


def create_raw(
    description: str,
    amount: str,
    raw_date: str = "15/01/2024",
    category: str = "Geral",
) -> RawTransaction:
    """Helper to create a RawTransaction for testing."""
    return RawTransaction(
        date=raw_date,
        description=description,
        amount=Decimal(amount),
        category=category,
    )


class TestCreditCardRules:
    """Tests for the credit-card specific rules."""

    def test_settlement_row_dropped(self) -> None:
        """Test that bill payments are removed from the card feed."""
        raws = [
            create_raw("Pagamento recebido", "-500"),
            create_raw("Restaurante", "100"),
        ]
        txns = Normalizer().normalize(raws, "nubank_cc")

        assert len(txns) == 1
        assert txns[0].description == "Restaurante"

    def test_settlement_match_is_case_insensitive(self) -> None:
        """Test case-insensitive settlement detection."""
        raws = [create_raw("PAGAMENTO RECEBIDO - obrigado", "-500")]
        assert Normalizer().normalize(raws, "nubank_cc") == []

    def test_card_charge_becomes_expense(self) -> None:
        """Test sign inversion for card charges."""
        txns = Normalizer().normalize([create_raw("Restaurante", "100")], "nubank_cc")

        assert txns[0].amount == Decimal("-100")
        assert txns[0].type == TransactionType.EXPENSE

    def test_card_refund_becomes_income(self) -> None:
        """Test that negative card rows (refunds) become income."""
        txns = Normalizer().normalize([create_raw("Estorno", "-30")], "nubank_cc")
        assert txns[0].amount == Decimal("30")
        assert txns[0].type == TransactionType.INCOME

    def test_settlement_text_kept_on_other_sources(self) -> None:
        """Test that only the card feed drops settlement rows."""
        txns = Normalizer().normalize([create_raw("Pagamento recebido", "200")], "nubank_pf_pix")
        assert len(txns) == 1
        assert txns[0].amount == Decimal("200")

    def test_custom_credit_source(self) -> None:
        """Test a configured credit-card key."""
        normalizer = Normalizer(credit_source="inter_cc")
        txns = normalizer.normalize([create_raw("Loja", "10")], "inter_cc")
        assert txns[0].amount == Decimal("-10")


class TestTransactionIds:
    """Tests for content-based transaction ids."""

    def test_id_prefixed_with_source(self) -> None:
        """Test the id format."""
        txns = Normalizer().normalize([create_raw("Cliente", "10")], "nubank_pf_pix")
        assert txns[0].id.startswith("nubank_pf_pix-")
        assert len(txns[0].id) == len("nubank_pf_pix-") + 16

    def test_ids_stable_when_rows_inserted(self) -> None:
        """Test that inserting a row does not change existing ids."""
        first = Normalizer().normalize(
            [create_raw("A", "10"), create_raw("B", "20")], "nubank_pf_pix"
        )
        second = Normalizer().normalize(
            [create_raw("Novo", "5"), create_raw("A", "10"), create_raw("B", "20")],
            "nubank_pf_pix",
        )

        assert {t.id for t in first} <= {t.id for t in second}

    def test_repeated_rows_get_occurrence_suffix(self) -> None:
        """Test that identical rows stay distinct within one feed."""
        txns = Normalizer().normalize(
            [create_raw("Cafe", "-5"), create_raw("Cafe", "-5"), create_raw("Cafe", "-5")],
            "nubank_pf_pix",
        )
        ids = [t.id for t in txns]

        assert len(set(ids)) == 3
        assert ids[1] == f"{ids[0]}#2"
        assert ids[2] == f"{ids[0]}#3"

    def test_same_row_different_sources(self) -> None:
        """Test that the source key is part of the identity."""
        a = Normalizer().normalize([create_raw("X", "10")], "nubank_pf_pix")[0]
        b = Normalizer().normalize([create_raw("X", "10")], "picpay_pf_pix")[0]
        assert a.id != b.id


class TestNormalizeFeed:
    """Tests for the parse-and-normalize convenience function."""

    def test_end_to_end(self) -> None:
        """Test raw text to transactions in file order."""
        text = (
            "Data;Valor;Descrição\n"
            "10/01/2024;250,00;Mercado\n"
            "12/01/2024;-500,00;Pagamento recebido\n"
            "14/01/2024;40,00;Farmacia\n"
        )
        txns = normalize_feed(text, "nubank_cc")

        assert [t.description for t in txns] == ["Mercado", "Farmacia"]
        assert all(t.is_expense for t in txns)
        assert all(t.source == "nubank_cc" for t in txns)
        assert txns[0].amount == Decimal("-250.00")
