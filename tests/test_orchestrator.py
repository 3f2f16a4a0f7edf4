"""Tests for IngestionOrchestrator fan-out, failure isolation and supersession."""

import threading
from decimal import InvalidOperation
from unittest.mock import MagicMock

from strato_ledger.ingestion.fetcher import FetchError
from strato_ledger.ingestion.orchestrator import IngestionOrchestrator, active_sources
from strato_ledger.storage.transaction_store import TransactionStore

FEED_A = "Data;Valor;Descrição\n10/01/2024;100,00;Cliente A\n"
FEED_B = "Data;Valor;Descrição\n11/01/2024;-20,00;Mercado\n"
FEED_CARD = "Data;Valor;Descrição\n12/01/2024;30,00;Restaurante\n12/01/2024;-500,00;Pagamento recebido\n"


class StubFetcher:
    """Fetcher returning canned bodies per URL, optionally blocking on one URL."""

    def __init__(self, bodies: dict[str, object]):
        self.bodies = bodies
        self.calls: list[str] = []
        self.gates: dict[str, tuple[threading.Event, threading.Event]] = {}
        self._lock = threading.Lock()

    def gate(self, url: str) -> tuple[threading.Event, threading.Event]:
        """Make fetch(url) signal 'started' and wait for 'release'."""
        started, release = threading.Event(), threading.Event()
        self.gates[url] = (started, release)
        return started, release

    def fetch(self, url: str) -> str:
        with self._lock:
            self.calls.append(url)
        if url in self.gates:
            started, release = self.gates[url]
            started.set()
            release.wait(timeout=5)
        body = self.bodies[url]
        if isinstance(body, Exception):
            raise body
        return body


class TestActiveSources:
    """Tests for the source selection rule."""

    def test_filters_manual_empty_and_non_http(self) -> None:
        """Test that only http(s) URLs of non-manual keys are fetched."""
        config = {
            "nubank_pf_pix": "https://a",
            "manual": "https://should-not-fetch",
            "picpay_pf_pix": "",
            "nubank_cc": "ftp://nope",
            "nubank_pj_pix": "http://b",
        }
        assert active_sources(config) == [("nubank_pf_pix", "https://a"), ("nubank_pj_pix", "http://b")]


class TestRefresh:
    """Tests for IngestionOrchestrator.refresh."""

    def test_merges_sources_in_config_order(self) -> None:
        """Test per-period accumulation in configuration order."""
        store = TransactionStore()
        fetcher = StubFetcher({"https://a": FEED_A, "https://b": FEED_B, "https://cc": FEED_CARD})
        orchestrator = IngestionOrchestrator(store, fetcher, max_workers=3)

        report = orchestrator.refresh(
            ["2024-01"],
            {"2024-01": {"nubank_pf_pix": "https://a", "nubank_cc": "https://cc", "picpay_pf_pix": "https://b"}},
        )

        txns = store.fetched_for("2024-01")
        assert [t.description for t in txns] == ["Cliente A", "Restaurante", "Mercado"]
        assert [t.source for t in txns] == ["nubank_pf_pix", "nubank_cc", "picpay_pf_pix"]
        assert report.superseded is False
        assert report.total_rows == 3
        assert report.failures == []

    def test_failed_source_is_isolated(self) -> None:
        """Test that one failing feed does not affect the others."""
        store = TransactionStore()
        fetcher = StubFetcher({
            "https://a": FEED_A,
            "https://bad": FetchError("HTTP 404 fetching https://bad"),
        })
        orchestrator = IngestionOrchestrator(store, fetcher)

        report = orchestrator.refresh(
            ["2024-01"],
            {"2024-01": {"nubank_pf_pix": "https://a", "picpay_pf_pix": "https://bad"}},
        )

        assert [t.description for t in store.fetched_for("2024-01")] == ["Cliente A"]
        assert len(report.failures) == 1
        assert report.failures[0].source == "picpay_pf_pix"
        assert report.failures[0].rows == 0
        assert "404" in report.failures[0].error

    def test_oversized_amount_row_is_dropped(self) -> None:
        """Test that an amount too large for cents drops only its own row."""
        store = TransactionStore()
        fetcher = StubFetcher({
            "https://a": "15/01/2024;100;Salary\n",
            "https://b": "15/01/2024;1e30;Huge\n16/01/2024;-5;Cafe\n",
        })
        orchestrator = IngestionOrchestrator(store, fetcher)

        report = orchestrator.refresh(
            ["2024-01"],
            {"2024-01": {"nubank_pf_pix": "https://a", "picpay_pf_pix": "https://b"}},
        )

        assert [t.description for t in store.fetched_for("2024-01")] == ["Salary", "Cafe"]
        assert report.failures == []

    def test_arithmetic_error_isolated_to_source(self) -> None:
        """Test that a decimal error inside one source is reported, not raised."""
        store = TransactionStore()
        fetcher = StubFetcher({"https://a": FEED_A, "https://b": InvalidOperation()})
        orchestrator = IngestionOrchestrator(store, fetcher)

        report = orchestrator.refresh(
            ["2024-01"],
            {"2024-01": {"nubank_pf_pix": "https://a", "picpay_pf_pix": "https://b"}},
        )

        assert [t.description for t in store.fetched_for("2024-01")] == ["Cliente A"]
        assert [f.source for f in report.failures] == ["picpay_pf_pix"]

    def test_unconfigured_period_replaced_with_empty(self) -> None:
        """Test that periods without config lose stale cached rows."""
        store = TransactionStore()
        fetcher = StubFetcher({"https://a": FEED_A})
        orchestrator = IngestionOrchestrator(store, fetcher)
        orchestrator.refresh(["2024-02"], {"2024-02": {"nubank_pf_pix": "https://a"}})
        assert store.fetched_for("2024-02")

        orchestrator.refresh(["2024-02"], {})
        assert store.fetched_for("2024-02") == []

    def test_other_periods_untouched(self) -> None:
        """Test that unrequested periods keep their cache."""
        store = TransactionStore()
        fetcher = StubFetcher({"https://a": FEED_A, "https://b": FEED_B})
        orchestrator = IngestionOrchestrator(store, fetcher)
        orchestrator.refresh(["2024-01"], {"2024-01": {"nubank_pf_pix": "https://a"}})
        orchestrator.refresh(["2024-02"], {"2024-02": {"nubank_pf_pix": "https://b"}})

        assert len(store.fetched_for("2024-01")) == 1
        assert len(store.fetched_for("2024-02")) == 1

    def test_commit_writes_fetched_entry_once(self) -> None:
        """Test that a refresh persists the fetched cache in a single write."""
        repository = MagicMock()
        store = TransactionStore(repository)
        fetcher = StubFetcher({"https://a": FEED_A, "https://b": FEED_B})
        orchestrator = IngestionOrchestrator(store, fetcher)

        orchestrator.refresh(
            ["2024-01", "2024-02"],
            {"2024-01": {"nubank_pf_pix": "https://a"}, "2024-02": {"nubank_pf_pix": "https://b"}},
        )
        repository.save_fetched.assert_called_once()


class TestSupersession:
    """Tests for the generation counter."""

    def test_older_refresh_discarded(self) -> None:
        """Test that a slow older refresh cannot overwrite a newer one."""
        store = TransactionStore()
        fetcher = StubFetcher({"https://slow": FEED_A, "https://fast": FEED_B})
        started, release = fetcher.gate("https://slow")
        orchestrator = IngestionOrchestrator(store, fetcher)

        reports = {}

        def run_old() -> None:
            reports["old"] = orchestrator.refresh(
                ["2024-01"], {"2024-01": {"nubank_pf_pix": "https://slow"}}
            )

        worker = threading.Thread(target=run_old)
        worker.start()
        assert started.wait(timeout=5)
        assert orchestrator.busy is True

        reports["new"] = orchestrator.refresh(
            ["2024-01"], {"2024-01": {"nubank_pf_pix": "https://fast"}}
        )
        release.set()
        worker.join(timeout=5)

        assert reports["new"].superseded is False
        assert reports["old"].superseded is True
        assert reports["old"].generation < reports["new"].generation
        assert [t.description for t in store.fetched_for("2024-01")] == ["Mercado"]
        assert orchestrator.busy is False

    def test_generation_increments(self) -> None:
        """Test that every refresh takes a new generation."""
        orchestrator = IngestionOrchestrator(TransactionStore(), StubFetcher({}))
        first = orchestrator.refresh([], {})
        second = orchestrator.refresh([], {})
        assert second.generation == first.generation + 1
