"""JSON persistence for the five ledger state entries.

Layout (relative to the state directory):

- ``selected_months.json``: ordered list of "YYYY-MM" period keys
- ``month_configs.json``: period -> source key -> feed URL
- ``manual_txs.json``: period -> list of manual transactions
- ``ignored_ids.json``: list of ignored transaction ids
- ``sheet_cache.json``: period -> list of fetched transactions

Each entry is read once at startup. A missing or malformed entry degrades to
its empty default without affecting the others. Each write replaces the
whole entry: the payload goes to a ``.tmp`` file first and is then moved into
place with ``os.replace``.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, TypeVar

from strato_ledger.models.transaction import Transaction
from strato_ledger.utils.date_utils import is_valid_period_key
from strato_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

SELECTED_PERIODS_FILE = "selected_months.json"
SOURCE_CONFIGS_FILE = "month_configs.json"
MANUAL_FILE = "manual_txs.json"
IGNORED_FILE = "ignored_ids.json"
FETCHED_FILE = "sheet_cache.json"

SourceConfig = dict[str, dict[str, str]]
TransactionMap = dict[str, list[Transaction]]

T = TypeVar("T")


class StateError(Exception):
    """Raised when a persisted entry has the wrong shape."""

    pass


@dataclass
class PersistedState:
    """Everything read from the state directory at startup."""

    selected_periods: list[str] = field(default_factory=list)
    source_configs: SourceConfig = field(default_factory=dict)
    manual: TransactionMap = field(default_factory=dict)
    ignored_ids: list[str] = field(default_factory=list)
    fetched: TransactionMap = field(default_factory=dict)
    # Entries that existed on disk (used for first-run defaults)
    present: set[str] = field(default_factory=set)


def _parse_periods(data: Any) -> list[str]:
    if not isinstance(data, list):
        raise StateError(f"expected a list, got {type(data).__name__}")
    periods = []
    for item in data:
        if not isinstance(item, str) or not is_valid_period_key(item):
            raise StateError(f"invalid period key: {item!r}")
        periods.append(item)
    return periods


def _parse_source_configs(data: Any) -> SourceConfig:
    if not isinstance(data, dict):
        raise StateError(f"expected a mapping, got {type(data).__name__}")
    configs: SourceConfig = {}
    for period, sources in data.items():
        if not isinstance(sources, dict):
            raise StateError(f"sources for {period!r} must be a mapping")
        configs[str(period)] = {
            str(key): "" if url is None else str(url) for key, url in sources.items()
        }
    return configs


def _parse_transaction_map(data: Any) -> TransactionMap:
    if not isinstance(data, dict):
        raise StateError(f"expected a mapping, got {type(data).__name__}")
    result: TransactionMap = {}
    for period, items in data.items():
        if not isinstance(items, list):
            raise StateError(f"transactions for {period!r} must be a list")
        try:
            result[str(period)] = [Transaction.from_dict(item) for item in items]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StateError(f"invalid transaction in {period!r}: {e}") from e
    return result


def _parse_ids(data: Any) -> list[str]:
    if not isinstance(data, list):
        raise StateError(f"expected a list, got {type(data).__name__}")
    return [str(item) for item in data]


def _dump_transaction_map(data: TransactionMap) -> dict[str, list[dict[str, Any]]]:
    return {period: [txn.to_dict() for txn in txns] for period, txns in data.items()}


class StateRepository:
    """Reads and writes the persisted state entries of one state directory."""

    def __init__(self, state_dir: Path):
        """Initialize repository.

        Args:
            state_dir: Directory holding the state files (created on first write).
        """
        self.state_dir = Path(state_dir)

    def path_for(self, filename: str) -> Path:
        return self.state_dir / filename

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> PersistedState:
        """Load every entry, degrading each independently on failure."""
        state = PersistedState()
        state.selected_periods = self._load_entry(SELECTED_PERIODS_FILE, _parse_periods, list, state)
        state.source_configs = self._load_entry(SOURCE_CONFIGS_FILE, _parse_source_configs, dict, state)
        state.manual = self._load_entry(MANUAL_FILE, _parse_transaction_map, dict, state)
        state.ignored_ids = self._load_entry(IGNORED_FILE, _parse_ids, list, state)
        state.fetched = self._load_entry(FETCHED_FILE, _parse_transaction_map, dict, state)

        logger.info(
            f"Loaded state from {self.state_dir}: "
            f"{len(state.selected_periods)} selected periods, "
            f"{sum(len(t) for t in state.manual.values())} manual transactions, "
            f"{len(state.ignored_ids)} ignored ids"
        )
        return state

    def _load_entry(
        self,
        filename: str,
        parse: Callable[[Any], T],
        default: Callable[[], T],
        state: PersistedState,
    ) -> T:
        path = self.path_for(filename)
        if not path.exists():
            logger.debug(f"No persisted {filename}, using empty default")
            return default()

        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
            value = parse(raw)
        except (OSError, json.JSONDecodeError, StateError) as e:
            logger.warning(f"Could not load {path}, using empty default: {e}")
            return default()

        state.present.add(filename)
        return value

    # ------------------------------------------------------------------
    # Saving (each call rewrites one entry in full)
    # ------------------------------------------------------------------

    def save_selected_periods(self, periods: list[str]) -> None:
        self._write(SELECTED_PERIODS_FILE, list(periods))

    def save_source_configs(self, configs: SourceConfig) -> None:
        self._write(SOURCE_CONFIGS_FILE, configs)

    def save_manual(self, manual: TransactionMap) -> None:
        self._write(MANUAL_FILE, _dump_transaction_map(manual))

    def save_ignored_ids(self, ignored_ids: list[str]) -> None:
        self._write(IGNORED_FILE, list(ignored_ids))

    def save_fetched(self, fetched: TransactionMap) -> None:
        self._write(FETCHED_FILE, _dump_transaction_map(fetched))

    def _write(self, filename: str, payload: Any) -> None:
        """Atomically replace one state file."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(filename)
        tmp_path = path.with_suffix(path.suffix + ".tmp")

        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)

        logger.debug(f"Wrote {path}")
