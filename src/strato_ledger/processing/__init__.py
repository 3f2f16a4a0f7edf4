"""Transaction processing pipeline components."""

from strato_ledger.processing.aggregator import (
    Aggregator,
    TimeWindow,
    compute_summary,
    filter_by_window,
)
from strato_ledger.processing.normalizer import (
    Normalizer,
    normalize_feed,
)

__all__ = [
    "Normalizer",
    "normalize_feed",
    "Aggregator",
    "TimeWindow",
    "compute_summary",
    "filter_by_window",
]
