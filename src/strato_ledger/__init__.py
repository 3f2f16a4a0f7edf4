"""Multi-feed transaction ledger: ingestion, merge store and aggregation."""

__version__ = "0.3.0"
