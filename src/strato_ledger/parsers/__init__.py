"""Parsers for delimited feed exports."""

from strato_ledger.parsers.base import BaseParser, ParseError
from strato_ledger.parsers.feed_parser import ColumnMapping, FeedFormat, FeedParser

__all__ = [
    "BaseParser",
    "ParseError",
    "ColumnMapping",
    "FeedFormat",
    "FeedParser",
]
