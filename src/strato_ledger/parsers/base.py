"""Abstract base class for feed parsers."""

import re
from abc import ABC, abstractmethod
from typing import Optional

from strato_ledger.models.transaction import RawTransaction
from strato_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

_LINE_BREAK = re.compile(r"\r?\n")


class ParseError(Exception):
    """Exception raised when a whole feed cannot be parsed."""

    def __init__(self, message: str, source: Optional[str] = None):
        """Initialize ParseError.

        Args:
            message: Error message.
            source: Optional source key of the feed that failed to parse.
        """
        self.source = source
        super().__init__(message)


class BaseParser(ABC):
    """Abstract base class for all feed parsers.

    Subclasses must implement:
    - can_parse(): Check if this parser can handle a feed body
    - parse(): Parse a feed body and return raw transactions
    """

    @property
    def name(self) -> str:
        """Return parser name for logging."""
        return self.__class__.__name__

    @abstractmethod
    def can_parse(self, text: str) -> bool:
        """Check if this parser can handle the given feed body.

        Args:
            text: Raw feed text.

        Returns:
            True if this parser can handle the text.
        """
        pass

    @abstractmethod
    def parse(self, text: str, source: str) -> list[RawTransaction]:
        """Parse a feed body and return raw transactions.

        Args:
            text: Raw feed text.
            source: Source key the feed belongs to (for logging).

        Returns:
            List of RawTransaction objects in file order.

        Raises:
            ParseError: If the feed as a whole is unusable.
        """
        pass

    def _non_blank_lines(self, text: str) -> list[str]:
        """Split text into lines, dropping blank ones.

        Args:
            text: Raw feed text.

        Returns:
            Lines with surrounding whitespace kept intact.
        """
        return [line for line in _LINE_BREAK.split(text or "") if line.strip()]
