"""HTTP fetching of published feed URLs with retries."""

import re
import time
from typing import Any, Optional

import httpx

from strato_ledger.config import FetchConfig
from strato_ledger.utils.logging_config import get_logger, mask_url

logger = get_logger(__name__)

# Spreadsheet id segment of a Google Sheets link
_SHEET_ID_PATTERN = re.compile(r"/d/(.+?)(?:/|$)")

SHEETS_HOST_MARKER = "docs.google.com/spreadsheets"


class FetchError(Exception):
    """Raised when a feed cannot be retrieved."""

    def __init__(self, message: str, url: Optional[str] = None):
        """Initialize FetchError.

        Args:
            message: Error message.
            url: Feed URL (masked before being stored).
        """
        self.url = mask_url(url) if url else None
        super().__init__(message)


def rewrite_url(url: str) -> str:
    """Turn a Google Sheets link into its CSV export endpoint.

    Other URLs are returned unchanged, as are Sheets links without a
    ``/d/<id>`` segment (for example already-published ``/d/e/`` links keep
    their own export parameters).

    Args:
        url: URL as configured by the user.

    Returns:
        URL to request.
    """
    url = url.strip()
    if SHEETS_HOST_MARKER not in url:
        return url

    match = _SHEET_ID_PATTERN.search(url)
    if not match:
        return url

    sheet_id = match.group(1)
    if sheet_id == "e":
        return url
    return f"https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv"


class FeedFetcher:
    """Retrieves feed text over HTTP.

    This client provides:
    - Lazy initialization of the underlying httpx.Client
    - Automatic retry with exponential backoff on transport errors and 5xx
    - Google Sheets link rewriting
    """

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize fetcher.

        Args:
            config: Timeout and retry settings.
            client: Pre-built client (tests inject one with a mock transport).
        """
        self.config = config or FetchConfig()
        self._client = client
        self._owns_client = client is None

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.config.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.config.user_agent},
            )
        return self._client

    def fetch(self, url: str) -> str:
        """Fetch the text body of a feed URL.

        Args:
            url: Configured feed URL.

        Returns:
            Response body decoded as text.

        Raises:
            FetchError: If the request fails after all retries or returns a
                non-retryable error status.
        """
        target = rewrite_url(url)
        client = self._ensure_client()
        masked = mask_url(target)

        attempts = self.config.retry_attempts + 1
        delay = self.config.retry_delay
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                response = client.get(target)
            except httpx.TransportError as e:
                last_error = e
                logger.warning(f"Transport error fetching {masked}: {e}")
            else:
                if response.status_code < 400:
                    logger.debug(f"Fetched {masked}: {len(response.content)} bytes")
                    return response.text
                if response.status_code < 500:
                    raise FetchError(
                        f"HTTP {response.status_code} fetching {masked}", url=target
                    )
                last_error = httpx.HTTPStatusError(
                    f"HTTP {response.status_code}",
                    request=response.request,
                    response=response,
                )
                logger.warning(f"Server error {response.status_code} fetching {masked}")

            if attempt < attempts - 1:
                logger.info(f"Retrying {masked} in {delay}s")
                time.sleep(delay)
                delay *= 2

        raise FetchError(
            f"Fetching {masked} failed after {attempts} attempts: {last_error}", url=target
        )

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "FeedFetcher":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
