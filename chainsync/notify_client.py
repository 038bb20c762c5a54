"""HTTP client that reports transactions to a business platform."""

from __future__ import annotations

import logging

import requests

from chainsync.records import NotifyRequest, NotifyResponse

logger = logging.getLogger(__name__)

NOTIFY_PATH = "/dapplink/notify"


class BlockchainHTTPError(Exception):
    """The business platform answered with an HTTP error status."""

    def __init__(self, status_code: int, method: str, url: str) -> None:
        super().__init__(f"{status_code} cannot {method} {url}: blockchain http error")
        self.status_code = status_code
        self.method = method
        self.url = url


class NotifyClient:
    """Posts notification batches to one business platform."""

    def __init__(self, base_url: str, session: requests.Session | None = None) -> None:
        if not base_url:
            raise ValueError("blockchain URL cannot be empty")
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()

    def business_notify(self, request: NotifyRequest) -> bool:
        """Send ``request`` and return whether the platform accepted it."""
        url = self.base_url + NOTIFY_PATH
        response = self._session.post(
            url,
            data=request.to_json().encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
        if response.status_code >= 400:
            raise BlockchainHTTPError(response.status_code, "POST", url)
        try:
            return NotifyResponse.from_json(response.content).success
        except ValueError:
            logger.error("unreadable notify response from %s", url)
            raise