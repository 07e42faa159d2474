"""Network reachability probe used before scheduling non-immediate syncs."""

from __future__ import annotations

import asyncio
import logging

import httpx

from showsync.sources.http_client import SourceHttpClient

__all__ = ["HttpConnectivityProbe"]

logger = logging.getLogger(__name__)


class HttpConnectivityProbe:
    """Treats any HTTP response from a known URL as "connected".

    Args:
        client: Shared HTTP client.
        url: Absolute URL to probe.
        timeout_s: Upper bound for the probe.
    """

    def __init__(self, client: SourceHttpClient, url: str, timeout_s: float = 5.0) -> None:
        self._client = client
        self._url = url
        self._timeout_s = timeout_s

    async def is_connected(self) -> bool:
        try:
            await asyncio.wait_for(self._client.head(self._url), timeout=self._timeout_s)
        except (httpx.HTTPError, TimeoutError):
            logger.debug("Connectivity probe to %s failed.", self._url, exc_info=True)
            return False
        return True
