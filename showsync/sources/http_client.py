"""Async HTTP transport shared by the remote sync sources.

:class:`SourceHttpClient` is a thin layer over :class:`httpx.AsyncClient`
that turns HTTP statuses into the :mod:`showsync.core.exceptions` taxonomy
and retries the transient ones with :mod:`tenacity`:

==================  ===========================================  =========
Outcome             Raised                                       Retried
==================  ===========================================  =========
2xx                 (response returned)                          n/a
429                 :class:`SourceRateLimitError`                yes
500/502/503/504     :class:`SourceFetchError` (``status_code``)  yes
other non-2xx       :class:`SourceFetchError` (``status_code``)  no
network failure     :class:`httpx.TransportError`                yes
==================  ===========================================  =========

A 429 waits for its ``Retry-After`` hint; everything else waits a random
exponential interval capped at one minute.  When the attempts run out the
last exception is re-raised unchanged.

One client is opened per process (see the runner) and shared by the TMDB
configuration fetcher and the connectivity probe.

Typical usage::

    async with SourceHttpClient(base_url="https://api.themoviedb.org/3") as client:
        response = await client.get("/configuration", params={"api_key": key})
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Final

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from showsync.core.exceptions import SourceFetchError, SourceRateLimitError

__all__ = ["SourceHttpClient", "USER_AGENT"]

logger = logging.getLogger(__name__)

#: Statuses treated as a temporary server fault.
_TRANSIENT_STATUS: Final[frozenset[int]] = frozenset({500, 502, 503, 504})

_DEFAULT_MAX_ATTEMPTS: Final[int] = 3
_MAX_BACKOFF_S: Final[float] = 60.0
_MIN_RETRY_AFTER_S: Final[float] = 1.0

#: Identifies this client to the API provider.
USER_AGENT: Final[str] = "showsync/0.1 (+python-httpx)"


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, SourceRateLimitError | httpx.TransportError):
        return True
    return isinstance(exc, SourceFetchError) and exc.status_code in _TRANSIENT_STATUS


class _RetryAfterWait:
    """tenacity wait: honour a 429 ``Retry-After``, else random exponential."""

    def __init__(self, max_backoff_s: float = _MAX_BACKOFF_S) -> None:
        self._fallback = wait_random_exponential(multiplier=1, max=max_backoff_s)

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, SourceRateLimitError) and exc.retry_after:
            return exc.retry_after
        return self._fallback(retry_state)


def _retry_after_seconds(response: httpx.Response) -> float:
    """Read the back-off hint of a 429 response; at least one second."""
    raw = response.headers.get("retry-after")
    if raw is None:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            raw = body.get("retry_after") or body.get("retryAfter")
    try:
        return max(float(raw), _MIN_RETRY_AFTER_S)
    except (TypeError, ValueError):
        return _MIN_RETRY_AFTER_S


def _raise_for_status(response: httpx.Response, source: str) -> None:
    if response.is_success:
        return
    status = response.status_code
    if status == 429:
        raise SourceRateLimitError(source, retry_after=_retry_after_seconds(response))
    raise SourceFetchError(
        source,
        f"HTTP {status} {response.reason_phrase} for {response.request.url.path}",
        status_code=status,
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class SourceHttpClient:
    """Shared async HTTP client for remote sources.

    The underlying :class:`httpx.AsyncClient` is created on first use and
    closed by :meth:`close` or on leaving ``async with``.

    Args:
        base_url: Prefix for relative request paths.  Also used as the
            ``source`` label of raised errors.
        headers: Extra default headers.
        connect_timeout: Seconds to establish a connection.
        read_timeout: Seconds to wait for response data.
        write_timeout: Seconds to send the request.
        max_attempts: Attempts per :meth:`get`, including the first (≥ 1).
        transport: Custom transport, e.g. :class:`httpx.MockTransport`.

    Raises:
        ValueError: If *max_attempts* is below 1.
    """

    def __init__(
        self,
        *,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        connect_timeout: float = 10.0,
        read_timeout: float = 20.0,
        write_timeout: float = 10.0,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be ≥ 1, got {max_attempts!r}.")
        self._base_url = base_url
        self._headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            **(headers or {}),
        }
        self._timeout = httpx.Timeout(
            connect=connect_timeout, read=read_timeout, write=write_timeout, pool=5.0
        )
        self._max_attempts = max_attempts
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._wait = _RetryAfterWait()

    async def __aenter__(self) -> SourceHttpClient:
        self._client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def source(self) -> str:
        return self._base_url or "http"

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def get(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET *url*, retrying transient failures.

        Returns:
            The 2xx response.

        Raises:
            SourceRateLimitError: Still rate limited after the last attempt.
            SourceFetchError: Non-2xx status (immediately for non-transient
                statuses, after the last attempt otherwise).
            httpx.TransportError: Network failure on the last attempt.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._wait,
            retry=retry_if_exception(_is_transient),
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self._client().get(url, params=params, headers=headers)
                logger.debug("GET %s -> %d", url, response.status_code)
                _raise_for_status(response, self.source)
        return response

    async def head(self, url: str) -> httpx.Response:
        """Send one HEAD request.  Any status counts as a response.

        Raises:
            httpx.HTTPError: If no response was received.
        """
        return await self._client().head(url)

    async def close(self) -> None:
        """Release pooled connections.  Safe to call repeatedly."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.debug("HTTP client for %s closed.", self.source)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._http

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "%s: attempt %d/%d failed (%s), retrying in %.1f s.",
            self.source,
            retry_state.attempt_number,
            self._max_attempts,
            exc,
            delay,
        )
