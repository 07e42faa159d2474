"""TMDB configuration fetch and failed-request tracking.

:class:`TmdbConfigurationFetcher` implements the configuration step of a
multi-item sync run: it calls ``GET /configuration`` on the TMDB API and
extracts ``images.secure_base_url``, the prefix every poster and still URL
is built from.  The orchestrator persists the value; this module only
fetches it.

Any failure (missing API key, non-2xx response, network error, malformed
body) is reported through :func:`track_failed_request` and returned as an
unsuccessful :class:`ConfigFetchResult`.  Nothing here raises into the
orchestrator for an expected remote failure.

Typical usage::

    from showsync.sources.http_client import SourceHttpClient
    from showsync.sources.tmdb import TmdbConfigurationFetcher

    async with SourceHttpClient(base_url=settings.tmdb_base_url) as client:
        result = await TmdbConfigurationFetcher(client, settings.tmdb_api_key).fetch()
        if result.success and result.image_base_url:
            ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from showsync.core import events
from showsync.core.exceptions import SourceError, SourceFetchError, SourceRequestError
from showsync.sources.http_client import SourceHttpClient

__all__ = [
    "SOURCE_NAME",
    "ACTION_GET_CONFIG",
    "ConfigFetchResult",
    "TmdbConfiguration",
    "TmdbConfigurationFetcher",
    "track_failed_request",
]

logger = logging.getLogger(__name__)

SOURCE_NAME: str = "tmdb"
ACTION_GET_CONFIG: str = "get config"


# ---------------------------------------------------------------------------
# Payload models
# ---------------------------------------------------------------------------


class TmdbImagesConfiguration(BaseModel):
    model_config = ConfigDict(extra="ignore")

    secure_base_url: str | None = None


class TmdbConfiguration(BaseModel):
    """The subset of the ``/configuration`` response this project reads."""

    model_config = ConfigDict(extra="ignore")

    images: TmdbImagesConfiguration | None = None


@dataclass(frozen=True)
class ConfigFetchResult:
    """Outcome of one configuration fetch.

    Attributes:
        success: ``True`` if TMDB answered 2xx with a parseable body.
        image_base_url: ``images.secure_base_url``; ``None`` or empty when
            the response did not carry one.
    """

    success: bool
    image_base_url: str | None = None


# ---------------------------------------------------------------------------
# Failure tracking
# ---------------------------------------------------------------------------


def track_failed_request(
    action: str,
    failure: httpx.Response | BaseException,
    *,
    source: str = SOURCE_NAME,
) -> SourceRequestError:
    """Record a failed remote request and return its description.

    Accepts either the unsuccessful response or the exception that
    prevented one.  A :class:`~showsync.core.exceptions.SourceFetchError`
    carrying an HTTP status is tracked like a response.

    Args:
        action: What the request was trying to do (e.g. ``"get config"``).
        failure: The non-2xx response, or the exception raised instead.
        source: Short source name for the log line.

    Returns:
        The :class:`~showsync.core.exceptions.SourceRequestError` that was
        logged.
    """
    if isinstance(failure, httpx.Response):
        error = SourceRequestError(
            source,
            action,
            status_code=failure.status_code,
            message=failure.reason_phrase,
        )
    elif isinstance(failure, SourceFetchError) and failure.status_code is not None:
        error = SourceRequestError(
            source,
            action,
            status_code=failure.status_code,
            message=str(failure),
        )
    else:
        error = SourceRequestError(source, action, cause=failure)

    logger.warning(
        "Request failed: %s",
        error,
        extra={
            "event": events.SOURCE_REQUEST_FAILED,
            "source": source,
            "action": action,
            "status_code": error.status_code,
        },
    )
    return error


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class TmdbConfigurationFetcher:
    """Fetches the TMDB API configuration.

    Args:
        client: Shared HTTP client whose ``base_url`` is the TMDB API root.
        api_key: TMDB API key.  Empty means TMDB is not configured and every
            fetch fails without a network call.
    """

    def __init__(self, client: SourceHttpClient, api_key: str) -> None:
        self._client = client
        self._api_key = api_key

    async def fetch(self) -> ConfigFetchResult:
        """Call ``GET /configuration`` once.

        Returns:
            ``ConfigFetchResult(success=True, image_base_url=...)`` on a 2xx
            response with a valid body; ``ConfigFetchResult(success=False)``
            otherwise.
        """
        if not self._api_key:
            logger.warning("TMDB API key not set; skipping configuration fetch.")
            return ConfigFetchResult(success=False)

        try:
            response = await self._client.get("/configuration", params={"api_key": self._api_key})
        except (SourceError, httpx.HTTPError) as exc:
            track_failed_request(ACTION_GET_CONFIG, exc)
            return ConfigFetchResult(success=False)

        try:
            config = TmdbConfiguration.model_validate_json(response.content)
        except ValidationError as exc:
            track_failed_request(ACTION_GET_CONFIG, exc)
            return ConfigFetchResult(success=False)

        base_url = config.images.secure_base_url if config.images else None
        logger.debug("TMDB configuration fetched (secure_base_url=%r).", base_url)
        return ConfigFetchResult(success=True, image_base_url=base_url)
