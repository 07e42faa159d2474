"""Remote sources: shared HTTP transport, TMDB configuration, connectivity."""

from showsync.sources.connectivity import HttpConnectivityProbe
from showsync.sources.http_client import SourceHttpClient
from showsync.sources.tmdb import (
    ConfigFetchResult,
    TmdbConfigurationFetcher,
    track_failed_request,
)

__all__ = [
    "SourceHttpClient",
    "HttpConnectivityProbe",
    "ConfigFetchResult",
    "TmdbConfigurationFetcher",
    "track_failed_request",
]
