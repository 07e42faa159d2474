"""Live integration tests — TMDB configuration and connectivity wiring.

These tests run :class:`~showsync.sources.tmdb.TmdbConfigurationFetcher` and
:class:`~showsync.sources.connectivity.HttpConnectivityProbe` against the
**real** TMDB API.  They catch request-shape regressions (path, query
parameters, response layout) that the mocked unit tests cannot.

Default behaviour
-----------------
Every test here is marked ``integration`` and excluded from the default run
(``addopts = "-m 'not integration'"`` in ``pyproject.toml``).

Run on demand::

    pytest -m integration tests/integration/test_tmdb_live.py

The fetch tests are skipped when ``TMDB_API_KEY`` is absent.  The key is read
from ``.env`` at import time so developers need not export it manually.
"""

from __future__ import annotations

import os

import pytest
from dotenv import load_dotenv

from showsync.core.settings import Settings
from showsync.sources.connectivity import HttpConnectivityProbe
from showsync.sources.http_client import SourceHttpClient
from showsync.sources.tmdb import TmdbConfigurationFetcher

pytestmark = pytest.mark.integration

load_dotenv()

_skip_if_no_tmdb = pytest.mark.skipif(
    not os.environ.get("TMDB_API_KEY"),
    reason="TMDB_API_KEY is not set; add it to .env or export it to run live TMDB tests.",
)


@pytest.fixture()
def live_settings() -> Settings:
    return Settings()


@_skip_if_no_tmdb
async def test_configuration_has_secure_image_url(live_settings: Settings) -> None:
    async with SourceHttpClient(base_url=live_settings.tmdb_base_url) as client:
        result = await TmdbConfigurationFetcher(client, live_settings.tmdb_api_key).fetch()

    assert result.success
    assert result.image_base_url is not None
    assert result.image_base_url.startswith("https://")


async def test_invalid_key_is_reported_not_raised(live_settings: Settings) -> None:
    async with SourceHttpClient(base_url=live_settings.tmdb_base_url) as client:
        result = await TmdbConfigurationFetcher(client, "not-a-real-key").fetch()

    assert not result.success


async def test_connectivity_probe(live_settings: Settings) -> None:
    async with SourceHttpClient() as client:
        probe = HttpConnectivityProbe(client, live_settings.connectivity_check_url)
        assert await probe.is_connected()
