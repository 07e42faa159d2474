"""Orchestrator entry-point: assemble all components and run syncs.

This module wires the runtime together and exposes the two ways
:mod:`showsync.__main__` drives it:

* :func:`run_once` — admit one request through the scheduling facade,
  perform whatever got queued, and return the report.
* :func:`run_service` — keep the runtime open and hand it to
  :func:`~showsync.orchestrator.scheduler.run_continuous`.

Component wiring
----------------
:func:`open_runtime`:

1. Loads :class:`~showsync.core.settings.Settings` (or uses the supplied
   instance).
2. Locates the host services via ``SYNC_SERVICES``
   (:func:`~showsync.orchestrator.collaborators.load_sync_services`); a
   missing factory raises :exc:`~showsync.core.exceptions.ConfigError`
   before any I/O.
3. Opens the SQLite database and the shared
   :class:`~showsync.sources.http_client.SourceHttpClient` through a
   :class:`contextlib.AsyncExitStack`.
4. Builds the stores, the TMDB fetcher, the connectivity probe, the
   :class:`~showsync.orchestrator.sequencer.SyncOrchestrator` and the
   :class:`~showsync.orchestrator.scheduler.SyncScheduler`.
5. Tears everything down on exit, including on exceptions.

Typical usage::

    import asyncio
    from showsync.core.models import SyncRequest, SyncType
    from showsync.orchestrator.runner import run_once

    report = asyncio.run(run_once(SyncRequest(SyncType.FULL, immediate=True)))
    print(report.format_report() if report else "nothing to do")
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta

import aiosqlite

from showsync.core.changes import ChangeNotifier
from showsync.core.models import SyncRequest, SyncType
from showsync.core.settings import Settings
from showsync.notifiers.notices import ConsoleNoticeSink
from showsync.orchestrator.collaborators import (
    ExternalSyncServices,
    NoticeSink,
    SyncCollaborators,
    load_sync_services,
)
from showsync.orchestrator.queue import SyncQueue
from showsync.orchestrator.scheduler import SyncScheduler, run_continuous
from showsync.orchestrator.sequencer import SyncOrchestrator, SyncReport
from showsync.sources.connectivity import HttpConnectivityProbe
from showsync.sources.http_client import SourceHttpClient
from showsync.sources.tmdb import TmdbConfigurationFetcher
from showsync.storage.database import open_db
from showsync.storage.preferences import PreferenceStore, RunStateStore
from showsync.storage.repository import ShowRepository

__all__ = ["SyncRuntime", "open_runtime", "submit", "run_once", "run_service"]

logger = logging.getLogger(__name__)


@dataclass
class SyncRuntime:
    """Live components of one process.  Valid only inside :func:`open_runtime`."""

    settings: Settings
    conn: aiosqlite.Connection
    preferences: PreferenceStore
    run_state_store: RunStateStore
    repository: ShowRepository
    changes: ChangeNotifier
    orchestrator: SyncOrchestrator
    scheduler: SyncScheduler


@asynccontextmanager
async def open_runtime(
    settings: Settings | None = None,
    *,
    services: ExternalSyncServices | None = None,
    notices: NoticeSink | None = None,
) -> AsyncIterator[SyncRuntime]:
    """Build every component and close them on exit.

    Args:
        settings: Pre-loaded settings; loaded from env and ``.env`` if ``None``.
        services: Host services; located via ``SYNC_SERVICES`` if ``None``.
        notices: Notice sink; defaults to :class:`ConsoleNoticeSink`.

    Raises:
        ConfigError: If ``SYNC_SERVICES`` is needed and invalid.
    """
    if settings is None:
        settings = Settings()
    if services is None:
        services = load_sync_services(settings.sync_services, settings)

    if not settings.tmdb_configured:
        logger.warning("TMDB_API_KEY is not set; configuration refresh will fail every run.")
    if settings.account is None:
        logger.warning("ACCOUNT_NAME is empty; all sync requests will be dropped.")

    async with AsyncExitStack() as stack:
        conn = await open_db(settings.database_path_resolved)
        stack.push_async_callback(conn.close)

        http: SourceHttpClient = await stack.enter_async_context(
            SourceHttpClient(base_url=settings.tmdb_base_url)
        )

        preferences = PreferenceStore(conn)
        run_state_store = RunStateStore(preferences)
        repository = ShowRepository(
            conn,
            update_threshold=timedelta(hours=settings.show_update_threshold_hours),
        )
        changes = ChangeNotifier()

        collaborators = SyncCollaborators.from_services(
            services,
            config=TmdbConfigurationFetcher(http, settings.tmdb_api_key),
            repository=repository,
            changes=changes,
            run_state_store=run_state_store,
            image_url_store=preferences,
            cloud_sync_enabled=lambda: settings.cloud_sync_enabled,
        )
        orchestrator = SyncOrchestrator(collaborators, step_timeout_s=settings.step_timeout_s)
        scheduler = SyncScheduler(
            SyncQueue(),
            orchestrator,
            account=settings.account,
            connectivity=HttpConnectivityProbe(
                http,
                settings.connectivity_check_url,
                settings.connectivity_timeout_s,
            ),
            stale_check=repository,
            notices=notices or ConsoleNoticeSink(),
            preferences=preferences,
            run_state_store=run_state_store,
            auto_sync_default=settings.auto_sync_default,
        )

        logger.debug("Runtime ready (db=%s).", settings.database_path)
        yield SyncRuntime(
            settings=settings,
            conn=conn,
            preferences=preferences,
            run_state_store=run_state_store,
            repository=repository,
            changes=changes,
            orchestrator=orchestrator,
            scheduler=scheduler,
        )

    logger.debug("Runtime closed.")


async def submit(scheduler: SyncScheduler, request: SyncRequest, *, notify_user: bool) -> bool:
    """Route *request* through the facade path matching its flags."""
    if request.immediate:
        return await scheduler.request_immediate(
            request.sync_type, request.show_id, notify_user=notify_user
        )
    if request.sync_type is SyncType.SINGLE:
        if request.show_id is None:
            logger.error("A single-show sync needs a show id.")
            return False
        return await scheduler.request_single_if_stale(request.show_id)
    if request.sync_type is SyncType.DELTA:
        return await scheduler.request_if_due()
    return await scheduler.request_if_connected(request.sync_type)


async def run_once(
    request: SyncRequest,
    settings: Settings | None = None,
    *,
    services: ExternalSyncServices | None = None,
    notify_user: bool = False,
) -> SyncReport | None:
    """Submit *request*, perform everything queued, and return its report.

    Returns:
        The report of the run, or ``None`` if the request was not admitted.

    Raises:
        ConfigError: If the services factory cannot be loaded.
    """
    async with open_runtime(settings, services=services) as runtime:
        admitted = await submit(runtime.scheduler, request, notify_user=notify_user)
        if not admitted:
            logger.info("Sync %s not admitted; nothing to do.", request.label)
            return None
        reports = await runtime.scheduler.run_pending()
    return reports[0] if reports else None


async def run_service(
    settings: Settings | None = None,
    *,
    services: ExternalSyncServices | None = None,
    initial: SyncRequest | None = None,
) -> None:
    """Run continuously until cancelled.

    Args:
        initial: Optional request submitted before the periodic loop starts.
    """
    async with open_runtime(settings, services=services) as runtime:
        if initial is not None:
            await submit(runtime.scheduler, initial, notify_user=True)
        await run_continuous(runtime.scheduler, runtime.settings)
