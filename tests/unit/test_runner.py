"""Tests for the runtime wiring in ``showsync.orchestrator.runner``.

The host services are ``AsyncMock`` objects; everything else (SQLite
database, stores, orchestrator, scheduler) is real.  The TMDB key is left
empty so the configuration step never touches the network, and the
connectivity probe is patched wherever a request path consults it.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from showsync.core.exceptions import ConfigError
from showsync.core.models import PrimaryOutcome, SyncRequest, SyncType, UpdateResult
from showsync.core.settings import Settings
from showsync.orchestrator.collaborators import ExternalSyncServices, PrimarySyncResult
from showsync.orchestrator.progress import SyncStep
from showsync.orchestrator.runner import open_runtime, run_once, run_service, submit
from showsync.orchestrator.scheduler import SyncScheduler
from showsync.sources.connectivity import HttpConnectivityProbe
from showsync.storage.database import open_db
from showsync.storage.preferences import PreferenceStore, RunStateStore

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings(clean_env: None, tmp_path: Path) -> Settings:
    return Settings(
        account_name="tester",
        tmdb_api_key="",
        database_path=str(tmp_path / "runner.db"),
    )


@pytest.fixture()
def services() -> ExternalSyncServices:
    primary = AsyncMock()
    primary.sync.return_value = PrimarySyncResult(PrimaryOutcome.SUCCESS, has_updated_shows=True)
    social = AsyncMock()
    social.sync.return_value = UpdateResult.SUCCESS
    return ExternalSyncServices(
        primary=primary,
        cloud=AsyncMock(),
        social=social,
        next_episodes=AsyncMock(),
        notifications=AsyncMock(),
    )


def _online(connected: bool = True):  # noqa: ANN202
    return patch.object(
        HttpConnectivityProbe, "is_connected", AsyncMock(return_value=connected)
    )


# ---------------------------------------------------------------------------
# open_runtime
# ---------------------------------------------------------------------------


class TestOpenRuntime:
    async def test_missing_services_factory_raises_config_error(
        self, settings: Settings
    ) -> None:
        with pytest.raises(ConfigError, match="SYNC_SERVICES"):
            async with open_runtime(settings):
                pass

    async def test_no_database_created_on_config_error(self, settings: Settings) -> None:
        with pytest.raises(ConfigError):
            async with open_runtime(settings):
                pass
        assert not Path(settings.database_path).exists()

    async def test_components_are_wired(
        self, settings: Settings, services: ExternalSyncServices
    ) -> None:
        async with open_runtime(settings, services=services) as runtime:
            assert runtime.settings is settings
            assert runtime.scheduler.queue.pending() == []
            assert await runtime.scheduler.is_auto_sync_enabled()
            assert await runtime.repository.get_show_ids() == set()
        assert Path(settings.database_path).exists()


# ---------------------------------------------------------------------------
# submit
# ---------------------------------------------------------------------------


class TestSubmit:
    @pytest.fixture()
    def scheduler(self) -> AsyncMock:
        return AsyncMock(spec=SyncScheduler)

    async def test_immediate(self, scheduler: AsyncMock) -> None:
        request = SyncRequest(SyncType.FULL, immediate=True, expedited=True)
        await submit(scheduler, request, notify_user=True)
        scheduler.request_immediate.assert_awaited_once_with(
            SyncType.FULL, None, notify_user=True
        )

    async def test_regular_delta_goes_through_due_check(self, scheduler: AsyncMock) -> None:
        await submit(scheduler, SyncRequest(SyncType.DELTA), notify_user=False)
        scheduler.request_if_due.assert_awaited_once_with()

    async def test_regular_single_goes_through_stale_check(self, scheduler: AsyncMock) -> None:
        await submit(scheduler, SyncRequest(SyncType.SINGLE, show_id=81189), notify_user=False)
        scheduler.request_single_if_stale.assert_awaited_once_with(81189)

    async def test_regular_single_without_id_is_rejected(self, scheduler: AsyncMock) -> None:
        assert not await submit(scheduler, SyncRequest(SyncType.SINGLE), notify_user=False)
        scheduler.request_single_if_stale.assert_not_awaited()

    async def test_regular_full_checks_connectivity(self, scheduler: AsyncMock) -> None:
        await submit(scheduler, SyncRequest(SyncType.FULL), notify_user=False)
        scheduler.request_if_connected.assert_awaited_once_with(SyncType.FULL)


# ---------------------------------------------------------------------------
# run_once
# ---------------------------------------------------------------------------


class TestRunOnce:
    async def test_immediate_delta_runs_every_step(
        self, settings: Settings, services: ExternalSyncServices
    ) -> None:
        request = SyncRequest(SyncType.DELTA, immediate=True, expedited=True)

        report = await run_once(request, settings, services=services)

        assert report is not None
        assert report.result is UpdateResult.SUCCESS
        assert report.steps == [SyncStep.PRIMARY, SyncStep.CONFIG, SyncStep.SOCIAL]
        # No TMDB key: the configuration step fails without failing the run.
        assert report.failed_steps == [SyncStep.CONFIG]
        assert report.index_rebuilt
        services.social.sync.assert_awaited_once()
        services.next_episodes.trigger.assert_awaited_once()
        services.notifications.trigger.assert_awaited_once()

    async def test_run_state_is_persisted(
        self, settings: Settings, services: ExternalSyncServices
    ) -> None:
        request = SyncRequest(SyncType.DELTA, immediate=True, expedited=True)
        report = await run_once(request, settings, services=services)

        conn = await open_db(settings.database_path)
        try:
            state = await RunStateStore(PreferenceStore(conn)).load()
        finally:
            await conn.close()
        assert report is not None and report.new_run_state is not None
        # Stored with millisecond precision.
        assert abs(state.last_update - report.new_run_state.last_update) < timedelta(milliseconds=1)
        assert state.failed_count == 0

    async def test_offline_regular_request_is_not_admitted(
        self, settings: Settings, services: ExternalSyncServices
    ) -> None:
        with _online(False):
            report = await run_once(SyncRequest(SyncType.DELTA), settings, services=services)

        assert report is None
        services.primary.sync.assert_not_awaited()

    async def test_no_account_is_not_admitted(
        self, settings: Settings, services: ExternalSyncServices
    ) -> None:
        settings = settings.model_copy(update={"account_name": ""})
        request = SyncRequest(SyncType.FULL, immediate=True, expedited=True)

        assert await run_once(request, settings, services=services) is None

    async def test_second_regular_run_is_gated(
        self, settings: Settings, services: ExternalSyncServices
    ) -> None:
        await run_once(
            SyncRequest(SyncType.DELTA, immediate=True, expedited=True),
            settings,
            services=services,
        )
        with _online():
            report = await run_once(SyncRequest(SyncType.FULL), settings, services=services)

        assert report is not None
        assert report.gated
        assert services.primary.sync.await_count == 1

    async def test_single_show_skips_multi_item_steps(
        self, settings: Settings, services: ExternalSyncServices
    ) -> None:
        request = SyncRequest(SyncType.SINGLE, show_id=81189, immediate=True, expedited=True)

        report = await run_once(request, settings, services=services)

        assert report is not None
        assert report.steps == [SyncStep.PRIMARY]
        assert report.new_run_state is None
        services.social.sync.assert_not_awaited()


# ---------------------------------------------------------------------------
# run_service
# ---------------------------------------------------------------------------


class TestRunService:
    async def test_initial_request_submitted_before_loop(
        self, settings: Settings, services: ExternalSyncServices
    ) -> None:
        seen: list[list[SyncRequest]] = []

        async def fake_continuous(scheduler: SyncScheduler, s: Settings) -> None:
            seen.append(scheduler.queue.pending())

        initial = SyncRequest(SyncType.FULL, immediate=True, expedited=True)
        with (
            _online(),
            patch("showsync.orchestrator.runner.run_continuous", side_effect=fake_continuous),
        ):
            await run_service(settings, services=services, initial=initial)

        assert seen == [[initial]]
