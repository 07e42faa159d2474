"""Interfaces of everything the sync orchestrator delegates to.

The orchestrator owns ordering, failure isolation and bookkeeping; the work
itself is done by collaborators described here as runtime-checkable
:class:`~typing.Protocol` classes so that in-repo implementations (the show
repository, the TMDB fetcher, the change notifier) and host-supplied
services can be swapped freely and replaced by mocks in tests.

Two bundles are defined:

* :class:`ExternalSyncServices` — the five services the host application
  must supply: primary reconciliation, cloud-account sync, trakt sync,
  next-episode recomputation and episode notification refresh.  The
  factory that builds them is located by :func:`load_sync_services` from the
  ``SYNC_SERVICES`` setting.
* :class:`SyncCollaborators` — the full set the
  :class:`~showsync.orchestrator.sequencer.SyncOrchestrator` is constructed
  with.

Typical usage::

    services = load_sync_services(settings.sync_services, settings)
    collaborators = SyncCollaborators.from_services(
        services,
        config=fetcher,
        repository=repo,
        changes=notifier,
        run_state_store=RunStateStore(prefs),
        image_url_store=prefs,
        cloud_sync_enabled=lambda: settings.cloud_sync_enabled,
    )
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from showsync.core.exceptions import ConfigError
from showsync.core.models import (
    PrimaryOutcome,
    RunState,
    ShowSearchResult,
    SyncType,
    UpdateResult,
)

if TYPE_CHECKING:
    from showsync.core.settings import Settings
    from showsync.notifiers.notices import Notice
    from showsync.sources.tmdb import ConfigFetchResult

__all__ = [
    "PrimarySyncResult",
    "AccountSyncResult",
    "PrimarySync",
    "ConfigFetch",
    "CloudAccountSync",
    "SocialTrackingSync",
    "ExistingIdSet",
    "IndexRebuild",
    "NextEpisodeRecompute",
    "NotificationRefresh",
    "DataChangeNotify",
    "StaleCheck",
    "ConnectivityProbe",
    "NoticeSink",
    "RunStateRepository",
    "ImageBaseUrlStore",
    "ExternalSyncServices",
    "SyncCollaborators",
    "load_sync_services",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrimarySyncResult:
    """Outcome of primary reconciliation.

    Attributes:
        outcome: Three-way result; ``FATAL`` stops the run.
        has_updated_shows: ``True`` if any show row changed, which makes the
            search index stale.
    """

    outcome: PrimaryOutcome
    has_updated_shows: bool = False


@dataclass(frozen=True)
class AccountSyncResult:
    """Outcome of cloud-account sync.

    Attributes:
        result: Whether the sync completed.
        new_shows: Shows found remotely but not locally, keyed by TheTVDB id.
            The add-show flow rebuilds the search index for them.
    """

    result: UpdateResult
    new_shows: dict[int, ShowSearchResult] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Step collaborators
# ---------------------------------------------------------------------------


@runtime_checkable
class PrimarySync(Protocol):
    """Reconciles local show/episode data against the metadata provider."""

    async def sync(
        self, sync_type: SyncType, show_id: int | None, now: datetime
    ) -> PrimarySyncResult: ...


@runtime_checkable
class ConfigFetch(Protocol):
    """Fetches remote image configuration."""

    async def fetch(self) -> ConfigFetchResult: ...


@runtime_checkable
class CloudAccountSync(Protocol):
    """Syncs shows, episodes and movies with the cloud account."""

    async def sync(self, existing_ids: set[int]) -> AccountSyncResult: ...


@runtime_checkable
class SocialTrackingSync(Protocol):
    """Syncs watched state and ratings with trakt."""

    async def sync(self, existing_ids: set[int], now: datetime) -> UpdateResult: ...


@runtime_checkable
class ExistingIdSet(Protocol):
    async def get_show_ids(self) -> set[int] | None: ...


@runtime_checkable
class IndexRebuild(Protocol):
    async def rebuild_search_index(self) -> int: ...


@runtime_checkable
class NextEpisodeRecompute(Protocol):
    async def trigger(self) -> None: ...


@runtime_checkable
class NotificationRefresh(Protocol):
    async def trigger(self) -> None: ...


@runtime_checkable
class DataChangeNotify(Protocol):
    def notify_items_changed(self) -> None: ...


@runtime_checkable
class StaleCheck(Protocol):
    async def is_update_needed(self, show_id: int) -> bool: ...


@runtime_checkable
class ConnectivityProbe(Protocol):
    async def is_connected(self) -> bool: ...


@runtime_checkable
class NoticeSink(Protocol):
    def show(self, notice: Notice) -> None: ...


@runtime_checkable
class RunStateRepository(Protocol):
    async def load(self) -> RunState: ...

    async def save(self, state: RunState) -> None: ...


@runtime_checkable
class ImageBaseUrlStore(Protocol):
    async def set_image_base_url(self, url: str) -> None: ...


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExternalSyncServices:
    """Host-supplied services.  Built by the ``SYNC_SERVICES`` factory."""

    primary: PrimarySync
    cloud: CloudAccountSync
    social: SocialTrackingSync
    next_episodes: NextEpisodeRecompute
    notifications: NotificationRefresh


@dataclass(frozen=True)
class SyncCollaborators:
    """Everything a :class:`~showsync.orchestrator.sequencer.SyncOrchestrator` calls.

    Attributes:
        cloud_sync_enabled: Read once per run to pick the account-sync
            strategy.
    """

    primary: PrimarySync
    config: ConfigFetch
    cloud: CloudAccountSync
    social: SocialTrackingSync
    existing_ids: ExistingIdSet
    index: IndexRebuild
    next_episodes: NextEpisodeRecompute
    notifications: NotificationRefresh
    changes: DataChangeNotify
    run_state_store: RunStateRepository
    image_url_store: ImageBaseUrlStore
    cloud_sync_enabled: Callable[[], bool]

    @classmethod
    def from_services(
        cls,
        services: ExternalSyncServices,
        *,
        config: ConfigFetch,
        repository: Any,
        changes: DataChangeNotify,
        run_state_store: RunStateRepository,
        image_url_store: ImageBaseUrlStore,
        cloud_sync_enabled: Callable[[], bool],
    ) -> SyncCollaborators:
        """Combine host services with in-repo collaborators.

        Args:
            repository: Provides both :class:`ExistingIdSet` and
                :class:`IndexRebuild` (normally a
                :class:`~showsync.storage.repository.ShowRepository`).
        """
        return cls(
            primary=services.primary,
            config=config,
            cloud=services.cloud,
            social=services.social,
            existing_ids=repository,
            index=repository,
            next_episodes=services.next_episodes,
            notifications=services.notifications,
            changes=changes,
            run_state_store=run_state_store,
            image_url_store=image_url_store,
            cloud_sync_enabled=cloud_sync_enabled,
        )


# ---------------------------------------------------------------------------
# Factory loading
# ---------------------------------------------------------------------------


def load_sync_services(path: str, settings: Settings) -> ExternalSyncServices:
    """Import and call the host factory named by *path*.

    Args:
        path: ``"package.module:attribute"``.  The attribute must be a
            callable taking the :class:`~showsync.core.settings.Settings`
            and returning :class:`ExternalSyncServices`.
        settings: Passed to the factory.

    Raises:
        ConfigError: If *path* is empty or malformed, the module or attribute
            cannot be found, or the factory returns something else.
    """
    if not path:
        raise ConfigError(
            "SYNC_SERVICES is not set. Point it at a 'module:factory' that builds "
            "the primary, cloud, trakt, next-episode and notification services."
        )
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"SYNC_SERVICES must look like 'module:factory', got {path!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import SYNC_SERVICES module {module_name!r}: {exc}") from exc

    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigError(f"SYNC_SERVICES factory {path!r} is missing or not callable")

    services = factory(settings)
    if not isinstance(services, ExternalSyncServices):
        raise ConfigError(
            f"SYNC_SERVICES factory {path!r} returned {type(services).__name__}, "
            "expected ExternalSyncServices"
        )
    logger.info("Loaded sync services from %s", path)
    return services
