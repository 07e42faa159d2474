"""In-process change notification for the show dataset.

:class:`ChangeNotifier` is the ``DataChangeNotify`` collaborator: after
account sync the orchestrator calls :meth:`ChangeNotifier.notify_items_changed`
so that anything caching show or episode data (list views, next-episode
widgets, API responses) can reload.

Subscribers are plain callables.  A failing subscriber is logged and skipped
so it cannot break the sync run or starve the other subscribers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

__all__ = ["ChangeNotifier"]

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Registry of callbacks invoked when show/episode data may have changed."""

    def __init__(self) -> None:
        self._subscribers: list[Callable[[], None]] = []

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register *callback* and return a function that unregisters it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def notify_items_changed(self) -> None:
        """Invoke every subscriber once, in registration order."""
        logger.debug("Notifying %d subscriber(s) of show data change.", len(self._subscribers))
        for callback in list(self._subscribers):
            try:
                callback()
            except Exception:  # noqa: BLE001
                logger.warning("Change subscriber %r failed.", callback, exc_info=True)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
