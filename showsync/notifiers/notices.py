"""User-facing notices raised by the scheduling facade.

The facade never talks to a UI directly; it hands a :class:`Notice` to a
``NoticeSink``.  Only immediate requests made on behalf of a user (and the
"sync already running" warning) produce notices; everything else is logged.

:class:`ConsoleNoticeSink` is the sink used by the command-line entry point:
it writes one line per notice to a text stream (``stderr`` by default) and
mirrors it to the log.

Typical usage::

    from showsync.notifiers.notices import ConsoleNoticeSink, Notice

    sink = ConsoleNoticeSink()
    sink.show(Notice.SCHEDULED)
"""

from __future__ import annotations

import logging
import sys
from enum import StrEnum
from typing import TextIO

__all__ = ["Notice", "ConsoleNoticeSink"]

logger = logging.getLogger(__name__)


class Notice(StrEnum):
    """Short user-facing messages."""

    NO_CONNECTION = "No network connection. Sync was not scheduled."
    SCHEDULED = "Sync scheduled."
    IN_PROGRESS = "A sync is already in progress."


class ConsoleNoticeSink:
    """Writes notices to a text stream.

    Args:
        stream: Destination; defaults to ``sys.stderr`` resolved at call time
            so pytest's capture fixtures see the output.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def show(self, notice: Notice) -> None:
        stream = self._stream or sys.stderr
        logger.info("Notice: %s", notice.name)
        print(f"showsync: {notice.value}", file=stream)  # noqa: T201
        stream.flush()
