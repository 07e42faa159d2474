"""Process-wide logging setup for Showsync.

``configure_logging()`` is called once by the CLI before anything else runs.
Library modules only ever do::

    logger = logging.getLogger(__name__)

and pass a stable event name through ``extra={"event": events.X}`` where a
line is worth grepping for.

Each sync run gets a short correlation id (see :data:`SYNC_RUN_ID_CTX`); the
handler installed here stamps it on every record so one run can be followed
across the sequencer, the stores and the remote sources.

Environment fallbacks (read at call time):
    LOG_LEVEL   DEBUG | INFO | WARNING | ERROR | CRITICAL   (default: INFO)
    LOG_FORMAT  text | json                                (default: text)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "configure_logging",
    "JsonFormatter",
    "SYNC_RUN_ID_CTX",
    "SyncRunContextFilter",
]

logger = logging.getLogger(__name__)

#: Correlation id of the sync run executing in the current task.
#: :meth:`~showsync.orchestrator.sequencer.SyncOrchestrator.perform_sync`
#: sets it to ``uuid4().hex[:8]`` and resets it on return.
SYNC_RUN_ID_CTX: ContextVar[str] = ContextVar("sync_run_id", default="-")

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_FORMATS = ("text", "json")

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(run_id)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

#: Libraries that are chatty at INFO and below.
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "aiosqlite")


class SyncRunContextFilter(logging.Filter):
    """Copy :data:`SYNC_RUN_ID_CTX` onto each record as ``run_id``.

    Attached to the handler, so it also covers records propagated from
    third-party loggers.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.run_id = SYNC_RUN_ID_CTX.get()
        return True


def _pick(explicit: str | None, env_var: str, default: str, allowed: tuple[str, ...]) -> str:
    value = explicit or os.environ.get(env_var) or default
    value = value.upper() if default.isupper() else value.lower()
    if value not in allowed:
        raise ValueError(f"Unknown {env_var} {value!r}; expected one of {', '.join(allowed)}")
    return value


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    *,
    force: bool = False,
) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Level name; falls back to ``$LOG_LEVEL``, then ``INFO``.
        fmt: ``"text"`` or ``"json"``; falls back to ``$LOG_FORMAT``, then
            ``text``.
        force: Replace existing root handlers.  Without it a second call
            only adjusts the level.

    Raises:
        ValueError: If the level or format is not recognised.
    """
    resolved_level = _pick(level, "LOG_LEVEL", "INFO", _LEVELS)
    resolved_fmt = _pick(fmt, "LOG_FORMAT", "text", _FORMATS)

    root = logging.getLogger()
    root.setLevel(resolved_level)
    if root.handlers and not force:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(SyncRunContextFilter())
    if resolved_fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt=_DATE_FORMAT))

    root.handlers.clear()
    root.addHandler(handler)

    noisy_level = logging.DEBUG if resolved_level == "DEBUG" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON line.

    Shape::

        {"ts": "2026-10-18T09:15:02.114Z", "level": "INFO",
         "logger": "showsync.orchestrator.sequencer", "run_id": "a3f2b1c0",
         "message": "Syncing: DELTA_REGULAR", "extra": {"event": "SYNC_START"}}

    Anything passed through ``extra=`` lands under ``"extra"``.  Values that
    are not JSON-serialisable are rendered with ``str()``.
    """

    #: Attributes every LogRecord carries; everything else came from ``extra=``.
    _BUILTIN_ATTRS: frozenset[str] = frozenset(
        vars(logging.makeLogRecord({})).keys() | {"message", "asctime", "run_id"}
    )

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        stamp = datetime.fromtimestamp(record.created, tz=UTC)
        payload: dict[str, Any] = {
            "ts": stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "run_id": getattr(record, "run_id", SYNC_RUN_ID_CTX.get()),
            "message": record.getMessage(),
            "extra": {
                key: value
                for key, value in vars(record).items()
                if key not in self._BUILTIN_ATTRS
            },
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str)
