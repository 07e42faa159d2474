"""Showsync process entry-point.

Usage:
    python -m showsync [--delta | --full | --show ID] [--immediate] [--once]

The orchestration logic lives in ``showsync.orchestrator``.  This module
calls ``configure_logging()`` first so that every subsequent import already
has a working logger, then hands off to the orchestrator.

Default behaviour (no ``--once``) is continuous: a worker performs queued
runs while a due check requests a delta sync on a randomised interval.  Any
request flag given in continuous mode is submitted once at start-up.  Pass
``--once`` to submit a single request, perform it, and exit.

Exit codes with ``--once``:

* ``0``: the run succeeded, was rate limited, or was not admitted.
* ``1``: configuration error.
* ``2``: the run finished incomplete or hit a fatal error.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from showsync.core import configure_logging
from showsync.core.exceptions import ConfigError
from showsync.core.models import SyncRequest, SyncType, UpdateResult
from showsync.core.settings import Settings

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_SYNC_FAILED = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="showsync",
        description="Sync a local TV show catalog with its remote sources.",
    )
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--delta",
        action="store_true",
        help="Request a delta sync (shows changed since the last run).",
    )
    scope.add_argument(
        "--full",
        action="store_true",
        help="Request a full sync of every show.",
    )
    scope.add_argument(
        "--show",
        type=int,
        default=None,
        metavar="ID",
        help="Request an update of a single show by its TVDB id.",
    )
    parser.add_argument(
        "--immediate",
        action="store_true",
        help="Bypass the rate limit and show user notices.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Perform the requested sync and exit instead of running continuously.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        metavar="LEVEL",
        help="Override LOG_LEVEL env var (DEBUG|INFO|WARNING|ERROR).",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        metavar="FORMAT",
        help="Override LOG_FORMAT env var (text|json).",
    )
    return parser


def _request_from_args(args: argparse.Namespace) -> SyncRequest | None:
    """Build the request named on the command line, or ``None`` if none was."""
    if args.show is not None:
        sync_type = SyncType.SINGLE
    elif args.full:
        sync_type = SyncType.FULL
    elif args.delta or args.immediate:
        sync_type = SyncType.DELTA
    else:
        return None
    return SyncRequest(
        sync_type,
        show_id=args.show,
        immediate=args.immediate,
        expedited=args.immediate,
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry-point registered in ``pyproject.toml``."""
    args = _build_parser().parse_args(argv)

    # Configure logging before anything else logs.
    try:
        configure_logging(level=args.log_level, fmt=args.log_format)
    except ValueError as exc:
        print(f"showsync: configuration error: {exc}", file=sys.stderr)  # noqa: T201
        sys.exit(EXIT_CONFIG_ERROR)

    logger = logging.getLogger(__name__)
    logger.info("Showsync starting up")

    from showsync.orchestrator.runner import run_once, run_service  # noqa: PLC0415

    request = _request_from_args(args)

    try:
        settings = Settings()
        if args.once:
            if request is None:
                request = SyncRequest(SyncType.DELTA)
            logger.info("Running single sync (--once mode): %s", request)
            report = asyncio.run(run_once(request, settings, notify_user=args.immediate))
            if report is None or report.gated:
                sys.exit(EXIT_OK)
            print(report.format_report())  # noqa: T201
            if report.fatal or report.result is not UpdateResult.SUCCESS:
                sys.exit(EXIT_SYNC_FAILED)
            sys.exit(EXIT_OK)
        else:
            logger.info("Running in continuous mode (Ctrl+C to stop).")
            asyncio.run(run_service(settings, initial=request))
    except ConfigError as exc:
        logger.critical("Configuration error: %s", exc)
        sys.exit(EXIT_CONFIG_ERROR)
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
        sys.exit(EXIT_OK)
    except asyncio.CancelledError:
        # run_continuous() was stopped via SIGTERM; the handler already logged it.
        logger.info("Shutdown complete, exiting.")
        sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
