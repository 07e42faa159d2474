"""User-facing notices."""

from showsync.notifiers.notices import ConsoleNoticeSink, Notice

__all__ = [
    "Notice",
    "ConsoleNoticeSink",
]
