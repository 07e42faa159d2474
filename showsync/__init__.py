"""Showsync: sync orchestration for a local TV show catalog."""

__version__ = "0.1.0"
