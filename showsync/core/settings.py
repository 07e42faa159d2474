"""Showsync application settings loaded from environment and ``.env`` files.

Every field maps to the upper-case environment variable of the same name,
so ``TMDB_API_KEY`` fills ``tmdb_api_key``.

Typical usage::

    from showsync.core.settings import Settings

    settings = Settings()                 # loads from env + .env
    print(settings.tmdb_configured)       # True / False
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings"]

logger = logging.getLogger(__name__)

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR"})
_LOG_FORMATS = frozenset({"text", "json"})


class Settings(BaseSettings):
    """Process-wide configuration for the sync service.

    A variable set in the environment wins over the same key in ``.env``;
    anything set in neither keeps its field default.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------
    account_name: str = Field(
        default="showsync",
        description="Sync account name. Empty disables all sync requests.",
    )
    auto_sync_default: bool = Field(
        default=True,
        description="Auto-sync setting used until the user changes it.",
    )

    # ------------------------------------------------------------------
    # TMDB
    # ------------------------------------------------------------------
    tmdb_api_key: str = Field(default="", description="themoviedb.org API key.")
    tmdb_base_url: str = Field(
        default="https://api.themoviedb.org/3",
        description="TMDB API root.",
    )

    # ------------------------------------------------------------------
    # Account sync
    # ------------------------------------------------------------------
    cloud_sync_enabled: bool = Field(
        default=False,
        description="Use cloud account sync instead of trakt sync.",
    )
    sync_services: str = Field(
        default="",
        description=(
            "Dotted 'module:attribute' path of the factory that builds the "
            "primary, cloud, trakt, next-episode and notification services."
        ),
    )

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------
    step_timeout_s: float = Field(
        default=600.0,
        gt=0.0,
        description="Upper bound for a single sync step collaborator call.",
    )
    show_update_threshold_hours: float = Field(
        default=12.0,
        gt=0.0,
        description="A single show is stale once its last update is older than this.",
    )

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------
    connectivity_check_url: str = Field(
        default="https://api.themoviedb.org/3",
        description="URL probed to decide whether the network is reachable.",
    )
    connectivity_timeout_s: float = Field(
        default=5.0,
        gt=0.0,
        description="Timeout for the connectivity probe.",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    database_path: str = Field(
        default="data/showsync.db",
        description="Path to the SQLite database file.",
    )

    # ------------------------------------------------------------------
    # Continuous mode
    # ------------------------------------------------------------------
    poll_interval_min: int = Field(
        default=60,
        ge=1,
        description="Min seconds between periodic 'sync if due' checks.",
    )
    poll_interval_max: int = Field(
        default=120,
        ge=1,
        description="Max seconds between periodic 'sync if due' checks.",
    )

    # ------------------------------------------------------------------
    # Runtime flags
    # ------------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Logging level.")
    log_format: str = Field(default="text", description="Log format: 'text' or 'json'.")

    # ------------------------------------------------------------------
    # Field validators
    # ------------------------------------------------------------------

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL {v!r} is not one of {sorted(_LOG_LEVELS)}")
        return level

    @field_validator("log_format")
    @classmethod
    def _normalise_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in _LOG_FORMATS:
            raise ValueError(f"LOG_FORMAT {v!r} is not one of {sorted(_LOG_FORMATS)}")
        return fmt

    @field_validator("tmdb_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ------------------------------------------------------------------
    # Model validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def _validate_poll_intervals(self) -> Settings:
        """Ensure min ≤ max for the polling interval."""
        if self.poll_interval_min > self.poll_interval_max:
            raise ValueError(
                f"poll_interval_min ({self.poll_interval_min}) "
                f"> poll_interval_max ({self.poll_interval_max})"
            )
        return self

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    @property
    def database_path_resolved(self) -> Path:
        """Absolute form of ``database_path``."""
        return Path(self.database_path).resolve()

    @property
    def tmdb_configured(self) -> bool:
        """``True`` if a TMDB API key is set."""
        return bool(self.tmdb_api_key)

    @property
    def account(self) -> str | None:
        """The sync account, or ``None`` when sync is disabled."""
        return self.account_name or None
