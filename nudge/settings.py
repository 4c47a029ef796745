"""
Typed settings management using pydantic-settings.

All tunables for the reminder store, the scheduler daemon and the
notification dispatcher live here. Values come from (highest precedence
first) explicit keyword arguments, ``NUDGE_*`` environment variables, the
``.env`` file in the nudge config directory, and the defaults below.

Usage:
    from nudge.settings import get_settings

    settings = get_settings()
    print(settings.reminders_file)
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nudge import config


# =============================================================================
# Enums for validated choices
# =============================================================================


class NotifierKind(str, Enum):
    """Which dispatcher the daemon delivers reminders through."""

    DESKTOP = "desktop"
    CONSOLE = "console"


# =============================================================================
# Settings
# =============================================================================


class NudgeSettings(BaseSettings):
    """Store, scheduler and dispatch configuration."""

    model_config = SettingsConfigDict(
        env_prefix="NUDGE_",
        env_file=config.ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    reminders_file: Path = Field(
        default=Path(config.REMINDERS_FILE),
        description="JSON file shared by the CLI and the daemon",
    )
    lock_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="How long a store transaction waits for the advisory lock",
    )

    # Recurrence
    timezone: str = Field(
        default="UTC",
        description="Reference IANA zone stored into new recurrence rules",
    )

    # Daemon timing
    idle_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound on a single sleep between wake cycles",
    )
    error_retry_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Minimum wait after a cycle that hit a store error",
    )

    # Dispatch
    notifier: NotifierKind = Field(
        default=NotifierKind.DESKTOP,
        description="Notification backend used by the daemon",
    )
    dispatch_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Delivery attempts per reminder per wake cycle",
    )
    dispatch_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        description="First retry delay; doubles after every failed attempt",
    )
    dispatch_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single notifier subprocess",
    )
    max_concurrent_dispatches: int = Field(
        default=4,
        ge=1,
        description="Deliveries issued in parallel within one cycle",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Daemon log level")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("reminders_file")
    @classmethod
    def _expand_path(cls, value: Path) -> Path:
        return value.expanduser()


# =============================================================================
# Cached Singleton Accessors
# =============================================================================


@lru_cache(maxsize=1)
def get_settings() -> NudgeSettings:
    """Get the cached settings singleton.

    The settings are loaded once and cached for the process lifetime.
    To reload, call clear_settings_cache() first.
    """
    return NudgeSettings()


def clear_settings_cache() -> None:
    """Clear the cached settings instance.

    Call this if environment variables or the .env file have changed
    and you need to reload configuration.
    """
    get_settings.cache_clear()
