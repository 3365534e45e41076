"""
Centralized settings for timekeeper.

All fields can be set via ``TIMEKEEPER_*`` environment variables (e.g.
``TIMEKEEPER_CRON_POLL_INTERVAL_MS=500``) or through a ``.env`` file.
Schedulers take an explicit settings object, so tests never depend on the
process environment.

Examples:
    >>> from timekeeper.settings import TimekeeperSettings
    >>> settings = TimekeeperSettings(cron_poll_interval_ms=250)
    >>> settings.sub_task_prefix
    '>>> '
"""

from __future__ import annotations

import zoneinfo
from datetime import tzinfo

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimekeeperSettings(BaseSettings):
    """Timekeeper configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TIMEKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Scheduling ───────────────────────────────────────────────
    cron_poll_interval_ms: float = Field(
        default=1000.0,
        gt=0,
        description="How often cron pollers compute the next occurrence",
    )
    default_once_delay_ms: float = Field(
        default=10.0,
        gt=0,
        description="Delay used by register_once_default",
    )
    sub_task_prefix: str = Field(
        default=">>> ",
        description="Reserved key prefix for derived cron sub-tasks",
    )
    timezone: str | None = Field(
        default=None,
        description="IANA zone for cron evaluation (None = process local)",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("sub_task_prefix")
    @classmethod
    def _prefix_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("sub_task_prefix must not be blank")
        return value

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        try:
            zoneinfo.ZoneInfo(value)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in {"json", "console"}:
            raise ValueError(f"log_format must be 'json' or 'console', got {value!r}")
        return fmt

    def get_tzinfo(self) -> tzinfo | None:
        """Return the configured zone, or None for the process-local zone."""
        if self.timezone is None:
            return None
        return zoneinfo.ZoneInfo(self.timezone)


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, TimekeeperSettings] = {}


def get_settings(*, _force_reload: bool = False) -> TimekeeperSettings:
    """Load, validate, and cache a :class:`TimekeeperSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = TimekeeperSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["TimekeeperSettings", "get_settings", "clear_settings_cache"]
