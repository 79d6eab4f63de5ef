"""
Client settings (pydantic-settings).

Values are read from ``MARATHON_*`` environment variables and cached in a
module-level singleton.

Usage:
    >>> from marathon_cloud.config import get_settings, configure_settings
    >>> get_settings().max_concurrency
    10
    >>> configure_settings(max_concurrency=4)
"""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HOST = "cloud.marathonlabs.io"
DEFAULT_WS_URL = "ws://devruntime.testwise.pro:1005/hello"


class Settings(BaseSettings):
    """Marathon Cloud client settings."""

    model_config = SettingsConfigDict(
        env_prefix="MARATHON_",
        extra="ignore",
        validate_assignment=True,
    )

    # API
    host: str = DEFAULT_HOST
    ws_url: str = DEFAULT_WS_URL
    request_timeout: float = Field(default=60.0, ge=1.0, le=600.0)

    # Artifact retrieval
    max_concurrency: int = Field(default=10, ge=1, le=100)
    download_attempts: int = Field(default=3, ge=1, le=10)
    convergence_interval: float = Field(default=60.0, ge=0.0, le=3600.0)
    max_passes: int = Field(default=60, ge=0)  # 0 = no cap

    # Run polling
    run_poll_interval: float = Field(default=5.0, ge=0.1, le=300.0)

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, creating them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure_settings(**overrides: Any) -> Settings:
    """Replace the settings singleton with one built from overrides."""
    global _settings
    _settings = Settings(**overrides)
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "get_settings",
    "configure_settings",
    "reset_settings",
    "DEFAULT_HOST",
    "DEFAULT_WS_URL",
]
