"""Process configuration, read once from the environment (and an optional .env)."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(RuntimeError):
    """Raised when the configuration cannot be used to start the server."""


class Settings(BaseSettings):
    """Server configuration.

    Field names match their environment variables case-insensitively, so
    ``MCSMANAGER_API_KEY`` populates ``mcsmanager_api_key``.
    """

    mcsmanager_url: str = "http://localhost:23333"
    mcsmanager_api_key: str = ""

    mcp_host: str = "localhost"
    mcp_port: int = 3000
    mcp_json_response: bool = False

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: Path = Path("logs")

    request_timeout_seconds: float = 30.0

    # 0 disables the idle-session reaper.
    session_idle_timeout_seconds: float = 0.0
    session_sweep_interval_seconds: float = 60.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )


def load_settings(**overrides) -> Settings:
    """Build a fresh Settings and check the values the server cannot run without.

    Raises:
        ConfigError: if no panel API key is configured.
    """
    settings = Settings(**overrides)
    if not settings.mcsmanager_api_key.strip():
        raise ConfigError("MCSMANAGER_API_KEY environment variable is not set")
    if settings.session_idle_timeout_seconds > 0 and settings.session_sweep_interval_seconds <= 0:
        raise ConfigError("SESSION_SWEEP_INTERVAL_SECONDS must be positive when the idle reaper is enabled")
    return settings

