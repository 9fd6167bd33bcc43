"""Configuration management for Parley."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="PARLEY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Turn driver
    expire_after_ms: int | None = Field(default=None, description="Clear conversation state after this much idle time")
    trace_enabled: bool = Field(default=True, description="Send a BotState trace activity after each turn")

    # Channel defaults
    default_channel: str = Field(default="console", description="Channel id for console conversations")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")


def load_settings(**overrides: object) -> Settings:
    """Build settings from the environment and optional `.env` file."""

    settings = Settings()
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings
