"""Application settings using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from deploybot.schemas import DeployStatus


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Built once by an entry point and handed to every component that needs
    it; components never read the environment themselves.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    app_name: str = "deploybot"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # ==========================================================================
    # Database
    # ==========================================================================
    database_url: str = Field(default="sqlite+aiosqlite:///./deploybot.db")
    database_echo: bool = False
    init_db_on_startup: bool = True

    # ==========================================================================
    # Dialogue storage (Redis). Unset means per-process memory.
    # ==========================================================================
    redis_url: str | None = Field(default=None)
    dialogue_key_prefix: str = "deploybot:dialogue:"

    # ==========================================================================
    # Telegram
    # ==========================================================================
    telegram_bot_token: str = Field(default="")
    telegram_api_url: str = "https://api.telegram.org"
    telegram_poll_timeout: int = 30

    # ==========================================================================
    # API
    # ==========================================================================
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    auth_header: str = "Authorization"
    unknown_token_policy: Literal["anonymous", "reject"] = "anonymous"
    shutdown_grace_seconds: float = 10.0

    # ==========================================================================
    # Behaviour
    # ==========================================================================
    # "job": repos start RUNNING, "deploy": repos start IDLE
    status_profile: Literal["job", "deploy"] = "job"

    @property
    def default_repo_status(self) -> DeployStatus:
        if self.status_profile == "deploy":
            return DeployStatus.IDLE
        return DeployStatus.RUNNING


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
