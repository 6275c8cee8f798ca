"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

DEFAULT_TIMEZONE = "America/Los_Angeles"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    discord_bot_token: str
    supabase_url: str
    supabase_service_key: str
    admin_token: str
    default_timezone: str = DEFAULT_TIMEZONE
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
