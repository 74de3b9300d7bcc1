"""Application-level settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """FastAPI application metadata and behaviour.

    Environment variables use APP_ prefix.
    Example: APP_DEBUG=true, APP_TITLE="Notification Service"
    """

    title: str = Field(
        default="Notification Service",
        description="Application title shown in OpenAPI docs",
    )
    version: str = Field(
        default="0.1.0",
        description="Application version",
    )
    debug: bool = Field(
        default=False,
        description="Enable FastAPI debug mode",
    )
    create_tables_on_startup: bool = Field(
        default=True,
        description="Create missing tables during application startup",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,  # Immutable settings
        extra="ignore",
        env_ignore_empty=True,  # Ignore empty string env vars
    )
