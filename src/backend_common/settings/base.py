"""Base settings shared by aiohttp services."""
from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseServiceSettings(BaseSettings):
    """Server, database pool and CORS configuration common to every service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    env: Literal["development", "staging", "production"] = "development"
    app_name: str = "service"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    db_pool_size: int = 10

    # Comma-separated string so pydantic-settings does not try to JSON-decode it
    cors_allowed_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ALLOWED_ORIGINS",
    )
    cors_allowed_origins: list[str] = Field(
        default_factory=list,
        validation_alias="__cors_allowed_origins_internal__",
    )

    @model_validator(mode="after")
    def parse_cors_origins(self) -> "BaseServiceSettings":
        """Split the comma-separated CORS origins into a list."""
        if self.cors_allowed_origins_str:
            self.cors_allowed_origins = [
                origin.strip()
                for origin in self.cors_allowed_origins_str.split(",")
                if origin.strip()
            ]
        return self
