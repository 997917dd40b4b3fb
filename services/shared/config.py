"""Shared configuration management for the invoice service.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="invoice-link-service",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Invoice links
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL used to build shareable invoice links",
    )
    trust_request_origin: bool = Field(
        default=False,
        description=(
            "Build invoice links from the caller's Origin header when present. "
            "The header is caller-controlled, so links become advisory only."
        ),
    )
    currency_symbol: str = Field(
        default="₾",
        description="Currency symbol appended to amounts on rendered invoices",
    )

    # CORS
    cors_allow_origins: list[str] = Field(
        default=["*"],
        description="Origins allowed to call the API from a browser",
    )

    # Invoice store configuration
    store_backend: Literal["memory", "postgrest"] = Field(
        default="memory",
        description="Invoice store: memory (in-process), postgrest (Supabase/PostgREST table)",
    )
    postgrest_url: str = Field(
        default="http://localhost:54321",
        description="PostgREST (or Supabase project) base URL",
    )
    postgrest_api_key: str = Field(
        default="",
        description="Service key sent as apikey/bearer token (use env var APP_POSTGREST_API_KEY)",
    )
    postgrest_table: str = Field(
        default="invoices",
        description="Table holding invoice records",
    )
    postgrest_timeout: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout in seconds for store requests",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
