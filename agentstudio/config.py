"""Configuration management for the Agent Studio service."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTSTUDIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Server settings
    host: str = "127.0.0.1"
    port: int = 3333
    debug: bool = False

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./agentstudio.db"

    # Vendor settings (document ingestion + activation codes)
    vendor_api_base: str = "https://agentapi.symbiosis.solutions"
    vendor_api_key: str = ""
    activation_url: str | None = None
    vendor_timeout_seconds: float = 30.0
    max_document_bytes: int = MAX_DOCUMENT_BYTES
    allowed_document_types: list[str] = ["application/pdf"]
    default_trigger_code: str = "START"

    # Header set by the identity provider in front of the service
    owner_header: str = "X-Owner-ID"

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
