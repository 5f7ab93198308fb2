"""Application settings via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings"]


class Settings(BaseSettings):
    """Central configuration — all values from environment."""

    model_config = SettingsConfigDict(env_prefix="CARTODASH_")

    # Target environment
    environment: str = "dev"

    # PostgreSQL (empty → in-memory repository)
    pg_dsn: str = ""

    # Redis change notifications (empty → disabled)
    redis_url: str = ""
    redis_channel: str = "cartodash:records"

    # Catalog JSON file (empty → built-in catalog)
    catalog_path: str = ""

    # Business calendar
    business_timezone: str = "America/Sao_Paulo"

    # Logging
    log_json: bool = True
    log_level: str = "INFO"
