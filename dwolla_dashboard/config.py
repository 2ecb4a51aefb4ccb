"""Configuration management using Pydantic Settings"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process configuration loaded from environment variables.

    Dwolla API credentials are deliberately absent: they arrive over
    POST /api/config and live only in memory.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Dwolla
    dwolla_api_base: str = "https://api-sandbox.dwolla.com"

    # Service
    service_name: str = "dwolla-dashboard"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 3000
    cors_origins: List[str] = ["*"]

    # HTTP Client
    http_timeout_seconds: float = 10.0
    token_safety_margin_seconds: int = 60
    provider_page_limit: int = 200
    detail_fetch_concurrency: int = 5

    # Registries
    webhook_buffer_size: int = 100


settings = Settings()
