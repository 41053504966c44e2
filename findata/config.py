from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "findata"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Cache storage
    database_url: str | None = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5
    cache_ttl_hours: int = 24
    cache_auto_create_schema: bool = True

    # Providers
    serpapi_key: str | None = None
    people_data_labs_api_key: str | None = None
    clearbit_api_key: str | None = None

    # Retrieval budgets (seconds)
    retrieval_timeout_seconds: float = 30.0
    scrape_timeout_seconds: float = 15.0
    api_timeout_seconds: float = 15.0
    search_query_delay_seconds: float = 1.0

    # Security
    cors_origins: list[str] = []  # Empty by default for security

    # Sentry
    sentry_dsn: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Metrics
    metrics_disable: bool = False
    metrics_namespace: str = "findata"
    metrics_sample_rate: float = 1.0

    model_config = ConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()
