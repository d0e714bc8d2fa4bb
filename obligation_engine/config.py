"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./obligations.db"
    create_schema_on_startup: bool = True

    # External Services
    ledger_api_base: str = "http://localhost:8001"

    # Service
    service_name: str = "obligation-engine"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 5.0

    # Look-ahead windows (days)
    upcoming_window_days: int = 30
    funds_lookahead_days: int = 30


settings = Settings()
