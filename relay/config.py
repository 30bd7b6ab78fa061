"""Configuration management using pydantic-settings."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=7788, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    # Storage Configuration
    database_path: str = Field(default="./data/relay.db", description="DuckDB database file")

    # Pipeline Configuration
    max_concurrent_dispatches: int = Field(default=4, ge=1, description="Backend calls allowed in flight")
    aggregator_tick_seconds: float = Field(default=1.0, gt=0, description="Longest sleep of the batch timer")
    retention_days: int = Field(default=30, ge=1, description="Age after which terminal records are cleaned up")

    # Bootstrap delivery configuration, seeded when the store has none
    delivery_name: str = Field(default="default", description="Name of the seeded delivery configuration")
    backend_base_url: Optional[str] = Field(default=None, description="Completion backend base URL")
    backend_api_key: Optional[str] = Field(default=None, description="Completion backend API key")
    batch_threshold: int = Field(default=5, ge=1, description="Messages that force a flush")
    batch_time_window: int = Field(default=30, ge=1, description="Maximum buffering latency in seconds")
    request_timeout: int = Field(default=30, ge=1, description="Backend request timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Retry budget per failed message")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_file: str = Field(default="./logs/relay.log", description="Log file path")

    def has_bootstrap_delivery(self) -> bool:
        """Whether enough backend settings were given to seed a configuration."""
        return bool(self.backend_base_url and self.backend_api_key)


# Global settings instance
settings = Settings()
