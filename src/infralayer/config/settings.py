"""
Application settings using Pydantic.

Provides environment-based configuration loading with INFRALAYER_ prefix.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="INFRALAYER_",
        extra="ignore",
    )

    # Declarative input
    config_file: Path = Path("main.infra.yaml")
    var_file: Path | None = None

    # State
    state_path: Path = Path("infralayer.state.json")
    working_dir: Path = Path(".infralayer")

    # Backend
    backend: str = "local"
    backend_url: str | None = None
    backend_dir: Path = Path(".infralayer/resources")
    backend_token: str | None = None

    # Executor
    parallelism: int = 10
    max_attempts: int = 4
    operation_timeout: float = 300.0
    backoff_multiplier: float = 1.0
    backoff_max: float = 30.0

    # Logging
    log_level: str = "WARNING"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
