"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    worker_executable: str = "python"
    worker_script: str = "execution/scrape_api.py"
    worker_cwd: str = "."
    worker_timeout_seconds: float | None = None
    max_concurrent_jobs: int | None = None
    result_marker_field: str = "homepage"
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
