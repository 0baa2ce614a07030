"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Scheduler
    max_concurrency: int = 2
    tick_interval_seconds: float = 1.0
    default_job_timeout_ms: int = 30 * 60 * 1000
    autostart: bool = True
    register_builtin_handlers: bool = True

    # Storage
    storage_type: str = "file"  # "file" or "memory"
    storage_path: str = "./data"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    admin_token: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_prefix": "JOBQUEUE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


settings = Settings()
