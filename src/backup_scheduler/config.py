"""Runtime configuration for the backup engine."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BACKUP_SCHEDULER_")

    # Scheduling
    tick_interval_seconds: float = Field(default=60.0, gt=0, description="Seconds between two due-job checks")

    # Persistence
    database_url: str = "sqlite+aiosqlite:///backup_scheduler.db"
    history_keep_days: int = Field(default=90, ge=0)
    history_limit: int = Field(default=100, ge=1)

    # Notifications
    webhook_url: Optional[str] = None
    webhook_timeout_seconds: float = Field(default=10.0, gt=0)

    log_level: str = "INFO"

    @field_validator("log_level")
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unsupported log level: {v}")
        return level
