import logging

import pytest
from pydantic import ValidationError

from backup_scheduler.config import SchedulerSettings
from backup_scheduler.logging_config import setup_logging


def test_defaults() -> None:
    settings = SchedulerSettings()
    assert settings.tick_interval_seconds == 60.0
    assert settings.history_keep_days == 90
    assert settings.webhook_url is None
    assert settings.log_level == "INFO"

def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BACKUP_SCHEDULER_TICK_INTERVAL_SECONDS", "15")
    monkeypatch.setenv("BACKUP_SCHEDULER_WEBHOOK_URL", "https://hooks.example.com/backup")
    monkeypatch.setenv("BACKUP_SCHEDULER_LOG_LEVEL", "debug")

    settings = SchedulerSettings()

    assert settings.tick_interval_seconds == 15.0
    assert settings.webhook_url == "https://hooks.example.com/backup"
    assert settings.log_level == "DEBUG"

def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        SchedulerSettings(log_level="LOUD")
    with pytest.raises(ValidationError):
        SchedulerSettings(tick_interval_seconds=0)

def test_setup_logging_is_idempotent() -> None:
    logger = setup_logging("debug")
    handlers = len(logger.handlers)

    assert setup_logging("WARNING") is logger
    assert len(logger.handlers) == handlers
    assert logger.level == logging.WARNING
